"""
The setup steps, in dependency order.

Each factory returns a Step whose check only inspects the machine and whose
action does the work through the injected runner, so the whole sequence
can be exercised with a fake runner.
"""
import logging
import os
import pwd

from .command import run_command, run_shell, which
from .config import SSH_EMAIL_ENV
from .dotfiles import install_tree, trees_match
from .provisioner import Step, StepResult

logger = logging.getLogger(__name__)


def _brew(config):
    return which("brew", config.brew_bin_dirs)


def _zsh(config):
    return which("zsh", config.brew_bin_dirs)


def _current_login_shell():
    return pwd.getpwuid(os.getuid()).pw_shell


def repos_dir_step(config, ctx):
    repos = ctx.repos_dir(config)

    def action():
        repos.mkdir(parents=True, exist_ok=True)
        return StepResult.success(str(repos))

    return Step("Repositories directory", check=repos.is_dir, action=action)


def homebrew_step(config, runner):
    def action():
        result = run_shell(
            f'/bin/bash -c "$(curl -fsSL {config.homebrew_install_url})"',
            description="Running Homebrew installer",
            env={"NONINTERACTIVE": "1"},
            capture_output=False,
            runner=runner,
        )
        if not result.ok:
            return StepResult.from_command(result)
        brew = _brew(config)
        if not brew:
            return StepResult.failure("installer finished but brew was not found in "
                                      + ", ".join(str(d) for d in config.brew_bin_dirs))
        return StepResult.success(brew)

    return Step("Homebrew", check=lambda: _brew(config) is not None, action=action)


def _require_brew(config):
    brew = _brew(config)
    if not brew:
        raise RuntimeError("brew is not installed")
    return brew


def brew_tap_step(config, runner, tap):
    def check():
        brew = _brew(config)
        if not brew:
            return False
        result = runner([brew, "tap"], description="Listing Homebrew taps")
        return result.ok and tap.lower() in result.stdout.lower().split()

    def action():
        return runner([_require_brew(config), "tap", tap], description=f"Tapping {tap}")

    return Step(f"Homebrew tap {tap}", check=check, action=action)


def brew_package_step(config, runner, package, cask=False):
    kind = ["--cask"] if cask else []
    label = "cask" if cask else "package"

    def check():
        brew = _brew(config)
        if not brew:
            return False
        return runner([brew, "list", *kind, package], description=f"Checking {label} {package}").ok

    def action():
        extra = kind if cask else ["--quiet"]
        return runner([_require_brew(config), "install", *extra, package], description=f"Installing {package}")

    return Step(f"Homebrew {label} {package}", check=check, action=action)


def dotfiles_step(config, ctx):
    source = config.dotfiles_source
    target = ctx.dotfiles_target(config)

    def action():
        if not source.is_dir():
            return StepResult.failure(f"bundled {config.dotfiles_dir_name} directory not found ({source})")
        backup = install_tree(source, target)
        if backup:
            return StepResult.success(f"previous directory saved as {backup}")
        return StepResult.success()

    return Step("OpenCode dotfiles", check=lambda: trees_match(source, target), action=action)


def ssh_key_step(config, ctx, runner, prompt):
    key = ctx.ssh_key_path(config)

    def action():
        email = ctx.ssh_email
        if not email and ctx.interactive and prompt is not None:
            email = (prompt("SSH email for keygen (leave empty to skip)") or "").strip()
        if not email:
            return StepResult.skip("no SSH email provided")

        ssh_dir = key.parent
        ssh_dir.mkdir(parents=True, exist_ok=True)
        ssh_dir.chmod(0o700)

        keygen = ["ssh-keygen", "-t", "ed25519", "-f", str(key), "-C", email]
        if not ctx.interactive:
            # Nobody is there to type a passphrase
            keygen += ["-N", ""]
        result = runner(keygen, description="Generating new SSH key", capture_output=not ctx.interactive)
        if not result.ok:
            return StepResult.from_command(result)

        if ctx.interactive:
            result = runner(["ssh-add", "--apple-use-keychain", str(key)],
                            description="Adding key to Keychain", capture_output=False)
            if not result.ok:
                return StepResult.from_command(result)
        return StepResult.success(str(key))

    def check():
        if key.is_file():
            return True
        if not ctx.interactive and not ctx.ssh_email:
            # Without a TTY or SSH_EMAIL there is nothing to generate
            logger.info(f"No {SSH_EMAIL_ENV} set and no terminal; not generating {key}")
            return True
        return False

    return Step("SSH key", check=check, action=action)


def oh_my_zsh_step(config, ctx, runner):
    target = ctx.home / ".oh-my-zsh"

    def action():
        return run_shell(
            f'sh -c "$(curl -fsSL {config.oh_my_zsh_install_url})" "" --unattended',
            description="Running oh-my-zsh installer",
            runner=runner,
        )

    return Step("oh-my-zsh", check=target.is_dir, action=action)


def register_shell_step(config, runner):
    shells_file = config.shells_file

    def registered_shells():
        try:
            return shells_file.read_text()
        except FileNotFoundError:
            return ""

    def check():
        zsh = _zsh(config)
        if not zsh:
            return False
        return zsh in [line.strip() for line in registered_shells().splitlines()]

    def action():
        zsh = _zsh(config)
        if not zsh:
            return StepResult.failure("zsh not found")
        content = registered_shells()
        line = f"{zsh}\n"
        if content and not content.endswith("\n"):
            line = "\n" + line
        return runner(["sudo", "tee", "-a", str(shells_file)], description=f"Adding {zsh} to {shells_file}",
                      input_text=line)

    return Step(f"Register zsh in {shells_file}", check=check, action=action)


def login_shell_step(config, runner, current_shell=_current_login_shell):
    def check():
        zsh = _zsh(config)
        return zsh is not None and current_shell() == zsh

    def action():
        zsh = _zsh(config)
        if not zsh:
            return StepResult.failure("zsh not found")
        return runner(["chsh", "-s", zsh], description="Changing login shell", capture_output=False)

    return Step("Login shell zsh", check=check, action=action)


def _installer_step(name, check, script, runner):
    def action():
        return run_shell(script, description=f"Running {name} installer", runner=runner)

    return Step(name, check=check, action=action)


def tool_steps(config, ctx, runner):
    user_bins = [ctx.home / ".local/bin", ctx.home / ".cargo/bin"]
    return [
        _installer_step(
            "Atuin",
            (ctx.home / ".atuin").is_dir,
            f"curl --proto '=https' --tlsv1.2 -LsSf {config.atuin_install_url} | sh",
            runner,
        ),
        _installer_step(
            "nvm",
            (ctx.home / ".nvm").is_dir,
            f"curl -o- {config.nvm_install_url} | PROFILE=/dev/null bash",
            runner,
        ),
        _installer_step(
            "uv",
            lambda: which("uv", [*config.brew_bin_dirs, *user_bins]) is not None,
            f"curl -LsSf {config.uv_install_url} | sh",
            runner,
        ),
        _installer_step(
            "Rust",
            lambda: which("rustc", user_bins) is not None,
            f"curl --proto '=https' --tlsv1.2 -sSf {config.rustup_url} | sh -s -- -y",
            runner,
        ),
    ]


def build_steps(config, ctx, runner=run_command, prompt=None, current_shell=_current_login_shell):
    """
    Package manager first, then packages, then anything that needs them.
    """
    steps = [
        repos_dir_step(config, ctx),
        homebrew_step(config, runner),
    ]
    steps += [brew_tap_step(config, runner, tap) for tap in config.brew_taps]
    steps += [brew_package_step(config, runner, pkg) for pkg in config.brew_packages]
    steps += [brew_package_step(config, runner, cask, cask=True) for cask in config.brew_casks]
    steps += [
        dotfiles_step(config, ctx),
        ssh_key_step(config, ctx, runner, prompt),
        oh_my_zsh_step(config, ctx, runner),
        register_shell_step(config, runner),
        login_shell_step(config, runner, current_shell=current_shell),
    ]
    steps += tool_steps(config, ctx, runner)
    logger.debug(f"Built {len(steps)} steps: {[step.name for step in steps]}")
    return steps
