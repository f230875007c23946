import os
import stat
from pathlib import Path

import pytest

from macsetup.command import CommandResult
from macsetup.config import SetupConfig, RunContext


def make_executable(path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeMachine:
    """
    Stands in for run_command. Keeps just enough state (installed formulae,
    taps, files created by installers) for checks to see earlier actions.
    """

    MUTATING = ("install", "tap-add", "installer", "tee", "chsh", "ssh-keygen", "ssh-add")

    def __init__(self, config, home):
        self.config = config
        self.home = Path(home)
        self.brew_bin = config.brew_bin_dirs[0]
        self.formulae = set()
        self.casks = set()
        self.taps = set()
        self.login_shell = "/bin/bash"
        self.calls = []
        self.actions = []

    def current_shell(self):
        return self.login_shell

    def _record(self, kind, argv):
        self.actions.append((kind, argv))

    def __call__(self, argv, description="", env=None, input_text=None, capture_output=True, cwd=None):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        name = os.path.basename(argv[0])

        if name == "brew":
            return self._brew(argv)
        if argv[:2] == ["/bin/bash", "-c"]:
            return self._installer(argv)
        if argv[:3] == ["sudo", "tee", "-a"]:
            self._record("tee", argv)
            with open(argv[3], "a") as fh:
                fh.write(input_text or "")
            return CommandResult(argv, 0, stdout=input_text or "")
        if name == "chsh":
            self._record("chsh", argv)
            self.login_shell = argv[2]
            return CommandResult(argv, 0)
        if name == "ssh-keygen":
            self._record("ssh-keygen", argv)
            key = Path(argv[argv.index("-f") + 1])
            key.write_text("PRIVATE KEY")
            key.with_name(key.name + ".pub").write_text("PUBLIC KEY")
            return CommandResult(argv, 0)
        if name == "ssh-add":
            self._record("ssh-add", argv)
            return CommandResult(argv, 0)
        if name == "ping":
            return CommandResult(argv, 0)
        return CommandResult(argv, 127, stderr=f"{argv[0]}: command not found")

    def _brew(self, argv):
        args = argv[1:]
        if args == ["tap"]:
            return CommandResult(argv, 0, stdout="\n".join(sorted(self.taps)) + "\n")
        if args[0] == "tap":
            self._record("tap-add", argv)
            self.taps.add(args[1])
            return CommandResult(argv, 0)
        if args[0] == "list":
            if args[1] == "--cask":
                installed = args[2] in self.casks
            else:
                installed = args[1] in self.formulae
            return CommandResult(argv, 0 if installed else 1, stderr="" if installed else "No such keg")
        if args[0] == "install":
            self._record("install", argv)
            if "--cask" in args:
                self.casks.add(args[-1])
            else:
                self.formulae.add(args[-1])
            return CommandResult(argv, 0)
        return CommandResult(argv, 1)

    def _installer(self, argv):
        script = argv[2]
        self._record("installer", argv)
        if self.config.homebrew_install_url in script:
            make_executable(self.brew_bin / "brew")
        elif self.config.oh_my_zsh_install_url in script:
            (self.home / ".oh-my-zsh").mkdir()
        elif self.config.atuin_install_url in script:
            (self.home / ".atuin").mkdir()
        elif self.config.nvm_install_url in script:
            (self.home / ".nvm").mkdir()
        elif self.config.uv_install_url in script:
            make_executable(self.home / ".local/bin/uv")
        elif self.config.rustup_url in script:
            make_executable(self.home / ".cargo/bin/rustc")
        return CommandResult(argv, 0)

    def mutations(self):
        return [kind for kind, _ in self.actions if kind in self.MUTATING]


@pytest.fixture
def home(tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def dotfiles_source(tmp_path):
    source = tmp_path / "repo" / ".opencode"
    (source / "agent").mkdir(parents=True)
    (source / "opencode.json").write_text('{"theme": "system"}\n')
    (source / "agent" / "review.md").write_text("Review the diff.\n")
    return source


@pytest.fixture
def config(tmp_path, dotfiles_source):
    shells = tmp_path / "etc" / "shells"
    shells.parent.mkdir()
    shells.write_text("/bin/bash\n/bin/sh\n/bin/zsh\n")
    return SetupConfig(
        brew_taps=("thoughtbot/formulae",),
        brew_packages=("jq", "zsh"),
        brew_casks=("raycast",),
        brew_prefixes=(tmp_path / "brew",),
        dotfiles_source=dotfiles_source,
        shells_file=shells,
    )


@pytest.fixture
def brew_zsh(config):
    # Homebrew's zsh, ahead of anything on PATH
    return make_executable(config.brew_bin_dirs[0] / "zsh")


@pytest.fixture
def ctx(home):
    return RunContext(os_name="Darwin", interactive=False, home=home, ssh_email=None)


@pytest.fixture
def machine(config, home):
    return FakeMachine(config, home)


@pytest.fixture(autouse=True)
def isolated_path(monkeypatch, tmp_path):
    # Keep real brew/zsh/uv on the host from satisfying checks
    empty = tmp_path / "empty-bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
