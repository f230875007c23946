import os
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

# --- Configuration ---
REQUIRED_PLATFORM = "Darwin"
CONNECTIVITY_HOST = "google.com"

BREW_TAPS = [
    "thoughtbot/formulae",
]

BREW_PACKAGES = [
    "age", "agg", "asciinema", "atuin", "bat", "bun", "cmake", "curl", "delta", "fd",
    "ffmpeg", "fzf", "gh", "gifski", "git", "glab", "go", "htop", "jj", "jq", "lua",
    "make", "mkcert", "neovim", "nmap", "node", "pipx", "pnpm", "python", "rbenv",
    "rcm",  # from the thoughtbot tap
    "ripgrep", "ruff", "ruby-build", "shellcheck", "stow", "tmux", "tree", "uv",
    "websocat", "wget", "wrk", "yarn", "zoxide", "zsh",
    "cloudflare/cloudflare/cloudflared",
    "reattach-to-user-namespace",  # tmux clipboard integration
]

BREW_CASKS = [
    "raycast",
]

# Where `brew` lands on Apple Silicon and Intel machines respectively
BREW_PREFIXES = [Path("/opt/homebrew"), Path("/usr/local")]

HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
OH_MY_ZSH_INSTALL_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
ATUIN_INSTALL_URL = "https://setup.atuin.sh"
NVM_INSTALL_URL = "https://raw.githubusercontent.com/nvm-sh/nvm/v0.40.1/install.sh"
UV_INSTALL_URL = "https://astral.sh/uv/install.sh"
RUSTUP_URL = "https://sh.rustup.rs"

REPOS_DIR_NAME = "repos"
DOTFILES_DIR_NAME = ".opencode"
DOTFILES_SOURCE = Path(__file__).resolve().parent / "opencode"
SSH_KEY_RELPATH = Path(".ssh/id_ed25519")
SHELLS_FILE = Path("/etc/shells")
LOG_DIR_RELPATH = Path("Library/Logs/macsetup")

SSH_EMAIL_ENV = "SSH_EMAIL"


@dataclass(frozen=True)
class SetupConfig:
    """Static description of what a machine should end up with."""

    required_platform: str = REQUIRED_PLATFORM
    connectivity_host: str = CONNECTIVITY_HOST
    brew_taps: Tuple[str, ...] = tuple(BREW_TAPS)
    brew_packages: Tuple[str, ...] = tuple(BREW_PACKAGES)
    brew_casks: Tuple[str, ...] = tuple(BREW_CASKS)
    brew_prefixes: Tuple[Path, ...] = tuple(BREW_PREFIXES)
    homebrew_install_url: str = HOMEBREW_INSTALL_URL
    oh_my_zsh_install_url: str = OH_MY_ZSH_INSTALL_URL
    atuin_install_url: str = ATUIN_INSTALL_URL
    nvm_install_url: str = NVM_INSTALL_URL
    uv_install_url: str = UV_INSTALL_URL
    rustup_url: str = RUSTUP_URL
    repos_dir_name: str = REPOS_DIR_NAME
    dotfiles_source: Path = DOTFILES_SOURCE
    dotfiles_dir_name: str = DOTFILES_DIR_NAME
    ssh_key_relpath: Path = SSH_KEY_RELPATH
    shells_file: Path = SHELLS_FILE
    log_dir_relpath: Path = LOG_DIR_RELPATH

    @property
    def brew_bin_dirs(self):
        return [prefix / "bin" for prefix in self.brew_prefixes]


@dataclass(frozen=True)
class RunContext:
    """Environment facts resolved once at startup. Read-only afterwards."""

    os_name: str
    interactive: bool
    home: Path
    ssh_email: Optional[str] = None
    machine: str = field(default_factory=platform.machine)

    def repos_dir(self, config: SetupConfig) -> Path:
        return self.home / config.repos_dir_name

    def dotfiles_target(self, config: SetupConfig) -> Path:
        return self.home / config.dotfiles_dir_name

    def ssh_key_path(self, config: SetupConfig) -> Path:
        return self.home / config.ssh_key_relpath

    def log_dir(self, config: SetupConfig) -> Path:
        return self.home / config.log_dir_relpath


def load_context(environ=None, stdin=None) -> RunContext:
    """Snapshot the OS, session interactivity, home directory and SSH email."""
    environ = os.environ if environ is None else environ
    stdin = sys.stdin if stdin is None else stdin

    try:
        interactive = bool(stdin and stdin.isatty())
    except ValueError:
        # Closed stdin, e.g. when piped from curl
        interactive = False

    email = (environ.get(SSH_EMAIL_ENV) or "").strip() or None
    home = Path(environ.get("HOME") or Path.home())

    return RunContext(
        os_name=platform.system(),
        interactive=interactive,
        home=home,
        ssh_email=email,
    )
