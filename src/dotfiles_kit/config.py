"""Configuration for the dotfiles provisioner.

Platform normalization, the run-wide ProvisionConfig struct, and the fixed
tables of release repos, install-script URLs, and dotfile links.
"""

import os
from dataclasses import dataclass, field

from dotfiles_kit.errors import UnsupportedPlatformError

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

GITHUB_API = "https://api.github.com"
GITHUB_DOWNLOAD = "https://github.com"

FETCH_ATTEMPTS = 3
FETCH_BACKOFF_SECONDS = 1.0
FETCH_TIMEOUT_SECONDS = 60.0

NEOVIM_REPO = "neovim/neovim"
FZF_REPO = "junegunn/fzf"
RIPGREP_REPO = "BurntSushi/ripgrep"

ZOXIDE_INSTALL_URL = "https://raw.githubusercontent.com/ajeetdsouza/zoxide/main/install.sh"
STARSHIP_INSTALL_URL = "https://starship.rs/install.sh"
HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"

TPM_GIT_URL = "https://github.com/tmux-plugins/tpm"
LAZYVIM_STARTER_URL = "https://github.com/LazyVim/starter"


# ---------------------------------------------------------------------------
# Dotfiles and tools
# ---------------------------------------------------------------------------

# (file in the dotfiles dir, destination relative to $HOME)
DOTFILE_LINKS = [
    (".zshrc", ".zshrc"),
    (".tmux.conf", ".tmux.conf"),
    ("starship.toml", os.path.join(".config", "starship.toml")),
]

SYSTEM_DEPENDENCIES = ("git", "curl", "zsh")
LINUX_ONLY_DEPENDENCIES = ("xclip",)

# Package managers probed on Linux, in preference order.
LINUX_PACKAGE_MANAGERS = ("apt-get", "dnf", "pacman", "apk")

XMODMAP_MARKER = "keycode 66 = Escape"
XMODMAP_BLOCK = "! Map Caps Lock to Escape\nclear Lock\nkeycode 66 = Escape\n"

ETC_SHELLS = "/etc/shells"

_SUPPORTED_OS = ("Linux", "Darwin")

_ARCH_ALIASES = {
    "x86_64": ("x86_64", "amd64"),
    "amd64": ("x86_64", "amd64"),
    "aarch64": ("aarch64", "arm64"),
    "arm64": ("aarch64", "arm64"),
}

REPO_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def normalize_arch(machine: str) -> tuple[str, str]:
    """Map a uname machine string to (arch, arch_alt).

    Pure function: 'x86_64' -> ('x86_64', 'amd64'), 'arm64'/'aarch64' ->
    ('aarch64', 'arm64'). Raises UnsupportedPlatformError otherwise.
    """
    try:
        return _ARCH_ALIASES[machine.strip().lower()]
    except KeyError:
        raise UnsupportedPlatformError(f"Unsupported architecture: {machine}") from None


def normalize_os(system: str) -> str:
    """Validate a uname system string. Returns 'Linux' or 'Darwin'."""
    if system not in _SUPPORTED_OS:
        raise UnsupportedPlatformError(f"Unsupported operating system: {system}")
    return system


@dataclass(frozen=True)
class ProvisionConfig:
    """Everything a step needs to know about the machine it is provisioning."""

    home: str
    dotfiles_dir: str
    os_name: str
    arch: str
    arch_alt: str
    shell: str = ""
    system_path: str = ""
    github_token: str = field(default="", repr=False)

    @property
    def local_dir(self) -> str:
        return os.path.join(self.home, ".local")

    @property
    def local_bin(self) -> str:
        return os.path.join(self.home, ".local", "bin")

    @property
    def config_dir(self) -> str:
        return os.path.join(self.home, ".config")

    @property
    def nvim_config(self) -> str:
        return os.path.join(self.config_dir, "nvim")

    @property
    def tpm_dir(self) -> str:
        return os.path.join(self.home, ".tmux", "plugins", "tpm")

    @property
    def xmodmap_file(self) -> str:
        return os.path.join(self.home, ".Xmodmap")

    @property
    def log_file(self) -> str:
        return os.path.join(self.dotfiles_dir, "logs", "install.log")

    @property
    def path(self) -> str:
        """Search PATH with ~/.local/bin first, so freshly installed tools are found."""
        if self.system_path:
            return self.local_bin + os.pathsep + self.system_path
        return self.local_bin

    def child_env(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Environment for child processes: the base env with the extended PATH."""
        env = dict(os.environ if base is None else base)
        env["PATH"] = self.path
        env["HOME"] = self.home
        return env


def load_config(env: dict[str, str], system: str, machine: str) -> ProvisionConfig:
    """Build the run configuration from the environment and uname values.

    Touches nothing on disk, so platform errors surface before any mutation.
    """
    os_name = normalize_os(system)
    arch, arch_alt = normalize_arch(machine)
    home = env.get("HOME") or os.path.expanduser("~")
    dotfiles_dir = env.get("DOTFILES_DIR") or REPO_DIR
    return ProvisionConfig(
        home=os.path.abspath(os.path.expanduser(home)),
        dotfiles_dir=os.path.abspath(os.path.expanduser(dotfiles_dir)),
        os_name=os_name,
        arch=arch,
        arch_alt=arch_alt,
        shell=env.get("SHELL", ""),
        system_path=env.get("PATH", ""),
        github_token=env.get("GITHUB_TOKEN", ""),
    )
