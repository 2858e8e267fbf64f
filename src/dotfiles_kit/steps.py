"""The default provisioning plan: tools to install and dotfiles to link.

Order matters in one place only: dotfile links run before the tmux plugin
install, because TPM reads the plugin list from ~/.tmux.conf.
"""

import os
import pwd
import re
import shutil
import tempfile

from dotfiles_kit.config import (
    DOTFILE_LINKS,
    ETC_SHELLS,
    FZF_REPO,
    HOMEBREW_INSTALL_URL,
    LAZYVIM_STARTER_URL,
    LINUX_ONLY_DEPENDENCIES,
    LINUX_PACKAGE_MANAGERS,
    NEOVIM_REPO,
    RIPGREP_REPO,
    STARSHIP_INSTALL_URL,
    SYSTEM_DEPENDENCIES,
    TPM_GIT_URL,
    XMODMAP_BLOCK,
    XMODMAP_MARKER,
    ZOXIDE_INSTALL_URL,
)
from dotfiles_kit.context import ProvisionContext, StepResult, StepStatus
from dotfiles_kit.errors import MissingDependencyError
from dotfiles_kit.links import move_aside
from dotfiles_kit.provisioner import InstallStep, LinkStep, Step
from dotfiles_kit.releases import (
    download,
    extract_tarball,
    fzf_asset_url,
    latest_release_tag,
    neovim_archive_name,
    neovim_asset_url,
    ripgrep_archive_name,
    ripgrep_asset_url,
    run_install_script,
)
from dotfiles_kit.utils import privileged, run_checked


def _require(ctx: ProvisionContext, *tools: str) -> None:
    missing = ctx.capabilities.missing(tools)
    if missing:
        raise MissingDependencyError(f"requires {', '.join(missing)}")


def _run(ctx: ProvisionContext, args: list[str], **kwargs) -> None:
    run_checked(args, env=ctx.config.child_env(), **kwargs)


def _brew_install(ctx: ProvisionContext, *packages: str) -> None:
    _require(ctx, "brew")
    _run(ctx, ["brew", "install", *packages])


# ============================================
# System dependencies
# ============================================


def required_system_tools(os_name: str) -> list[str]:
    tools = list(SYSTEM_DEPENDENCIES)
    if os_name == "Linux":
        tools += list(LINUX_ONLY_DEPENDENCIES)
    return tools


def package_install_commands(manager: str, packages: list[str]) -> list[list[str]]:
    """Commands that install *packages* with *manager*.

    Pure function: sudo is added later by the caller where needed.
    """
    if manager == "apt-get":
        return [["apt-get", "update"], ["apt-get", "install", "-y", *packages]]
    if manager == "dnf":
        return [["dnf", "install", "-y", *packages]]
    if manager == "pacman":
        return [["pacman", "-Sy", "--noconfirm", *packages]]
    if manager == "apk":
        return [["apk", "add", *packages]]
    if manager == "brew":
        return [["brew", "install", *packages]]
    raise ValueError(f"Unknown package manager: {manager}")


def detect_package_manager(ctx: ProvisionContext) -> str | None:
    if ctx.config.os_name == "Darwin":
        return "brew"
    for manager in LINUX_PACKAGE_MANAGERS:
        if ctx.capabilities.is_present(manager):
            return manager
    return None


def _system_deps_present(ctx: ProvisionContext) -> bool:
    return not ctx.capabilities.missing(required_system_tools(ctx.config.os_name))


def install_system_deps(ctx: ProvisionContext) -> str:
    missing = ctx.capabilities.missing(required_system_tools(ctx.config.os_name))
    manager = detect_package_manager(ctx)
    if manager is None:
        raise MissingDependencyError(
            f"unknown package manager, install manually: {' '.join(missing)}"
        )

    if manager == "brew" and not ctx.capabilities.is_present("brew"):
        ctx.info("Installing Homebrew...")
        run_install_script(ctx, HOMEBREW_INSTALL_URL)
        ctx.capabilities.forget("brew")
        _require(ctx, "brew")

    ctx.info(f"Installing missing dependencies: {' '.join(missing)}")
    for cmd in package_install_commands(manager, missing):
        _run(ctx, cmd if manager == "brew" else privileged(cmd))
    ctx.capabilities.forget(*missing)
    ctx.success("System dependencies installed")
    return ", ".join(missing)


# ============================================
# Release binaries
# ============================================


def _tool_present(tool: str):
    def _detect(ctx: ProvisionContext) -> bool:
        return ctx.capabilities.is_present(tool)
    return _detect


def install_fzf(ctx: ProvisionContext) -> str:
    ctx.info("Installing fzf...")
    tag = latest_release_tag(ctx.http, FZF_REPO, sleep=ctx.sleep)
    url = fzf_asset_url(tag, ctx.config.os_name, ctx.config.arch_alt)
    with tempfile.TemporaryDirectory() as tmp:
        archive = download(ctx.http, url, os.path.join(tmp, "fzf.tar.gz"), sleep=ctx.sleep)
        extract_tarball(archive, ctx.config.local_bin)
    ctx.capabilities.forget("fzf")
    ctx.success("fzf installed")
    return tag


def install_ripgrep(ctx: ProvisionContext) -> str:
    ctx.info("Installing ripgrep...")
    if ctx.config.os_name == "Darwin":
        _brew_install(ctx, "ripgrep")
        ctx.capabilities.forget("rg")
        ctx.success("ripgrep installed")
        return "brew"

    tag = latest_release_tag(ctx.http, RIPGREP_REPO, sleep=ctx.sleep)
    url = ripgrep_asset_url(tag, ctx.config.arch)
    with tempfile.TemporaryDirectory() as tmp:
        archive = download(ctx.http, url, os.path.join(tmp, "rg.tar.gz"), sleep=ctx.sleep)
        extract_tarball(archive, tmp)
        binary = os.path.join(tmp, ripgrep_archive_name(tag, ctx.config.arch), "rg")
        shutil.copy2(binary, os.path.join(ctx.config.local_bin, "rg"))
    ctx.capabilities.forget("rg")
    ctx.success("ripgrep installed")
    return tag


def install_neovim(ctx: ProvisionContext) -> str:
    ctx.info("Installing Neovim...")
    if ctx.config.os_name == "Darwin":
        _brew_install(ctx, "neovim")
        ctx.capabilities.forget("nvim")
        ctx.success("Neovim installed")
        return "brew"

    tag = latest_release_tag(ctx.http, NEOVIM_REPO, sleep=ctx.sleep)
    url = neovim_asset_url(tag, ctx.config.arch)
    with tempfile.TemporaryDirectory() as tmp:
        archive = download(ctx.http, url, os.path.join(tmp, "nvim.tar.gz"), sleep=ctx.sleep)
        extract_tarball(archive, tmp)
        unpacked = os.path.join(tmp, neovim_archive_name(ctx.config.arch))
        shutil.copytree(unpacked, ctx.config.local_dir, dirs_exist_ok=True)
    ctx.capabilities.forget("nvim")
    ctx.success("Neovim installed")
    return tag


def install_zoxide(ctx: ProvisionContext) -> None:
    ctx.info("Installing zoxide...")
    run_install_script(ctx, ZOXIDE_INSTALL_URL)
    ctx.capabilities.forget("zoxide")
    ctx.success("zoxide installed")


def install_starship(ctx: ProvisionContext) -> None:
    ctx.info("Installing Starship...")
    run_install_script(ctx, STARSHIP_INSTALL_URL, ["-y", "-b", ctx.config.local_bin])
    ctx.capabilities.forget("starship")
    ctx.success("Starship installed")


# ============================================
# Editor and tmux
# ============================================


def _lazyvim_present(ctx: ProvisionContext) -> bool:
    return os.path.isfile(os.path.join(ctx.config.nvim_config, "lua", "config", "lazy.lua"))


def setup_lazyvim(ctx: ProvisionContext) -> str | StepResult | None:
    _require(ctx, "git")
    nvim_config = ctx.config.nvim_config
    detail = None
    if os.path.lexists(nvim_config):
        if not ctx.confirm(f"Neovim config exists at {nvim_config}. Backup and replace?"):
            ctx.warn("Skipping Neovim setup")
            return StepResult("", StepStatus.DECLINED, f"kept {nvim_config}")
        detail = f"backup: {move_aside(ctx, nvim_config)}"

    ctx.info("Setting up LazyVim...")
    _run(ctx, ["git", "clone", LAZYVIM_STARTER_URL, nvim_config])
    shutil.rmtree(os.path.join(nvim_config, ".git"), ignore_errors=True)
    ctx.success("LazyVim installed")
    return detail


def _tpm_present(ctx: ProvisionContext) -> bool:
    return os.path.isdir(ctx.config.tpm_dir)


def install_tpm(ctx: ProvisionContext) -> None:
    _require(ctx, "git")
    ctx.info("Installing tmux plugin manager...")
    _run(ctx, ["git", "clone", TPM_GIT_URL, ctx.config.tpm_dir])
    ctx.success("TPM installed")


_TMUX_PLUGIN_LINE = re.compile(r"""^\s*set(?:-option)?\s+(?:-\w+\s+)*@plugin\s+['"]?([^'"\s]+)""")


def tmux_plugin_names(conf_text: str) -> list[str]:
    """Directory names TPM installs for each '@plugin' line of a tmux.conf.

    Pure function: "set -g @plugin 'tmux-plugins/tmux-sensible'" gives
    'tmux-sensible'. Commented-out lines are ignored.
    """
    names = []
    for line in conf_text.splitlines():
        match = _TMUX_PLUGIN_LINE.match(line)
        if match:
            names.append(match.group(1).rstrip("/").rsplit("/", 1)[-1])
    return names


def _tmux_plugins_present(ctx: ProvisionContext) -> bool:
    tmux_conf = os.path.join(ctx.config.home, ".tmux.conf")
    try:
        with open(tmux_conf, "r", encoding="utf-8", errors="replace") as f:
            names = tmux_plugin_names(f.read())
    except FileNotFoundError:
        return False
    plugins_dir = os.path.dirname(ctx.config.tpm_dir)
    return all(os.path.isdir(os.path.join(plugins_dir, name)) for name in names)


def install_tmux_plugins(ctx: ProvisionContext) -> None:
    tmux_conf = os.path.join(ctx.config.home, ".tmux.conf")
    installer = os.path.join(ctx.config.tpm_dir, "bin", "install_plugins")
    if not os.path.isfile(tmux_conf):
        raise MissingDependencyError("~/.tmux.conf is not in place")
    if not os.access(installer, os.X_OK):
        raise MissingDependencyError("TPM is not installed")
    ctx.info("Installing tmux plugins...")
    _run(ctx, [installer])
    ctx.success("tmux plugins installed")


# ============================================
# Keyboard and shell
# ============================================


def _xmodmap_configured(ctx: ProvisionContext) -> bool:
    try:
        with open(ctx.config.xmodmap_file, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()
    except FileNotFoundError:
        return False
    return XMODMAP_MARKER in content


def setup_capslock_remap(ctx: ProvisionContext) -> None:
    with open(ctx.config.xmodmap_file, "a", encoding="utf-8") as f:
        f.write(XMODMAP_BLOCK)
    ctx.success("Created ~/.Xmodmap for capslock -> escape")
    ctx.warn("Run 'xmodmap ~/.Xmodmap' or re-login to apply")
    ctx.warn("Note: For Wayland, consider using 'keyd' or your DE's keyboard settings")


def _login_shell() -> str:
    """The login shell recorded in the passwd database, or '' if unknown."""
    try:
        return pwd.getpwuid(os.getuid()).pw_shell
    except KeyError:
        return ""


def _using_zsh(ctx: ProvisionContext) -> bool:
    # $SHELL only changes at next login, so check passwd too after a chsh.
    if os.path.basename(ctx.config.shell) == "zsh":
        return True
    return os.path.basename(_login_shell()) == "zsh"


def set_default_shell(ctx: ProvisionContext) -> str:
    _require(ctx, "zsh")
    zsh_path = ctx.capabilities.path("zsh")
    ctx.info("Changing default shell to zsh...")

    try:
        with open(ETC_SHELLS, "r", encoding="utf-8", errors="replace") as f:
            registered = {line.strip() for line in f}
    except FileNotFoundError:
        registered = set()
    if zsh_path not in registered:
        _run(ctx, privileged(["tee", "-a", ETC_SHELLS]), input=zsh_path + "\n", quiet=True)

    _run(ctx, ["chsh", "-s", zsh_path])
    ctx.success("Default shell changed to zsh")
    return zsh_path


# ============================================
# Plan
# ============================================


def dotfile_link_steps(dotfiles_dir: str, home: str) -> list[LinkStep]:
    return [
        LinkStep(os.path.join(dotfiles_dir, src), os.path.join(home, dest))
        for src, dest in DOTFILE_LINKS
    ]


def build_default_steps(dotfiles_dir: str, home: str) -> list[Step]:
    """The full plan: tools first, then links, then tmux plugins and the login shell."""
    return [
        InstallStep(
            "system dependencies", install_system_deps, detect=_system_deps_present,
            prompt="Install system dependencies (git, curl, zsh)?",
        ),
        InstallStep("fzf", install_fzf, detect=_tool_present("fzf"), prompt="Install fzf?"),
        InstallStep("ripgrep", install_ripgrep, detect=_tool_present("rg"), prompt="Install ripgrep?"),
        InstallStep("zoxide", install_zoxide, detect=_tool_present("zoxide"), prompt="Install zoxide?"),
        InstallStep(
            "starship", install_starship, detect=_tool_present("starship"),
            prompt="Install Starship prompt?",
        ),
        InstallStep("neovim", install_neovim, detect=_tool_present("nvim"), prompt="Install Neovim?"),
        InstallStep("lazyvim", setup_lazyvim, detect=_lazyvim_present, prompt="Setup LazyVim?"),
        InstallStep(
            "tpm", install_tpm, detect=_tpm_present,
            prompt="Install tmux plugin manager (TPM)?",
        ),
        InstallStep(
            "capslock remap", setup_capslock_remap, detect=_xmodmap_configured,
            prompt="Setup capslock -> escape mapping (X11)?", platforms=("Linux",),
        ),
        *dotfile_link_steps(dotfiles_dir, home),
        InstallStep("tmux plugins", install_tmux_plugins, detect=_tmux_plugins_present),
        InstallStep(
            "default shell", set_default_shell, detect=_using_zsh,
            prompt="Set zsh as default shell?",
        ),
    ]
