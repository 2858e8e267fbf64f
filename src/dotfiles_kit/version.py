"""Version information with git commit tracking.

The kit runs straight out of a dotfiles checkout, so the version string
carries the checkout's commit date and hash alongside the package version.
"""

from dotfiles_kit.config import REPO_DIR
from dotfiles_kit.utils import run_cmd

PACKAGE_VERSION = "1.0.0"


def _git_output(*args: str) -> str:
    # Always against the checkout this package lives in, never the caller's cwd.
    try:
        result = run_cmd(["git", "-C", REPO_DIR, *args], capture=True)
    except FileNotFoundError:
        return ""
    return result.stdout.strip() if result.returncode == 0 else ""


def format_version(commit: str | None, date: str | None, dirty: bool) -> str:
    """Pure function: '1.0.0 (2026-02-13 g3a7f2c1)', or just the package version outside git."""
    if not commit:
        return PACKAGE_VERSION
    suffix = "+dirty" if dirty else ""
    return f"{PACKAGE_VERSION} ({date or 'unknown'} g{commit}{suffix})"


def get_version() -> str:
    commit, _, date = _git_output("log", "-1", "--format=%h %cs").partition(" ")
    if not commit:
        return PACKAGE_VERSION
    dirty = _git_output("status", "--porcelain") != ""
    return format_version(commit, date, dirty)
