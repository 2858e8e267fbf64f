"""Network fetches: GitHub release lookup, downloads, tarballs, install scripts.

Every HTTP call goes through _request_with_retry, which retries transport
errors and 5xx/429 responses with a doubling backoff before raising
FetchError. Other 4xx responses fail immediately.
"""

import os
import tarfile
import time
from collections.abc import Callable

import httpx

from dotfiles_kit.config import (
    FETCH_ATTEMPTS,
    FETCH_BACKOFF_SECONDS,
    FZF_REPO,
    GITHUB_API,
    GITHUB_DOWNLOAD,
    NEOVIM_REPO,
    RIPGREP_REPO,
)
from dotfiles_kit.context import ProvisionContext
from dotfiles_kit.errors import FetchError
from dotfiles_kit.utils import run_checked

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_retryable(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return isinstance(exc, httpx.TransportError)


def _request_with_retry(
    url: str,
    attempt_fn: Callable[[], object],
    sleep: Callable[[float], None] = time.sleep,
    attempts: int = FETCH_ATTEMPTS,
    backoff: float = FETCH_BACKOFF_SECONDS,
):
    """Call *attempt_fn* up to *attempts* times. Returns its result or raises FetchError."""
    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return attempt_fn()
        except httpx.HTTPError as exc:
            if attempt == attempts or not _is_retryable(exc):
                raise FetchError(url, str(exc) or type(exc).__name__) from exc
            sleep(delay)
            delay *= 2
    raise FetchError(url, "no attempts made")


def fetch_text(client: httpx.Client, url: str, sleep: Callable[[float], None] = time.sleep) -> str:
    """GET *url* and return the body as text."""

    def _attempt() -> str:
        response = client.get(url, follow_redirects=True)
        response.raise_for_status()
        return response.text

    return _request_with_retry(url, _attempt, sleep=sleep)


def download(
    client: httpx.Client, url: str, dest: str, sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Stream *url* into the file *dest*. Returns *dest*."""

    def _attempt() -> str:
        with client.stream("GET", url, follow_redirects=True) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
        return dest

    return _request_with_retry(url, _attempt, sleep=sleep)


def latest_release_tag(client: httpx.Client, repo: str, sleep: Callable[[float], None] = time.sleep) -> str:
    """Return the tag name of the latest GitHub release of *repo* (e.g. 'v0.10.4')."""
    url = f"{GITHUB_API}/repos/{repo}/releases/latest"

    def _attempt() -> dict:
        response = client.get(
            url, headers={"Accept": "application/vnd.github+json"}, follow_redirects=True,
        )
        response.raise_for_status()
        return response.json()

    try:
        data = _request_with_retry(url, _attempt, sleep=sleep)
    except ValueError as exc:
        raise FetchError(url, f"invalid JSON: {exc}") from exc
    tag = data.get("tag_name") if isinstance(data, dict) else None
    if not tag:
        raise FetchError(url, "response has no tag_name")
    return tag


# ============================================
# Release asset names (pure functions)
# ============================================


def _strip_v(tag: str) -> str:
    return tag[1:] if tag.startswith("v") else tag


def _release_url(repo: str, tag: str, filename: str) -> str:
    return f"{GITHUB_DOWNLOAD}/{repo}/releases/download/{tag}/{filename}"


def neovim_archive_name(arch: str) -> str:
    """Neovim names its Linux builds x86_64 and arm64 (not aarch64)."""
    nvim_arch = "arm64" if arch == "aarch64" else arch
    return f"nvim-linux-{nvim_arch}"


def neovim_asset_url(tag: str, arch: str) -> str:
    return _release_url(NEOVIM_REPO, tag, f"{neovim_archive_name(arch)}.tar.gz")


def fzf_asset_url(tag: str, os_name: str, arch_alt: str) -> str:
    return _release_url(FZF_REPO, tag, f"fzf-{_strip_v(tag)}-{os_name.lower()}_{arch_alt}.tar.gz")


def ripgrep_archive_name(tag: str, arch: str) -> str:
    return f"ripgrep-{_strip_v(tag)}-{arch}-unknown-linux-musl"


def ripgrep_asset_url(tag: str, arch: str) -> str:
    return _release_url(RIPGREP_REPO, tag, f"{ripgrep_archive_name(tag, arch)}.tar.gz")


# ============================================
# Archives and scripts
# ============================================


def _is_within(directory: str, target: str) -> bool:
    directory = os.path.realpath(directory)
    target = os.path.realpath(target)
    return os.path.commonpath([directory, target]) == directory


def _link_target(dest: str, member: tarfile.TarInfo) -> str:
    # Symlinks resolve from the member's own directory, hardlinks from the archive root.
    if member.issym():
        return os.path.join(dest, os.path.dirname(member.name), member.linkname)
    return os.path.join(dest, member.linkname)


def extract_tarball(archive: str, dest: str) -> None:
    """Extract a .tar.gz into *dest*, refusing members that would land outside it.

    Link members are checked too: a symlink or hardlink pointing outside
    *dest* is refused, so later members cannot be written through it.
    """
    os.makedirs(dest, exist_ok=True)
    with tarfile.open(archive, "r:gz") as tar:
        members = tar.getmembers()
        for member in members:
            if not _is_within(dest, os.path.join(dest, member.name)):
                raise tarfile.TarError(f"Refusing to extract {member.name} outside {dest}")
            if (member.issym() or member.islnk()) and not _is_within(dest, _link_target(dest, member)):
                raise tarfile.TarError(
                    f"Refusing to extract link {member.name} -> {member.linkname} outside {dest}"
                )
        tar.extractall(dest, members=members)


def run_install_script(ctx: ProvisionContext, url: str, args: list[str] | None = None) -> None:
    """Fetch a shell installer over HTTPS and pipe it to sh, like 'curl | sh -s -- args'."""
    script = fetch_text(ctx.http, url, sleep=ctx.sleep)
    cmd = ["sh"]
    if args:
        cmd += ["-s", "--"] + list(args)
    run_checked(cmd, input=script, env=ctx.config.child_env())
