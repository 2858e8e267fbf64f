"""Backup-and-symlink of config files.

A destination is never silently overwritten: it is either already the
right symlink, left alone because the user declined, or moved to a unique
``.bak.<timestamp>`` path before the new link is created.
"""

import os
from collections.abc import Callable
from datetime import datetime

from dotfiles_kit.context import ProvisionContext, StepResult, StepStatus

_BACKUP_TIMESTAMP = "%Y%m%d%H%M%S"


def unique_backup_path(
    path: str, now: datetime, exists: Callable[[str], bool] = os.path.lexists,
) -> str:
    """Return '<path>.bak.<YYYYmmddHHMMSS>', adding '.1', '.2', ... if taken.

    A counter disambiguates repeated runs within the same second.
    """
    base = f"{path}.bak.{now.strftime(_BACKUP_TIMESTAMP)}"
    if not exists(base):
        return base
    counter = 1
    while exists(f"{base}.{counter}"):
        counter += 1
    return f"{base}.{counter}"


def is_link_to(destination: str, source: str) -> bool:
    """True when *destination* is a symlink that already points at *source*."""
    if not os.path.islink(destination):
        return False
    if os.readlink(destination) == source:
        return True
    return os.path.realpath(destination) == os.path.realpath(source)


def move_aside(ctx: ProvisionContext, path: str) -> str:
    """Rename *path* (file, directory, or dangling link) to a unique backup path."""
    backup = unique_backup_path(path, ctx.now())
    os.rename(path, backup)
    ctx.warn(f"Backed up to: {backup}")
    return backup


def link_file(ctx: ProvisionContext, source: str, destination: str, name: str = "") -> StepResult:
    """Symlink *destination* to *source*, backing up whatever was there first."""
    name = name or f"link {os.path.basename(destination)}"

    if not os.path.lexists(source):
        ctx.warn(f"Missing dotfile, not linking: {source}")
        return StepResult(name, StepStatus.SKIPPED, f"source not found: {source}")

    if os.path.lexists(destination):
        if is_link_to(destination, source):
            ctx.success(f"Already linked: {destination}")
            return StepResult(name, StepStatus.SATISFIED)

        if not ctx.confirm(f"File exists: {destination}. Backup and replace?"):
            ctx.warn(f"Skipping: {destination}")
            return StepResult(name, StepStatus.DECLINED)
        move_aside(ctx, destination)

    os.makedirs(os.path.dirname(destination), exist_ok=True)
    os.symlink(source, destination)
    ctx.success(f"Linked: {destination} -> {source}")
    return StepResult(name, StepStatus.DONE)
