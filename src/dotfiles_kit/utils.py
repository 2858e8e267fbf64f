"""Core utility functions: logging and command execution."""

import os
import subprocess

from rich.console import Console

from dotfiles_kit.errors import CommandError

console = Console()


def log(message: str, style: str = "", log_file: str = "", out: Console | None = None) -> None:
    """Write a message to both the console (with optional style) and the run log file."""
    out = out or console
    if style:
        out.print(message, style=style, markup=False)
    else:
        out.print(message, markup=False)

    if not log_file:
        return
    try:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(message + "\n")
    except Exception:
        pass  # Never break the run over logging


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def privileged(args: list[str]) -> list[str]:
    """Prefix a command with sudo unless already running as root.

    Pure-ish function: only consults the effective uid.
    """
    if is_root():
        return list(args)
    return ["sudo"] + list(args)


def run_cmd(
    args: list[str],
    capture: bool = False,
    quiet: bool = False,
    env: dict[str, str] | None = None,
    input: str | None = None,
    cwd: str | None = None,
) -> subprocess.CompletedProcess:
    """Run a command, optionally capturing output or feeding stdin."""
    kwargs = {}
    if capture or quiet:
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
    if capture or quiet or input is not None:
        kwargs["text"] = True
    if input is not None:
        kwargs["input"] = input
    return subprocess.run(args, env=env, cwd=cwd, **kwargs)


def run_checked(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a command and raise CommandError on a non-zero exit."""
    try:
        result = run_cmd(args, **kwargs)
    except FileNotFoundError as exc:
        raise CommandError(args, 127, str(exc)) from exc
    if result.returncode != 0:
        stderr = result.stderr.strip() if isinstance(result.stderr, str) else ""
        raise CommandError(args, result.returncode, stderr)
    return result
