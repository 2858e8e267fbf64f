"""Tests for logging and command helpers."""

import io
import os

import pytest
from rich.console import Console

from dotfiles_kit import utils
from dotfiles_kit.errors import CommandError
from dotfiles_kit.utils import log, privileged, run_checked


# --- log ---

def test_log_prints_and_appends_to_file(tmp_path):
    out = Console(file=io.StringIO())
    log_file = tmp_path / "logs" / "install.log"

    log("✓ fzf installed", style="green", log_file=str(log_file), out=out)
    log("✓ rg installed", log_file=str(log_file), out=out)

    assert "fzf installed" in out.file.getvalue()
    assert log_file.read_text(encoding="utf-8") == "✓ fzf installed\n✓ rg installed\n"


def test_log_never_raises_when_file_is_unwritable(tmp_path):
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory")
    out = Console(file=io.StringIO())

    log("still printed", log_file=os.path.join(str(blocker), "install.log"), out=out)

    assert "still printed" in out.file.getvalue()


# --- privileged ---

def test_privileged_adds_sudo_for_regular_user(monkeypatch):
    monkeypatch.setattr(utils, "is_root", lambda: False)
    assert privileged(["apt-get", "update"]) == ["sudo", "apt-get", "update"]


def test_privileged_is_a_no_op_for_root(monkeypatch):
    monkeypatch.setattr(utils, "is_root", lambda: True)
    assert privileged(["apt-get", "update"]) == ["apt-get", "update"]


# --- run_checked ---

def test_run_checked_raises_on_non_zero_exit():
    with pytest.raises(CommandError) as excinfo:
        run_checked(["sh", "-c", "echo broken >&2; exit 3"], quiet=True)
    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "broken"


def test_run_checked_feeds_stdin():
    result = run_checked(["sh", "-c", "cat"], input="hello\n", capture=True)
    assert result.stdout == "hello\n"


def test_missing_executable_is_a_command_error():
    with pytest.raises(CommandError) as excinfo:
        run_checked(["definitely-not-a-real-binary-xyz"])
    assert excinfo.value.returncode == 127
