"""Tests for backup naming and backup-and-symlink linking."""

import os

from conftest import FIXED_NOW

from dotfiles_kit.context import StepStatus
from dotfiles_kit.links import is_link_to, link_file, unique_backup_path


def _dotfile(ctx, name=".zshrc", content="export EDITOR=nvim\n"):
    path = os.path.join(ctx.config.dotfiles_dir, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


# ============================================
# unique_backup_path
# ============================================


def test_backup_path_is_original_plus_timestamp():
    assert unique_backup_path("/home/dev/.zshrc", FIXED_NOW, exists=lambda p: False) == (
        "/home/dev/.zshrc.bak.20261019120000"
    )


def test_backup_path_appends_counter_when_timestamp_taken():
    taken = {"/home/dev/.zshrc.bak.20261019120000", "/home/dev/.zshrc.bak.20261019120000.1"}
    assert unique_backup_path("/home/dev/.zshrc", FIXED_NOW, exists=taken.__contains__) == (
        "/home/dev/.zshrc.bak.20261019120000.2"
    )


# ============================================
# link_file
# ============================================


def test_links_when_destination_is_free(make_ctx):
    ctx, reader = make_ctx()
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")

    result = link_file(ctx, source, dest)

    assert result.status is StepStatus.DONE
    assert os.readlink(dest) == source
    assert reader.prompts == []


def test_creates_missing_parent_directories(make_ctx):
    ctx, _ = make_ctx()
    source = _dotfile(ctx, "starship.toml", "add_newline = false\n")
    dest = os.path.join(ctx.config.home, ".config", "starship.toml")

    assert link_file(ctx, source, dest).status is StepStatus.DONE
    assert is_link_to(dest, source)


def test_correct_symlink_is_satisfied_without_prompting(make_ctx):
    ctx, reader = make_ctx()
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")
    os.symlink(source, dest)

    result = link_file(ctx, source, dest)

    assert result.status is StepStatus.SATISFIED
    assert reader.prompts == []


def test_declining_leaves_existing_file_byte_for_byte(make_ctx):
    ctx, reader = make_ctx(answers=["n"])
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")
    original = b"# hand-written config\x00\xff\n"
    with open(dest, "wb") as f:
        f.write(original)

    result = link_file(ctx, source, dest)

    assert result.status is StepStatus.DECLINED
    assert not os.path.islink(dest)
    with open(dest, "rb") as f:
        assert f.read() == original
    assert sorted(os.listdir(ctx.config.home)) == [".zshrc"]
    assert reader.prompts == [f"File exists: {dest}. Backup and replace? [Y/n] "]


def test_accepting_backs_up_exactly_once_then_links(make_ctx):
    ctx, _ = make_ctx(answers=["y"])
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")
    with open(dest, "w", encoding="utf-8") as f:
        f.write("old\n")

    result = link_file(ctx, source, dest)

    assert result.status is StepStatus.DONE
    assert os.readlink(dest) == source
    backups = [n for n in os.listdir(ctx.config.home) if n.startswith(".zshrc.bak.")]
    assert backups == [".zshrc.bak.20261019120000"]
    with open(os.path.join(ctx.config.home, backups[0]), encoding="utf-8") as f:
        assert f.read() == "old\n"


def test_repeated_replacements_in_same_second_get_unique_backups(make_ctx):
    ctx, _ = make_ctx(answers=["", ""])
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")

    for content in ("first\n", "second\n"):
        if os.path.lexists(dest):
            os.remove(dest)
        with open(dest, "w", encoding="utf-8") as f:
            f.write(content)
        assert link_file(ctx, source, dest).status is StepStatus.DONE

    backups = sorted(n for n in os.listdir(ctx.config.home) if n.startswith(".zshrc.bak."))
    assert backups == [".zshrc.bak.20261019120000", ".zshrc.bak.20261019120000.1"]


def test_symlink_to_elsewhere_is_backed_up_not_followed(make_ctx, tmp_path):
    ctx, _ = make_ctx(answers=["y"])
    source = _dotfile(ctx)
    other = tmp_path / "other-zshrc"
    other.write_text("keep me\n")
    dest = os.path.join(ctx.config.home, ".zshrc")
    os.symlink(str(other), dest)

    assert link_file(ctx, source, dest).status is StepStatus.DONE
    assert other.read_text() == "keep me\n"
    assert os.readlink(os.path.join(ctx.config.home, ".zshrc.bak.20261019120000")) == str(other)


def test_dangling_symlink_counts_as_existing(make_ctx):
    ctx, reader = make_ctx(answers=["y"])
    source = _dotfile(ctx)
    dest = os.path.join(ctx.config.home, ".zshrc")
    os.symlink("/nonexistent/zshrc", dest)

    assert link_file(ctx, source, dest).status is StepStatus.DONE
    assert len(reader.prompts) == 1
    assert os.readlink(dest) == source


def test_missing_source_is_skipped_and_destination_untouched(make_ctx):
    ctx, reader = make_ctx()
    dest = os.path.join(ctx.config.home, ".tmux.conf")
    with open(dest, "w", encoding="utf-8") as f:
        f.write("set -g mouse on\n")

    result = link_file(ctx, os.path.join(ctx.config.dotfiles_dir, ".tmux.conf"), dest)

    assert result.status is StepStatus.SKIPPED
    assert not os.path.islink(dest)
    assert reader.prompts == []
