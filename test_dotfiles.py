import dataclasses
import datetime
import re

from macsetup.config import SetupConfig
from macsetup.dotfiles import backup_path_for, install_tree, trees_match
from macsetup.provisioner import Status, run
from macsetup.steps import dotfiles_step


def snapshot(root):
    return {
        str(p.relative_to(root)): p.read_text()
        for p in sorted(root.rglob("*")) if p.is_file()
    }


def test_existing_directory_is_backed_up_before_copy(ctx, config, home):
    target = home / ".opencode"
    (target / "old").mkdir(parents=True)
    (target / "opencode.json").write_text('{"theme": "dark"}\n')
    (target / "old" / "notes.txt").write_text("keep me\n")
    before = snapshot(target)

    result = run([dotfiles_step(config, ctx)], ctx, config, is_online=lambda: True)

    assert result.ok
    entries = sorted(p.name for p in home.iterdir())
    assert len(entries) == 2
    backup = next(p for p in home.iterdir() if p.name != ".opencode")
    assert re.fullmatch(r"\.opencode\.backup\.\d{8}_\d{6}", backup.name)
    assert snapshot(backup) == before
    assert snapshot(target) == snapshot(config.dotfiles_source)


def test_copy_without_existing_target_makes_no_backup(ctx, config, home):
    result = run([dotfiles_step(config, ctx)], ctx, config, is_online=lambda: True)

    assert result.ok
    assert [p.name for p in home.iterdir()] == [".opencode"]


def test_identical_copy_is_left_alone(ctx, config, home):
    step = dotfiles_step(config, ctx)
    run([step], ctx, config, is_online=lambda: True)

    second = run([step], ctx, config, is_online=lambda: True)

    assert second.outcomes[0].status == Status.SATISFIED
    assert [p.name for p in home.iterdir()] == [".opencode"]


def test_missing_bundled_directory_fails(ctx, config, tmp_path):
    missing = dataclasses.replace(config, dotfiles_source=tmp_path / "nowhere")

    result = run([dotfiles_step(missing, ctx)], ctx, missing, is_online=lambda: True)

    assert result.failed_step == "OpenCode dotfiles"
    assert "not found" in result.error


def test_trees_match_sees_nested_content_changes(dotfiles_source, tmp_path):
    copy = tmp_path / "copy"
    install_tree(dotfiles_source, copy)
    assert trees_match(dotfiles_source, copy)

    (copy / "agent" / "review.md").write_text("Something else.\n")
    assert not trees_match(dotfiles_source, copy)


def test_trees_match_sees_extra_files(dotfiles_source, tmp_path):
    copy = tmp_path / "copy"
    install_tree(dotfiles_source, copy)
    (copy / "stray.txt").write_text("x")

    assert not trees_match(dotfiles_source, copy)


def test_backup_name_does_not_collide(tmp_path):
    target = tmp_path / ".opencode"
    now = datetime.datetime(2026, 10, 19, 8, 30, 0)
    taken = tmp_path / ".opencode.backup.20261019_083000"
    taken.mkdir()

    assert backup_path_for(target, now=now).name == ".opencode.backup.20261019_083000_1"


def test_trees_match_sees_file_replaced_by_directory(dotfiles_source, tmp_path):
    target = tmp_path / "target"
    (target / "opencode.json").mkdir(parents=True)
    (target / "agent").write_text("not a directory\n")

    assert not trees_match(dotfiles_source, target)


def test_bundled_directory_ships_inside_the_package():
    source = SetupConfig().dotfiles_source

    assert source.is_dir()
    assert (source / "opencode.json").is_file()
    assert source.parent.name == "macsetup"
