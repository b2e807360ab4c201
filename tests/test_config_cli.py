"""CLI tests for configuration, template, and backup commands."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from autofm.cli import cli
from autofm.config import ConfigManager

from conftest import write_post


def test_config_view_displays_config(blog_root: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "view", "-d", str(blog_root)])

    assert result.exit_code == 0
    assert "category_mode" in result.output


def test_config_set_updates_value_and_writes_diff(blog_root: Path) -> None:
    result = CliRunner().invoke(
        cli, ["config", "set", "backup.max_files", "--value", "4", "-d", str(blog_root)]
    )

    assert result.exit_code == 0, result.output
    assert "Updated backup.max_files" in result.output
    config = ConfigManager(blog_root).load(include_env=False)
    assert config.backup.max_files == 4


def test_config_set_rejects_unknown_key(blog_root: Path) -> None:
    result = CliRunner().invoke(
        cli, ["config", "set", "backup.bogus", "--value", "1", "-d", str(blog_root)]
    )

    assert result.exit_code != 0
    assert not (blog_root / "autofm-config.yaml").exists()


def test_config_validate_flags_bad_templates(blog_root: Path) -> None:
    (blog_root / "autofm-config.yaml").write_text(
        "templates:\n  broken:\n    slug:\n      generator: nope\n", encoding="utf-8"
    )

    result = CliRunner().invoke(cli, ["config", "validate", "-d", str(blog_root)])

    assert result.exit_code == 1
    assert "broken" in result.output


def test_config_validate_accepts_defaults(blog_root: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "validate", "-d", str(blog_root)])

    assert result.exit_code == 0
    assert "valid" in result.output


def test_templates_lifecycle(blog_root: Path) -> None:
    runner = CliRunner()

    created = runner.invoke(
        cli,
        [
            "templates",
            "create",
            "series",
            "--base",
            "default",
            "--field",
            "series=rust",
            "--field",
            "slug={\"generator\": \"filename\"}",
            "-d",
            str(blog_root),
        ],
    )
    assert created.exit_code == 0, created.output

    listed = runner.invoke(cli, ["templates", "list", "-d", str(blog_root)])
    assert "series" in listed.output

    shown = runner.invoke(cli, ["templates", "show", "series", "-d", str(blog_root)])
    assert "rust" in shown.output

    deleted = runner.invoke(cli, ["templates", "delete", "series", "-d", str(blog_root)])
    assert deleted.exit_code == 0
    assert "series" not in ConfigManager(blog_root).load(include_env=False).templates


def test_templates_create_rejects_unknown_generator(blog_root: Path) -> None:
    result = CliRunner().invoke(
        cli,
        ["templates", "create", "bad", "--field", "slug={generator: nope}", "-d", str(blog_root)],
    )

    assert result.exit_code == 1
    assert "nope" in result.output


def test_builtin_template_cannot_be_deleted(blog_root: Path) -> None:
    result = CliRunner().invoke(cli, ["templates", "delete", "default", "-d", str(blog_root)])

    assert result.exit_code == 1
    assert "built in" in result.output


def test_backups_list_restore_and_stats(blog_root: Path) -> None:
    post = write_post(blog_root, "tech/post.md", "original\n")
    runner = CliRunner()
    processed = runner.invoke(cli, ["process", str(post), "-b", "-d", str(blog_root)])
    assert processed.exit_code == 0, processed.output

    listed = runner.invoke(cli, ["backups", "list", "-d", str(blog_root), "--json"])
    assert listed.exit_code == 0, listed.output
    backups = json.loads(listed.stdout)["backups"]
    assert len(backups) == 1

    stats = runner.invoke(cli, ["backups", "stats", "-d", str(blog_root), "--json"])
    assert json.loads(stats.stdout)["count"] == 1

    restored = runner.invoke(
        cli, ["backups", "restore", backups[0]["backup_path"], "-d", str(blog_root)]
    )
    assert restored.exit_code == 0, restored.output
    assert post.read_text(encoding="utf-8") == "original\n"

    cleaned = runner.invoke(cli, ["backups", "cleanup", "-d", str(blog_root)])
    assert cleaned.exit_code == 0
    assert "Removed 0" in cleaned.output
