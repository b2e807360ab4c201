"""CLI tests for watch, process, status, and report commands."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from autofm.cli import cli
from autofm.frontmatter import split_document

from conftest import write_post


def _record(path: Path) -> dict:
    record = split_document(path.read_text(encoding="utf-8")).record
    assert record is not None
    return record


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["-h"])

    assert result.exit_code == 0
    assert "front matter" in result.output
    for command in ("watch", "process", "status", "config", "templates", "backups", "report"):
        assert command in result.output


def test_watch_init_processes_once_and_exits(blog_root: Path) -> None:
    post = write_post(blog_root, "tech/2024-03-01_hello-world.md")
    root_file = write_post(blog_root, "about.md")

    result = CliRunner().invoke(cli, ["watch", "--init", "-d", str(blog_root)])

    assert result.exit_code == 0, result.output
    assert "Watch summary" in result.output
    record = _record(post)
    assert record["title"] == "hello-world"
    assert record["categories"] == [["tech"]]
    assert "categories" not in _record(root_file)
    assert (blog_root / ".autofm" / "autofm.log").exists()


def test_watch_ct_regenerates_taxonomy(blog_root: Path) -> None:
    post = write_post(
        blog_root,
        "backend/post.md",
        "---\ntitle: Custom\ndate: 2020/01/01 00:00:00\ncategories:\n- [tech]\n---\nBody\n",
    )

    result = CliRunner().invoke(cli, ["watch", "--ct", "-d", str(blog_root), "--json"])

    assert result.exit_code == 0, result.output
    record = _record(post)
    assert record["title"] == "Custom"
    assert record["categories"] == [["backend"]]


def test_watch_init_with_backup_creates_copy(blog_root: Path) -> None:
    write_post(blog_root, "tech/post.md", "original\n")

    result = CliRunner().invoke(cli, ["watch", "-i", "-b", "-d", str(blog_root)])

    assert result.exit_code == 0, result.output
    backups = list((blog_root / ".autofm-backup").glob("tech_post_*.md"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == "original\n"


def test_process_json_output(blog_root: Path) -> None:
    post = write_post(blog_root, "tech/post.md")

    result = CliRunner().invoke(cli, ["process", str(post), "-d", str(blog_root), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["summary"] == {"processed": 1, "written": 1, "failed": 0}
    assert payload["results"][0]["changed"] is True


def test_process_exits_nonzero_on_failure(blog_root: Path) -> None:
    post = write_post(blog_root, "tech/post.md")

    result = CliRunner().invoke(
        cli, ["process", str(post), str(blog_root / "missing.md"), "-d", str(blog_root)]
    )

    assert result.exit_code == 1
    assert "Processed Files" in result.output
    assert _record(post)["categories"] == [["tech"]]


def test_process_force_with_template(blog_root: Path) -> None:
    post = write_post(blog_root, "tech/2024-03-01_hello-world.md", "---\ntitle: My Post\n---\nBody\n")

    result = CliRunner().invoke(
        cli, ["process", str(post), "-d", str(blog_root), "-f", "-t", "blog"]
    )

    assert result.exit_code == 0, result.output
    record = _record(post)
    assert record["title"] == "hello-world"
    assert record["author"] == "AutoFM"


def test_status_json(blog_root: Path) -> None:
    write_post(blog_root, "tech/a.md")
    write_post(blog_root, "b.md")

    result = CliRunner().invoke(cli, ["status", "-d", str(blog_root), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["markdown_files"] == 2
    assert payload["config_file"] is None
    assert payload["category_mode"] == "hierarchy"


def test_status_reports_config_error(blog_root: Path) -> None:
    (blog_root / "autofm-config.yaml").write_text("unknown_key: 1\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["status", "-d", str(blog_root)])

    assert result.exit_code == 1
    assert "unknown_key" in result.output


def test_report_counts_categories(blog_root: Path) -> None:
    write_post(blog_root, "a.md", "---\ntitle: A\ncategories:\n- [tech, web]\n---\n")
    write_post(blog_root, "b.md", "---\ntitle: B\ncategories: [life]\n---\n")
    write_post(blog_root, "c.md", "---\ntitle: C\n---\n")
    write_post(blog_root, "d.md", "no metadata\n")

    result = CliRunner().invoke(cli, ["report", "-d", str(blog_root), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["files"] == 4
    assert payload["categories"] == {"tech / web": 1, "life": 1}
    assert payload["uncategorized"] == ["c.md"]
    assert payload["missing_front_matter"] == ["d.md"]
