"""Tests for template parsing, generators, and persistence."""

from __future__ import annotations

import zlib
from pathlib import Path

import pytest

from autofm.classification import CategoryPolicy, FileLocation, classify_location
from autofm.config import AutoFMConfig, ConfigManager
from autofm.errors import InvalidTemplateError
from autofm.templates import GenerationContext, GeneratorValue, LiteralValue, TemplateManager
from autofm.templates.values import parse_template_value, resolve_template_value

from conftest import FIXED_NOW, FIXED_STAMP


def _context(root: Path, relative: str, config: AutoFMConfig | None = None) -> GenerationContext:
    config = config or AutoFMConfig()
    location = FileLocation.from_path(root / relative, root)
    classification = classify_location(location)
    return GenerationContext(
        location=location,
        classification=classification,
        categories=CategoryPolicy.from_config(config).derive(classification.raw_segments),
        now=FIXED_NOW,
        date_format=config.date_format,
    )


def test_parse_template_value_variants() -> None:
    assert parse_template_value("title", "{title}") == LiteralValue("{title}")
    assert parse_template_value("abbrlink", {"generator": "abbrlink", "representation": "dec"}) == (
        GeneratorValue("abbrlink", {"representation": "dec"})
    )


@pytest.mark.parametrize(
    "raw",
    [
        {"generator": "nope"},
        {"value": "missing generator key"},
        {"generator": ""},
    ],
)
def test_invalid_generator_specs_raise(raw: dict) -> None:
    with pytest.raises(InvalidTemplateError):
        parse_template_value("field", raw)


def test_unsupported_literal_raises() -> None:
    with pytest.raises(InvalidTemplateError):
        parse_template_value("field", [{"nested": "mapping"}])


def test_placeholders_expand(tmp_path: Path) -> None:
    context = _context(tmp_path, "tech/2024-03-01_hello-world.md")

    value = resolve_template_value(
        LiteralValue("{title}  from {dirname}/{filename}{extension} on {date}"), "summary", context
    )

    assert value == "hello-world from tech/2024-03-01_hello-world.md on 2024-03-01"


def test_date_placeholder_falls_back_to_now(tmp_path: Path) -> None:
    context = _context(tmp_path, "notes.md")

    assert resolve_template_value(LiteralValue("{date}"), "stamp", context) == FIXED_STAMP


def test_generators(tmp_path: Path) -> None:
    context = _context(tmp_path, "tech/web/post.md")

    expected_crc = format(zlib.crc32(b"tech/web/post.md") & 0xFFFFFFFF, "x")
    assert resolve_template_value(GeneratorValue("abbrlink"), "abbrlink", context) == expected_crc
    assert resolve_template_value(
        GeneratorValue("abbrlink", {"representation": "dec"}), "abbrlink", context
    ) == str(int(expected_crc, 16))
    assert resolve_template_value(GeneratorValue("path_categories"), "categories", context) == [
        ["tech", "web"]
    ]
    assert resolve_template_value(GeneratorValue("filename"), "slug", context) == "post"
    assert resolve_template_value(GeneratorValue("relative_path"), "source", context) == "tech/web/post.md"
    assert resolve_template_value(GeneratorValue("now"), "created", context) == FIXED_STAMP
    assert len(resolve_template_value(GeneratorValue("uuid"), "uuid", context)) == 36


def test_abbrlink_rejects_unknown_algorithm(tmp_path: Path) -> None:
    context = _context(tmp_path, "post.md")

    with pytest.raises(InvalidTemplateError):
        resolve_template_value(GeneratorValue("abbrlink", {"algorithm": "md5"}), "abbrlink", context)


def test_apply_blog_template(tmp_path: Path) -> None:
    manager = TemplateManager(AutoFMConfig())

    resolved = manager.apply_template("blog", _context(tmp_path, "tech/2024-03-01_hello.md"))

    assert resolved["title"] == "hello"
    assert resolved["categories"] == [["tech"]]
    assert resolved["author"] == "AutoFM"
    assert resolved["draft"] is False


def test_unknown_template_falls_back_to_default(caplog: pytest.LogCaptureFixture) -> None:
    manager = TemplateManager(AutoFMConfig())

    with caplog.at_level("WARNING", logger="autofm.templates"):
        template = manager.get_template("missing")

    assert template == AutoFMConfig().templates["default"]
    assert "missing" in caplog.text


def test_validate_reports_bad_templates() -> None:
    config = AutoFMConfig.model_validate({"templates": {"broken": {"x": {"generator": "nope"}}}})

    problems = TemplateManager(config).validate()

    assert len(problems) == 1
    assert problems[0].startswith("broken:")


def test_create_and_delete_template_persist(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path)
    templates = TemplateManager(manager.load(include_env=False), manager)

    templates.create_template("series", {"title": "{title}", "series": "rust"})

    reloaded = manager.load(include_env=False)
    assert reloaded.templates["series"] == {"title": "{title}", "series": "rust"}
    assert "blog" in reloaded.templates

    assert templates.delete_template("series") is True
    assert "series" not in manager.load(include_env=False).templates


def test_builtin_templates_cannot_be_deleted() -> None:
    templates = TemplateManager(AutoFMConfig())

    assert templates.delete_template("default") is False
    assert "default" in templates.list_templates()


def test_create_template_rejects_invalid_definition(tmp_path: Path) -> None:
    templates = TemplateManager(AutoFMConfig(), ConfigManager(tmp_path))

    with pytest.raises(InvalidTemplateError):
        templates.create_template("bad", {"slug": {"generator": "unknown"}})
    assert not (tmp_path / "autofm-config.yaml").exists()
