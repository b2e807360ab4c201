"""Tests for front matter splitting, ordering, and rendering."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from autofm.errors import FileMissingError
from autofm.frontmatter import (
    order_fields,
    read_document,
    records_equal,
    render_document,
    split_document,
    write_atomic,
)


def test_split_document_reads_block_and_body() -> None:
    text = "---\ntitle: Hello\ndate: 2024-03-01\n---\n# Body\n"

    document = split_document(text)

    assert document.has_block
    assert document.record == {"title": "Hello", "date": date(2024, 3, 1)}
    assert document.body == "# Body\n"


def test_empty_block_parses_as_empty_mapping() -> None:
    document = split_document("---\n---\nbody")

    assert document.has_block
    assert document.record == {}
    assert document.is_empty
    assert document.body == "body"


@pytest.mark.parametrize(
    "text",
    [
        "---\ntitle: [unclosed\n---\nBody\n",
        "---\n- a\n- b\n---\nBody\n",
        "---\ntitle: never closed\nBody\n",
        "---\ntitle: x\ndate: 2024-13-45\n---\nBody\n",
    ],
)
def test_malformed_blocks_keep_the_whole_text(text: str, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="autofm.frontmatter.serializer"):
        document = split_document(text)

    assert document.record is None
    assert not document.has_block
    assert document.body == text
    assert caplog.records


def test_leading_byte_order_mark_is_ignored() -> None:
    document = split_document("\ufeff---\ntitle: Mine\n---\nbody\n")

    assert document.has_block
    assert document.record == {"title": "Mine"}
    assert document.body == "body\n"


def test_text_without_block_is_all_body() -> None:
    document = split_document("# Just content\n")

    assert document.record is None
    assert document.body == "# Just content\n"


def test_order_fields_puts_configured_keys_first() -> None:
    record = {"tags": [], "zeta": 1, "title": "t", "alpha": 2}

    ordered = order_fields(record, ["title", "date", "tags"])

    assert list(ordered) == ["title", "tags", "zeta", "alpha"]


def test_records_equal_ignores_key_order() -> None:
    assert records_equal({"a": 1, "b": [["x"]]}, {"b": [["x"]], "a": 1})
    assert not records_equal({"a": 1}, {"a": 2})


def test_render_document_uses_flow_style_chains() -> None:
    text = render_document({"title": "Hello", "categories": [["tech", "backend"]], "tags": []}, "Body\n")

    assert text.startswith("---\ntitle: Hello\n")
    assert "- [tech, backend]" in text
    assert "tags: []" in text
    assert text.endswith("---\nBody\n")
    assert split_document(text).record == {
        "title": "Hello",
        "categories": [["tech", "backend"]],
        "tags": [],
    }


def test_write_atomic_replaces_content_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "post.md"
    target.write_text("old", encoding="utf-8")

    write_atomic(target, "new content\n")

    assert target.read_text(encoding="utf-8") == "new content\n"
    assert [path.name for path in tmp_path.iterdir()] == ["post.md"]


def test_read_document_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileMissingError) as excinfo:
        read_document(tmp_path / "missing.md")

    assert excinfo.value.code == "file_not_found"
