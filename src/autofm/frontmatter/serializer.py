"""Read, order, render, and write YAML front matter blocks."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import yaml

from autofm.errors import FileMissingError, MetadataParseError, ReadError, WriteError

LOGGER = logging.getLogger(__name__)

DELIMITER = "---"
BOM = "\ufeff"
_BLOCK_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?:(?P<body>.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL,
)

MetadataRecord = dict[str, Any]


@dataclass(slots=True)
class ParsedDocument:
    """A content file split into its metadata and body.

    Attributes:
        record: Parsed metadata, or ``None`` when no valid block exists.
        body: Content following the block (the whole text when there is none).
        has_block: Whether a well-formed block was found at the top.
        text: Original file text.
    """

    record: Optional[MetadataRecord]
    body: str
    has_block: bool
    text: str

    @property
    def is_empty(self) -> bool:
        """Whether the document carries no usable metadata."""
        return not self.record


def parse_block(source: str) -> MetadataRecord:
    """Parse the YAML between the delimiters into a mapping.

    Raises:
        MetadataParseError: If the YAML is invalid or not a mapping.
    """
    try:
        data = yaml.safe_load(source) if source.strip() else {}
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        # PyYAML raises ValueError for impossible timestamps such as 2024-13-45.
        raise MetadataParseError(f"Invalid front matter YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MetadataParseError("Front matter must be a mapping.")
    return {str(key): value for key, value in data.items()}


def split_document(text: str, *, path: Path | None = None) -> ParsedDocument:
    """Split text into front matter and body.

    Malformed blocks are logged and the whole text is treated as body so that a
    fresh block can be prepended without discarding anything.
    """
    if text.startswith(BOM):
        text = text[len(BOM) :]
    if not text.startswith(DELIMITER):
        return ParsedDocument(record=None, body=text, has_block=False, text=text)

    match = _BLOCK_PATTERN.match(text)
    if match is None:
        LOGGER.warning("Unterminated front matter block in %s; treating as body.", path or "<text>")
        return ParsedDocument(record=None, body=text, has_block=False, text=text)

    try:
        record = parse_block(match.group("body") or "")
    except MetadataParseError as exc:
        LOGGER.warning("Ignoring malformed front matter in %s: %s", path or "<text>", exc)
        return ParsedDocument(record=None, body=text, has_block=False, text=text)

    return ParsedDocument(record=record, body=text[match.end() :], has_block=True, text=text)


def read_document(path: Path) -> ParsedDocument:
    """Read and split a content file.

    Raises:
        FileMissingError: If the file no longer exists.
        ReadError: If the file cannot be read or decoded.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FileMissingError(f"File does not exist: {path}", path=path) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(f"Failed to read {path}: {exc}", path=path) from exc
    return split_document(text, path=path)


def order_fields(record: Mapping[str, Any], key_order: Sequence[str]) -> MetadataRecord:
    """Return a copy with configured keys first, then the rest in mapping order."""
    ordered: MetadataRecord = {key: record[key] for key in key_order if key in record}
    for key, value in record.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


def records_equal(left: Optional[Mapping[str, Any]], right: Optional[Mapping[str, Any]]) -> bool:
    """Deep equality over keys and values, ignoring key order."""
    return dict(left or {}) == dict(right or {})


def render_block(record: Mapping[str, Any]) -> str:
    """Render a metadata record as a delimited YAML block."""
    dumped = yaml.safe_dump(
        dict(record),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=None,
    )
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n"


def render_document(record: Mapping[str, Any], body: str) -> str:
    """Prepend a rendered block to the body content."""
    return render_block(record) + body


def write_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary file in the same directory.

    Raises:
        WriteError: If the content cannot be written or moved into place.
    """
    directory = path.parent
    try:
        handle, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    except OSError as exc:
        raise WriteError(f"Failed to write {path}: {exc}", path=path) from exc
    temp_path = Path(temp_name)
    try:
        with os.fdopen(handle, "w", encoding="utf-8", newline="") as stream:
            stream.write(text)
        try:
            os.chmod(temp_path, path.stat().st_mode & 0o7777)
        except FileNotFoundError:
            pass
        os.replace(temp_path, path)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise WriteError(f"Failed to write {path}: {exc}", path=path) from exc


__all__ = [
    "DELIMITER",
    "MetadataRecord",
    "ParsedDocument",
    "order_fields",
    "parse_block",
    "read_document",
    "records_equal",
    "render_block",
    "render_document",
    "split_document",
    "write_atomic",
]
