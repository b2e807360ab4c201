"""Derive title, date, and raw category segments from a file's location."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path, PurePosixPath
from typing import Optional

# Leading date (YYYY MM DD, separated by -, _, . or nothing) then free text.
FILE_NAME_PATTERN = re.compile(r"^.?(\d{4})[-_.]?(\d{2})[-_.]?(\d{2})[-_.@#\s]*(.*)$")
_TITLE_STRIP = "-_.@# \t"


@dataclass(frozen=True, slots=True)
class FileLocation:
    """Immutable description of a content file relative to the watch root.

    Attributes:
        path: Absolute path to the file.
        relative_path: POSIX-style path relative to the watch root.
        file_name: File name including extension.
        base_name: File name without its final extension.
        extension: Final extension including the leading dot.
        parts: Relative path segments, file name last.
    """

    path: Path
    relative_path: str
    file_name: str
    base_name: str
    extension: str
    parts: tuple[str, ...]

    @classmethod
    def from_path(cls, path: Path, root: Path) -> "FileLocation":
        """Build a location for ``path`` under ``root``.

        Paths outside the root are described by their file name alone.
        """
        absolute = path.expanduser().resolve()
        base = root.expanduser().resolve()
        try:
            relative = absolute.relative_to(base)
        except ValueError:
            relative = Path(absolute.name)
        posix = PurePosixPath(*relative.parts) if relative.parts else PurePosixPath(absolute.name)
        parts = tuple(part for part in posix.parts if part not in ("", "."))
        return cls(
            path=absolute,
            relative_path=posix.as_posix(),
            file_name=absolute.name,
            base_name=absolute.stem,
            extension=absolute.suffix,
            parts=parts,
        )

    @property
    def depth(self) -> int:
        """Number of relative segments, counting the file name."""
        return len(self.parts)

    @property
    def directory_segments(self) -> tuple[str, ...]:
        """Segments strictly between the watch root and the file name."""
        return self.parts[:-1]


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of classifying a file location.

    Attributes:
        title: Title derived from the file name.
        date: Calendar date parsed from the file name, when present.
        raw_segments: Directory segments between the root and the file.
    """

    title: str
    date: Optional[date]
    raw_segments: tuple[str, ...]


def parse_file_name(stem: str) -> tuple[str, Optional[date]]:
    """Split a file stem into a title and an optional leading date.

    Args:
        stem: File name with its extension removed.

    Returns:
        tuple[str, Optional[date]]: Cleaned title and the parsed date, if any.
    """
    match = FILE_NAME_PATTERN.match(stem)
    if match is None:
        return stem, None

    year, month, day, remainder = match.groups()
    try:
        parsed = date(int(year), int(month), int(day))
    except ValueError:
        return stem, None

    title = remainder.strip(_TITLE_STRIP)
    return (title or stem), parsed


def classify_location(location: FileLocation) -> Classification:
    """Derive the title/date/segment triple for a file location."""
    title, parsed = parse_file_name(location.base_name)
    return Classification(title=title, date=parsed, raw_segments=location.directory_segments)


__all__ = [
    "FILE_NAME_PATTERN",
    "FileLocation",
    "Classification",
    "parse_file_name",
    "classify_location",
]
