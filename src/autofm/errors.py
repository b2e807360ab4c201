"""Error types raised while reconciling front matter."""

from __future__ import annotations

from pathlib import Path


class AutoFMError(Exception):
    """Base exception for AutoFM operations.

    Attributes:
        code: Machine-readable error identifier.
        path: File the error relates to, when known.
    """

    code = "autofm_error"

    def __init__(self, message: str, *, code: str | None = None, path: Path | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.path = path


class FileMissingError(AutoFMError):
    """Raised when a file disappears before it can be processed."""

    code = "file_not_found"


class ReadError(AutoFMError):
    """Raised when a file cannot be read."""

    code = "read_error"


class MetadataParseError(AutoFMError):
    """Raised when a front matter block is malformed."""

    code = "parse_error"


class WriteError(AutoFMError):
    """Raised when rewritten content cannot be persisted."""

    code = "write_error"


class WatchStartError(AutoFMError):
    """Raised when the directory watcher cannot be started."""

    code = "watch_start_error"


class InvalidTemplateError(AutoFMError):
    """Raised when a template definition or generated value is invalid."""

    code = "invalid_template"


class BackupError(AutoFMError):
    """Raised when backup bookkeeping fails."""

    code = "backup_error"


__all__ = [
    "AutoFMError",
    "FileMissingError",
    "ReadError",
    "MetadataParseError",
    "WriteError",
    "WatchStartError",
    "InvalidTemplateError",
    "BackupError",
]
