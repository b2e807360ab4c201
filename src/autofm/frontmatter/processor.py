"""Per-file front matter operations with a failure boundary."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from autofm.backup import BackupRepository
from autofm.classification import CategoryPolicy, FileLocation, classify_location
from autofm.config import AutoFMConfig
from autofm.errors import AutoFMError
from autofm.templates import (
    DEFAULT_TEMPLATE,
    GenerationContext,
    TemplateManager,
    current_time,
    is_empty_value,
)

from .merger import CORE_FIELDS, MergeMode, is_opted_out, merge_records
from .serializer import (
    MetadataRecord,
    ParsedDocument,
    order_fields,
    read_document,
    records_equal,
    render_document,
    write_atomic,
)

LOGGER = logging.getLogger(__name__)

Operation = Literal["initialize", "update", "resync", "stamp_updated"]
UPDATED_FIELD = "updated"


@dataclass(slots=True)
class OperationResult:
    """Outcome of processing one file.

    Attributes:
        path: File that was processed.
        action: Operation that ran.
        success: Whether the operation completed without error.
        changed: Whether the file was rewritten.
        message: Human-readable summary.
        error: Error raised when ``success`` is False.
    """

    path: Path
    action: str
    success: bool
    changed: bool = False
    message: str = ""
    error: Optional[Exception] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "path": self.path.as_posix(),
            "action": self.action,
            "success": self.success,
            "changed": self.changed,
            "message": self.message,
        }
        if self.error is not None:
            payload["error"] = {
                "type": type(self.error).__name__,
                "code": getattr(self.error, "code", None),
            }
        return payload


def content_digest(text: str) -> str:
    """Return the digest used to recognise content this process wrote."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class FrontMatterProcessor:
    """Generate, merge, and write front matter for files under one root."""

    def __init__(
        self,
        root: Path,
        config: AutoFMConfig,
        *,
        templates: TemplateManager | None = None,
        backups: BackupRepository | None = None,
        template_name: str = DEFAULT_TEMPLATE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            root: Watch root used to derive relative paths and categories.
            config: Effective configuration.
            templates: Template manager; built from ``config`` when omitted.
            backups: Backup repository used before rewriting files, if enabled.
            template_name: Template applied when generating metadata.
            clock: Callable returning the current time; defaults to the configured timezone.
        """
        self._root = root.expanduser().resolve()
        self._config = config
        self._templates = templates or TemplateManager(config)
        self._backups = backups
        self._template_name = template_name
        self._clock = clock or (lambda: current_time(config.timezone))
        self._policy = CategoryPolicy.from_config(config)
        self._written: dict[Path, str] = {}

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------ #
    # Generation                                                         #
    # ------------------------------------------------------------------ #

    def generate(self, path: Path) -> MetadataRecord:
        """Build the candidate record derived from a file's location and template."""
        location = FileLocation.from_path(path, self._root)
        classification = classify_location(location)
        now = self._clock()
        context = GenerationContext(
            location=location,
            classification=classification,
            categories=self._policy.derive(classification.raw_segments),
            now=now,
            date_format=self._config.date_format,
        )
        resolved = self._templates.apply_template(self._template_name, context)

        title = resolved.get("title")
        if is_empty_value(title):
            title = classification.title
        date_value = resolved.get("date")
        if is_empty_value(date_value):
            date_value = classification.date or context.formatted_now()
        categories = resolved.get("categories")
        if is_empty_value(categories):
            categories = context.categories
        tags = resolved.get("tags")

        record: MetadataRecord = {"title": title, "date": date_value}
        if not is_empty_value(categories):
            record["categories"] = categories
        if not is_empty_value(tags):
            record["tags"] = tags

        record.update(self._templates.resolve_custom_fields(context))
        for key, value in resolved.items():
            if key not in CORE_FIELDS:
                record[key] = value
        return record

    # ------------------------------------------------------------------ #
    # Operations                                                         #
    # ------------------------------------------------------------------ #

    def initialize(self, path: Path) -> bool:
        """Write generated metadata only when the file carries none.

        Returns:
            bool: True when the file was rewritten.
        """
        document = read_document(path)
        if not document.is_empty:
            LOGGER.debug("File already has front matter: %s", path)
            return False
        LOGGER.info("Initializing front matter for %s", path)
        return self._commit(path, document, self.generate(path))

    def update(self, path: Path, mode: MergeMode = MergeMode()) -> bool:
        """Merge generated metadata into the file according to ``mode``."""
        document = read_document(path)
        candidate = self.generate(path)
        merged = merge_records(
            document.record,
            candidate,
            mode,
            protected_fields=self._config.protected_fields,
            category_mode=self._config.category_mode,
        )
        if merged is None:
            LOGGER.debug("Skipping opted-out file %s", path)
            return False
        return self._commit(path, document, merged)

    def resync(self, path: Path) -> bool:
        """Re-derive title and categories after a file is added or renamed."""
        return self.update(path, MergeMode(resync=True))

    def stamp_updated(self, path: Path) -> bool:
        """Refresh the ``updated`` timestamp after a content edit."""
        document = read_document(path)
        if document.is_empty or is_opted_out(document.record):
            LOGGER.debug("No front matter to stamp in %s", path)
            return False
        record = dict(document.record or {})
        record[UPDATED_FIELD] = self._clock().strftime(self._config.date_format)
        return self._commit(path, document, record)

    def process(self, path: Path, operation: Operation, mode: MergeMode = MergeMode()) -> OperationResult:
        """Run one operation, converting failures into an unsuccessful result."""
        try:
            if operation == "initialize":
                changed = self.initialize(path)
            elif operation == "update":
                changed = self.update(path, mode)
            elif operation == "resync":
                changed = self.resync(path)
            elif operation == "stamp_updated":
                changed = self.stamp_updated(path)
            else:
                raise ValueError(f"Unknown operation: {operation}")
        except (AutoFMError, OSError) as exc:
            LOGGER.error("Failed to %s %s: %s", operation.replace("_", " "), path, exc)
            return self._failure(path, operation, exc)
        except Exception as exc:
            LOGGER.exception("Unexpected error during %s of %s", operation.replace("_", " "), path)
            return self._failure(path, operation, exc)
        message = "Front matter written" if changed else "No changes needed"
        return OperationResult(path=path, action=operation, success=True, changed=changed, message=message)

    def is_own_write(self, path: Path) -> bool:
        """Return whether the file still holds exactly what this process last wrote."""
        expected = self._written.get(path.expanduser().resolve())
        if expected is None:
            return False
        try:
            current = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return False
        return content_digest(current) == expected

    def forget(self, path: Path) -> None:
        """Drop write bookkeeping for a removed file."""
        self._written.pop(path.expanduser().resolve(), None)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _failure(path: Path, operation: str, exc: Exception) -> OperationResult:
        return OperationResult(path=path, action=operation, success=False, message=str(exc), error=exc)

    def _commit(self, path: Path, document: ParsedDocument, record: MetadataRecord) -> bool:
        """Order, compare, and write a reconciled record."""
        if is_opted_out(record):
            return False
        if document.record is not None and records_equal(record, document.record):
            LOGGER.debug("Front matter unchanged for %s", path)
            return False

        ordered = order_fields(record, self._config.key_order)
        if is_empty_value(ordered.get("date")):
            ordered = order_fields(
                {**ordered, "date": self._clock().strftime(self._config.date_format)},
                self._config.key_order,
            )

        text = render_document(ordered, document.body)
        if self._backups is not None:
            self._backups.create_backup(path)
        write_atomic(path, text)
        self._written[path.expanduser().resolve()] = content_digest(text)
        LOGGER.info("Front matter written: %s", path)
        return True


__all__ = ["FrontMatterProcessor", "Operation", "OperationResult", "UPDATED_FIELD", "content_digest"]
