"""Copies of content files taken before they are rewritten."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from autofm.config.models import BackupSettings
from autofm.errors import BackupError

from .models import BackupIndex, BackupRecord

LOGGER = logging.getLogger(__name__)

INDEX_FILENAME = "backup-info.json"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S-%f"


class BackupRepository:
    """Manage backup copies and their JSON index under a watch root."""

    def __init__(self, root: Path, settings: BackupSettings) -> None:
        """Initialize the repository.

        Args:
            root: Watch root whose files are backed up.
            settings: Backup directory name and retention limit.
        """
        self._root = root.expanduser().resolve()
        self._settings = settings

    @property
    def directory(self) -> Path:
        """Return the directory that holds backup copies.

        Returns:
            Path: Backup directory under the watch root.
        """
        return self._root / self._settings.directory

    @property
    def index_path(self) -> Path:
        return self.directory / INDEX_FILENAME

    def initialize(self) -> Path:
        """Create the backup directory and an empty index if needed.

        Returns:
            Path: Backup directory.

        Raises:
            BackupError: If the directory or index cannot be created.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if not self.index_path.exists():
                self._save(BackupIndex())
        except OSError as exc:
            raise BackupError(f"Failed to initialize backup directory: {exc}") from exc
        LOGGER.debug("Backup directory initialized: %s", self.directory)
        return self.directory

    def load(self) -> BackupIndex:
        """Load the backup index.

        Returns:
            BackupIndex: Stored index, or an empty one when none exists.

        Raises:
            BackupError: If stored data cannot be parsed.
        """
        if not self.index_path.exists():
            return BackupIndex()
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
            return BackupIndex.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise BackupError(f"Invalid backup index data: {exc}") from exc

    def create_backup(self, path: Path) -> BackupRecord:
        """Copy ``path`` into the backup directory and record it.

        Args:
            path: File about to be rewritten.

        Returns:
            BackupRecord: Entry describing the new copy.

        Raises:
            BackupError: If the file is missing or cannot be copied.
        """
        source = path.expanduser().resolve()
        if not source.is_file():
            raise BackupError(f"File does not exist: {source}", path=source)

        self.initialize()
        timestamp = datetime.now().astimezone()
        base = self.directory / self.backup_name(source, timestamp)
        destination = base
        counter = 1
        while destination.exists():
            destination = base.with_name(f"{base.stem}-{counter}{base.suffix}")
            counter += 1
        try:
            shutil.copy2(source, destination)
            size = source.stat().st_size
        except OSError as exc:
            raise BackupError(f"Failed to create backup: {exc}", path=source) from exc

        record = BackupRecord(
            original_path=source.as_posix(),
            backup_path=destination.as_posix(),
            timestamp=timestamp,
            size=size,
        )
        index = self.load()
        index.backups.append(record)
        self._save(index)
        LOGGER.info("Backup created: %s (%s)", destination, format_size(size))
        self.cleanup()
        return record

    def backup_name(self, source: Path, timestamp: datetime) -> str:
        """Return the flattened file name used for a copy of ``source``."""
        try:
            relative = source.relative_to(self._root)
        except ValueError:
            relative = Path(source.name)
        flattened = relative.with_suffix("").as_posix().replace("/", "_")
        return f"{flattened}_{timestamp.strftime(TIMESTAMP_FORMAT)}{source.suffix}"

    def list_backups(self, path: Optional[Path] = None) -> list[BackupRecord]:
        """Return tracked backups, newest first, optionally for a single file."""
        backups = list(self.load().backups)
        if path is not None:
            wanted = path.expanduser().resolve().as_posix()
            backups = [record for record in backups if record.original_path == wanted]
        backups.sort(key=lambda record: record.timestamp, reverse=True)
        return backups

    def restore(self, backup_path: Path, target: Optional[Path] = None) -> Path:
        """Copy a backup back over its original file or to ``target``.

        Returns:
            Path: File that was written.

        Raises:
            BackupError: If the backup or its destination cannot be resolved.
        """
        source = backup_path.expanduser().resolve()
        if not source.is_file():
            raise BackupError(f"Backup file does not exist: {source}", path=source)

        destination = target
        if destination is None:
            record = self._find(source)
            if record is None:
                raise BackupError(f"Cannot determine restore path for {source}", path=source)
            destination = Path(record.original_path)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as exc:
            raise BackupError(f"Failed to restore from backup: {exc}", path=source) from exc
        LOGGER.info("File restored from backup: %s", destination)
        return destination

    def delete_backup(self, backup_path: Path) -> bool:
        """Remove a backup copy and its index entry.

        Returns:
            bool: True when an index entry or file was removed.
        """
        target = backup_path.expanduser().resolve()
        removed = False
        try:
            if target.exists():
                target.unlink()
                removed = True
        except OSError as exc:
            raise BackupError(f"Failed to delete backup: {exc}", path=target) from exc

        index = self.load()
        remaining = [record for record in index.backups if record.backup_path != target.as_posix()]
        if len(remaining) != len(index.backups):
            index.backups = remaining
            self._save(index)
            removed = True
        if removed:
            LOGGER.info("Backup deleted: %s", target)
        return removed

    def cleanup(self) -> int:
        """Delete backups beyond the newest ``max_files``.

        Returns:
            int: Number of backups removed.
        """
        stale = self.list_backups()[self._settings.max_files :]
        for record in stale:
            self.delete_backup(Path(record.backup_path))
        if stale:
            LOGGER.info("Cleaned up %d old backups", len(stale))
        return len(stale)

    def stats(self) -> dict[str, Any]:
        """Summarize tracked backups."""
        backups = self.list_backups()
        total = sum(record.size for record in backups)
        return {
            "count": len(backups),
            "total_size": total,
            "total_size_display": format_size(total),
            "directory": self.directory.as_posix(),
            "enabled": self._settings.enabled,
            "max_files": self._settings.max_files,
        }

    def _find(self, backup_path: Path) -> Optional[BackupRecord]:
        wanted = backup_path.as_posix()
        for record in self.load().backups:
            if record.backup_path == wanted:
                return record
        return None

    def _save(self, index: BackupIndex) -> None:
        payload = index.model_dump(mode="json")
        try:
            self.index_path.write_text(json.dumps(payload, indent=2, sort_keys=False), encoding="utf-8")
        except OSError as exc:
            raise BackupError(f"Failed to write backup index: {exc}") from exc


def format_size(size: int) -> str:
    """Render a byte count with a binary unit suffix."""
    value = float(size)
    for unit in ("Bytes", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            if unit == "Bytes":
                return f"{int(value)} {unit}"
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{size} Bytes"


__all__ = [
    "BackupIndex",
    "BackupRecord",
    "BackupRepository",
    "INDEX_FILENAME",
    "format_size",
]
