"""Backup index models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field

INDEX_VERSION = "1.0.0"


class BackupRecord(BaseModel):
    """A single copy taken before a file was rewritten."""

    original_path: str
    backup_path: str
    timestamp: datetime
    size: int = 0


class BackupIndex(BaseModel):
    """Every backup tracked under one backup directory."""

    version: str = INDEX_VERSION
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    backups: List[BackupRecord] = Field(default_factory=list)


__all__ = ["BackupRecord", "BackupIndex", "INDEX_VERSION"]
