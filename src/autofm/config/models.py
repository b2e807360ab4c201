"""Configuration models describing AutoFM settings."""

from __future__ import annotations

from typing import Any, Dict, List, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

CategoryMode = Literal["hierarchy", "flat", "parent-only"]


class AutoFMBaseModel(BaseModel):
    """Shared configuration for AutoFM Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class FilePatterns(AutoFMBaseModel):
    """Marker directories that never become categories.

    Attributes:
        posts: Directory name holding published posts.
        drafts: Directory name holding drafts.
    """

    posts: str = "_posts"
    drafts: str = "_drafts"


class BackupSettings(AutoFMBaseModel):
    """Backup behavior applied before files are rewritten.

    Attributes:
        enabled: Whether a copy is taken before each write.
        directory: Backup directory, relative to the watched root.
        max_files: Number of backup copies retained before rotation.
    """

    enabled: bool = False
    directory: str = ".autofm-backup"
    max_files: int = Field(default=10, ge=1)


class WatchSettings(AutoFMBaseModel):
    """Watcher tuning knobs.

    Attributes:
        extensions: File suffixes treated as markdown content.
        ignored_dirs: Directory names excluded from watching and categories.
        debounce_seconds: Delay used to coalesce change notifications.
        batch_delay_seconds: Pause between files during batch processing.
    """

    extensions: List[str] = Field(default_factory=lambda: [".md", ".mdx", ".markdown"])
    ignored_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "dist", "build"]
    )
    debounce_seconds: float = Field(default=0.2, ge=0)
    batch_delay_seconds: float = Field(default=0.05, ge=0)


class LoggingSettings(AutoFMBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 3


def _default_templates() -> Dict[str, Dict[str, Any]]:
    return {
        "default": {"title": "", "date": "", "categories": [], "tags": []},
        "blog": {
            "title": "{title}",
            "date": "",
            "categories": {"generator": "path_categories"},
            "tags": [],
            "author": "AutoFM",
            "draft": False,
        },
        "hexo": {
            "title": "{title}",
            "date": "",
            "categories": [],
            "tags": [],
            "abbrlink": {"generator": "abbrlink"},
        },
        "note": {"title": "{title}", "date": "", "type": "note", "tags": []},
        "journal": {
            "title": "{date} Journal",
            "date": "",
            "type": "journal",
            "mood": "",
            "weather": "",
        },
        "tutorial": {
            "title": "{title}",
            "date": "",
            "categories": ["tutorial"],
            "tags": [],
            "difficulty": "beginner",
            "duration": "30 minutes",
        },
    }


class AutoFMConfig(AutoFMBaseModel):
    """Top-level configuration struct for AutoFM.

    Attributes:
        key_order: Field names emitted first, in this order.
        date_format: strftime pattern used when stamping timestamps.
        timezone: IANA timezone used when stamping timestamps.
        category_mode: How directory segments are shaped into categories.
        protected_fields: Fields that are filled when absent but never overwritten.
        no_category: Directory names that never become categories.
        file_patterns: Posts/drafts marker directories.
        backup: Backup settings.
        templates: Named templates mapping field names to literal or generator values.
        custom_fields: Fields merged into every generated record.
        watch: Watcher tuning.
        logging: Logging configuration.
    """

    key_order: List[str] = Field(
        default_factory=lambda: ["title", "date", "updated", "categories", "tags"]
    )
    date_format: str = "%Y/%m/%d %H:%M:%S"
    timezone: str = "Asia/Shanghai"
    category_mode: CategoryMode = "hierarchy"
    protected_fields: List[str] = Field(
        default_factory=lambda: ["date", "abbrlink", "permalink", "uuid"]
    )
    no_category: List[str] = Field(default_factory=list)
    file_patterns: FilePatterns = Field(default_factory=FilePatterns)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    templates: Dict[str, Dict[str, Any]] = Field(default_factory=_default_templates)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("templates")
    @classmethod
    def _require_default_template(cls, value: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        if "default" not in value:
            value = {"default": _default_templates()["default"], **value}
        return value


__all__ = [
    "AutoFMBaseModel",
    "CategoryMode",
    "FilePatterns",
    "BackupSettings",
    "WatchSettings",
    "LoggingSettings",
    "AutoFMConfig",
]
