"""Configuration management for AutoFM."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import AutoFMConfig, CategoryMode
from .resolver import ENV_PREFIX, overrides_from_env, resolve_with_precedence

CONFIG_FILENAME = "autofm-config.yaml"
LEGACY_CONFIG_FILENAME = "autofm-config.json"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # AutoFM configuration file
    # Generated automatically; manage via `autofm config set` or `autofm templates`.
    # Values are merged field by field over the built-in defaults.
    """
)


class ConfigManager:
    """Read and write the per-directory configuration file.

    The YAML file lives in the watched root. A JSON file written by earlier
    releases is still read when no YAML file exists; saving always writes YAML.
    """

    def __init__(self, root: Path, *, env: Mapping[str, str] | None = None) -> None:
        """Initialize the manager.

        Args:
            root: Watched directory holding the configuration file.
            env: Environment to read `AUTOFM__*` overrides from; defaults to ``os.environ``.
        """
        self._config_path = root.expanduser() / CONFIG_FILENAME
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Path configuration is saved to."""
        return self._config_path

    @property
    def source_path(self) -> Path | None:
        """Return the file configuration is read from, if any exists."""
        for candidate in (self._config_path, self._config_path.with_name(LEGACY_CONFIG_FILENAME)):
            if candidate.exists():
                return candidate
        return None

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> AutoFMConfig:
        """Resolve defaults, the file, the environment, and CLI overrides in that order.

        Raises:
            ConfigError: If any source cannot be read or the result is invalid.
        """
        return resolve_with_precedence(
            defaults=AutoFMConfig(),
            file_overrides=self._read_file(),
            env_overrides=overrides_from_env(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored on disk, without defaults."""
        return self._read_file()

    def save(self, data: Mapping[str, Any]) -> None:
        """Write ``data`` as the configuration file with a header and timestamp.

        Raises:
            ConfigError: If the file cannot be written.
        """
        body = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(
                f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
            )
        except OSError as exc:
            raise ConfigError(f"Failed to save configuration to {self._config_path}: {exc}") from exc

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        source = self.source_path
        return source.read_text(encoding="utf-8") if source is not None else ""

    def _read_file(self) -> dict[str, Any]:
        source = self.source_path
        if source is None:
            return {}

        try:
            # JSON is a subset of YAML, so the legacy file parses here too.
            raw = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file {source.name}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Failed to read configuration file {source}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError(f"{source.name} must contain a mapping at the top level.")
        return raw


__all__ = [
    "CONFIG_FILENAME",
    "ENV_PREFIX",
    "LEGACY_CONFIG_FILENAME",
    "AutoFMConfig",
    "CategoryMode",
    "ConfigError",
    "ConfigManager",
    "overrides_from_env",
    "resolve_with_precedence",
]
