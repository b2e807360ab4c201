"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ValidationError

from .exceptions import ConfigError
from .models import AutoFMConfig

# Dict-valued fields that merge per key instead of being replaced.
_KEYED_FIELDS = frozenset({"templates"})
ENV_PREFIX = "AUTOFM__"


def resolve_with_precedence(
    *,
    defaults: AutoFMConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AutoFMConfig:
    """Merge configuration sources: defaults < file < environment < CLI."""
    merged = defaults.model_dump(mode="python")
    for name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        overrides = _normalize_mapping(source, source_name=name)
        merged = _merge_fields(AutoFMConfig, merged, overrides, source_name=name)

    try:
        return AutoFMConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def _merge_fields(
    model: type[BaseModel],
    base: Mapping[str, Any],
    overrides: Mapping[str, Any],
    *,
    source_name: str,
    prefix: str = "",
) -> dict[str, Any]:
    """Merge overrides into base one schema field at a time.

    Nested model sections merge per field, keyed mappings merge per key, and
    every other field is replaced wholesale.
    """
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        dotted = f"{prefix}{key}"
        field = model.model_fields.get(key)
        if field is None:
            raise ConfigError(f"Unknown {source_name} configuration key: {dotted}")

        annotation = field.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            if not isinstance(value, MappingABC):
                raise ConfigError(f"{source_name.capitalize()} override for {dotted} must be a mapping.")
            merged[key] = _merge_fields(
                annotation,
                merged.get(key) or {},
                value,
                source_name=source_name,
                prefix=f"{dotted}.",
            )
        elif key in _KEYED_FIELDS and isinstance(value, MappingABC):
            combined = dict(merged.get(key) or {})
            for name, entry in value.items():
                combined[name] = deepcopy(entry)
            merged[key] = combined
        else:
            merged[key] = deepcopy(value)
    return merged


def overrides_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect `AUTOFM__SECTION__KEY` variables as a nested override mapping.

    Values are parsed as YAML literals so `5`, `true` and `[a, b]` keep their
    types; anything YAML rejects is passed through as the raw string.
    """
    dotted: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in name[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        dotted[".".join(segments)] = value
    return _normalize_mapping(dotted, source_name="environment")


def _normalize_mapping(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Expand dotted keys such as `backup.enabled` into nested mappings."""
    label = source_name.capitalize()
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label} override keys must be strings.")
        *parents, leaf = key.split(".")
        node = expanded
        for segment in parents:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(f"{label} override for {key} conflicts with {segment}.")
            node = child
        node[leaf] = deepcopy(value)
    return expanded


__all__ = ["ENV_PREFIX", "overrides_from_env", "resolve_with_precedence"]
