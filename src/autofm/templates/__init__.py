"""Named front matter templates and their storage in the configuration."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from autofm.config import AutoFMConfig, ConfigManager
from autofm.errors import InvalidTemplateError

from .values import (
    GENERATORS,
    GenerationContext,
    GeneratorValue,
    LiteralValue,
    TemplateValue,
    current_time,
    is_empty_value,
    parse_template_value,
    resolve_template_value,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default"
_BUILTIN_TEMPLATES = frozenset(AutoFMConfig().templates)


class TemplateManager:
    """Look up, validate, apply, and persist named templates."""

    def __init__(self, config: AutoFMConfig, manager: ConfigManager | None = None) -> None:
        """Initialize the manager.

        Args:
            config: Effective configuration holding the template definitions.
            manager: Optional configuration manager used to persist template edits.
        """
        self._config = config
        self._manager = manager

    @property
    def config(self) -> AutoFMConfig:
        return self._config

    def list_templates(self) -> list[str]:
        """Return the configured template names."""
        return list(self._config.templates)

    def get_template(self, name: str = DEFAULT_TEMPLATE) -> dict[str, Any]:
        """Return the raw definition for ``name``, falling back to the default template."""
        templates = self._config.templates
        if name in templates:
            return dict(templates[name])
        LOGGER.warning("Template '%s' not found; using '%s'.", name, DEFAULT_TEMPLATE)
        return dict(templates.get(DEFAULT_TEMPLATE, {}))

    def parse_template(self, raw: Mapping[str, Any]) -> dict[str, TemplateValue]:
        """Convert a raw template definition into tagged values.

        Raises:
            InvalidTemplateError: If the definition is not a mapping or holds invalid values.
        """
        if not isinstance(raw, Mapping):
            raise InvalidTemplateError("Template must be a mapping of field names to values.")
        parsed: dict[str, TemplateValue] = {}
        for key, value in raw.items():
            if not isinstance(key, str) or not key:
                raise InvalidTemplateError(f"Template field names must be non-empty strings: {key!r}")
            parsed[key] = parse_template_value(key, value)
        return parsed

    def validate(self) -> list[str]:
        """Return validation problems for every configured template."""
        problems: list[str] = []
        for name, raw in self._config.templates.items():
            try:
                self.parse_template(raw)
            except InvalidTemplateError as exc:
                problems.append(f"{name}: {exc}")
        return problems

    def apply_template(self, name: str, context: GenerationContext) -> dict[str, Any]:
        """Resolve every field of a template against a generation context."""
        parsed = self.parse_template(self.get_template(name))
        return {key: resolve_template_value(value, key, context) for key, value in parsed.items()}

    def resolve_custom_fields(self, context: GenerationContext) -> dict[str, Any]:
        """Resolve the always-merged custom fields."""
        parsed = self.parse_template(self._config.custom_fields)
        return {key: resolve_template_value(value, key, context) for key, value in parsed.items()}

    def create_template(self, name: str, template: Mapping[str, Any]) -> None:
        """Validate and persist a new or replacement template.

        Raises:
            InvalidTemplateError: If the name or definition is invalid.
            ConfigError: If the configuration cannot be saved.
        """
        if not name or not name.strip():
            raise InvalidTemplateError("Template name cannot be empty.")
        self.parse_template(template)
        templates = dict(self._config.templates)
        templates[name] = dict(template)
        self._config = self._config.model_copy(update={"templates": templates})
        self._persist(name, dict(template))
        LOGGER.info("Template '%s' saved.", name)

    def delete_template(self, name: str) -> bool:
        """Remove a user template; built-in templates cannot be removed."""
        if name in _BUILTIN_TEMPLATES:
            LOGGER.warning("Cannot remove built-in template '%s'; override it instead.", name)
            return False
        if name not in self._config.templates:
            return False
        templates = dict(self._config.templates)
        templates.pop(name)
        self._config = self._config.model_copy(update={"templates": templates})
        self._persist(name, None)
        LOGGER.info("Template '%s' deleted.", name)
        return True

    def _persist(self, name: str, template: dict[str, Any] | None) -> None:
        if self._manager is None:
            return
        overrides = self._manager.load_file_overrides()
        stored = overrides.get("templates")
        if not isinstance(stored, dict):
            stored = {}
        if template is None:
            stored.pop(name, None)
        else:
            stored[name] = template
        overrides["templates"] = stored
        self._manager.save(overrides)


__all__ = [
    "DEFAULT_TEMPLATE",
    "GENERATORS",
    "GenerationContext",
    "GeneratorValue",
    "LiteralValue",
    "TemplateManager",
    "TemplateValue",
    "current_time",
    "is_empty_value",
]
