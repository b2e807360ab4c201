"""Template value variants and the generators they resolve through."""

from __future__ import annotations

import binascii
import uuid
import zlib
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import singledispatch
from pathlib import PurePosixPath
from typing import Any, Callable, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from autofm.classification import CategoryValue, Classification, FileLocation
from autofm.errors import InvalidTemplateError

GENERATOR_KEY = "generator"


@dataclass(frozen=True, slots=True)
class LiteralValue:
    """A template value copied into the record, with placeholders expanded."""

    value: Any


@dataclass(frozen=True, slots=True)
class GeneratorValue:
    """A template value computed from the file's location at generation time."""

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


TemplateValue = Union[LiteralValue, GeneratorValue]


@dataclass(frozen=True, slots=True)
class GenerationContext:
    """Everything a generator may consult when producing a value.

    Attributes:
        location: Location of the file being generated for.
        classification: Title/date/segments derived from the location.
        categories: Categories shaped by the active category policy.
        now: Timestamp of the generation cycle, timezone-aware.
        date_format: strftime pattern for rendered timestamps.
    """

    location: FileLocation
    classification: Classification
    categories: CategoryValue
    now: datetime
    date_format: str

    def formatted_now(self) -> str:
        return self.now.strftime(self.date_format)


def current_time(timezone_name: str) -> datetime:
    """Return the current time in the named IANA timezone."""
    return datetime.now(ZoneInfo(timezone_name))


Generator = Callable[[FileLocation, GenerationContext, Mapping[str, Any]], Any]


def _generate_now(location: FileLocation, context: GenerationContext, options: Mapping[str, Any]) -> str:
    fmt = options.get("format") or context.date_format
    return context.now.strftime(str(fmt))


def _generate_abbrlink(
    location: FileLocation, context: GenerationContext, options: Mapping[str, Any]
) -> str:
    algorithm = options.get("algorithm", "crc32")
    representation = options.get("representation", "hex")
    payload = location.relative_path.encode("utf-8")
    if algorithm == "crc32":
        value = zlib.crc32(payload) & 0xFFFFFFFF
    elif algorithm == "crc16":
        value = binascii.crc_hqx(payload, 0)
    else:
        raise InvalidTemplateError(f"Unsupported abbrlink algorithm: {algorithm}")
    if representation == "hex":
        return format(value, "x")
    if representation == "dec":
        return str(value)
    raise InvalidTemplateError(f"Unsupported abbrlink representation: {representation}")


def _generate_uuid(location: FileLocation, context: GenerationContext, options: Mapping[str, Any]) -> str:
    return str(uuid.uuid4())


def _generate_path_categories(
    location: FileLocation, context: GenerationContext, options: Mapping[str, Any]
) -> CategoryValue:
    return [list(item) if isinstance(item, list) else item for item in context.categories]


def _generate_filename(location: FileLocation, context: GenerationContext, options: Mapping[str, Any]) -> str:
    return location.base_name


def _generate_relative_path(
    location: FileLocation, context: GenerationContext, options: Mapping[str, Any]
) -> str:
    return location.relative_path


GENERATORS: dict[str, Generator] = {
    "now": _generate_now,
    "abbrlink": _generate_abbrlink,
    "uuid": _generate_uuid,
    "path_categories": _generate_path_categories,
    "filename": _generate_filename,
    "relative_path": _generate_relative_path,
}


def parse_template_value(field_name: str, raw: Any) -> TemplateValue:
    """Convert a raw configured value into its tagged variant.

    Raises:
        InvalidTemplateError: If a mapping does not name a known generator.
    """
    if isinstance(raw, MappingABC):
        name = raw.get(GENERATOR_KEY)
        if not isinstance(name, str) or not name:
            raise InvalidTemplateError(
                f"Template field '{field_name}' must be a literal or a mapping with a '{GENERATOR_KEY}' key."
            )
        if name not in GENERATORS:
            raise InvalidTemplateError(f"Unknown generator '{name}' for template field '{field_name}'.")
        options = {key: value for key, value in raw.items() if key != GENERATOR_KEY}
        return GeneratorValue(name=name, options=options)
    ensure_supported_value(field_name, raw)
    return LiteralValue(raw)


def ensure_supported_value(field_name: str, value: Any) -> None:
    """Reject values that cannot live in a metadata record."""
    if value is None or isinstance(value, (str, bool, int, float, date)):
        return
    if isinstance(value, list):
        for item in value:
            if isinstance(item, list):
                if all(isinstance(entry, str) for entry in item):
                    continue
            elif isinstance(item, (str, bool, int, float)):
                continue
            raise InvalidTemplateError(
                f"Template field '{field_name}' contains unsupported list item {item!r}."
            )
        return
    raise InvalidTemplateError(
        f"Template field '{field_name}' has unsupported value type {type(value).__name__}."
    )


def expand_placeholders(text: str, context: GenerationContext) -> str:
    """Substitute ``{title}``-style placeholders and collapse whitespace."""
    location = context.location
    parsed = context.classification.date
    dirname = PurePosixPath(location.relative_path).parent.as_posix()
    variables = {
        "{filename}": location.base_name,
        "{basename}": location.base_name,
        "{extension}": location.extension,
        "{path}": location.relative_path,
        "{dirname}": dirname,
        "{date}": parsed.isoformat() if parsed else context.formatted_now(),
        "{title}": context.classification.title,
    }
    result = text
    for placeholder, replacement in variables.items():
        result = result.replace(placeholder, replacement)
    return " ".join(result.split())


@singledispatch
def resolve_template_value(value: Any, field_name: str, context: GenerationContext) -> Any:
    raise InvalidTemplateError(f"Unsupported template value for '{field_name}': {value!r}")


@resolve_template_value.register
def _(value: LiteralValue, field_name: str, context: GenerationContext) -> Any:
    raw = value.value
    if isinstance(raw, str):
        return expand_placeholders(raw, context)
    if isinstance(raw, list):
        return [expand_placeholders(item, context) if isinstance(item, str) else item for item in raw]
    return raw


@resolve_template_value.register
def _(value: GeneratorValue, field_name: str, context: GenerationContext) -> Any:
    generator = GENERATORS.get(value.name)
    if generator is None:
        raise InvalidTemplateError(f"Unknown generator '{value.name}' for template field '{field_name}'.")
    produced = generator(context.location, context, value.options)
    ensure_supported_value(field_name, produced)
    return produced


def is_empty_value(value: Optional[Any]) -> bool:
    """Return whether a value counts as "not set" for generation purposes."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and not value:
        return True
    return False


__all__ = [
    "GENERATORS",
    "GENERATOR_KEY",
    "GenerationContext",
    "GeneratorValue",
    "LiteralValue",
    "TemplateValue",
    "current_time",
    "ensure_supported_value",
    "expand_placeholders",
    "is_empty_value",
    "parse_template_value",
    "resolve_template_value",
]
