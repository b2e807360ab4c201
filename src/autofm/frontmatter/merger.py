"""Reconcile freshly generated metadata with what a file already carries."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from autofm.config.models import CategoryMode

from .serializer import MetadataRecord

OPT_OUT_FIELD = "notAutofm"
CORE_FIELDS = frozenset({"title", "date", "categories", "tags"})


@dataclass(frozen=True, slots=True)
class MergeMode:
    """Flags that widen which existing fields may be overwritten.

    Attributes:
        force: Overwrite title, categories, and tags outright.
        taxonomy_only: Regenerate categories and tags only.
        resync: Re-derive title and categories after an add or rename.
    """

    force: bool = False
    taxonomy_only: bool = False
    resync: bool = False


def is_opted_out(record: Optional[Mapping[str, Any]]) -> bool:
    """Return whether a record carries a truthy opt-out marker."""
    return bool(record) and bool(record.get(OPT_OUT_FIELD))


def _missing(record: Mapping[str, Any], key: str) -> bool:
    value = record.get(key)
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and not value:
        return True
    return False


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def _has_chain(values: Iterable[Any]) -> bool:
    return any(isinstance(item, list) for item in values)


def merge_categories(
    existing: Any,
    generated: list[Any],
    *,
    force: bool,
    category_mode: CategoryMode,
) -> list[Any]:
    """Replace the generated portion of a category value, keeping user additions.

    Without ``force``, the first chain of a hierarchical value is swapped for the
    generated categories in place and every other entry keeps its position. When
    no chain exists, bare strings naming a generated segment are dropped. Flat
    values in non-hierarchical modes are replaced wholesale. Entries that are
    neither strings nor chains are passed through untouched.
    """
    current = _as_list(existing)
    if force or not current:
        return deepcopy(generated)
    if category_mode != "hierarchy" and not _has_chain(current):
        return deepcopy(generated)

    chain_index = next((index for index, item in enumerate(current) if isinstance(item, list)), None)
    if chain_index is not None:
        head = current[:chain_index]
        tail = current[chain_index + 1 :]
    else:
        segments: set[str] = set()
        for item in generated:
            for segment in item if isinstance(item, list) else [item]:
                if isinstance(segment, str):
                    segments.add(segment)
        head = []
        tail = [item for item in current if not (isinstance(item, str) and item in segments)]

    merged: list[Any] = []
    for item in [*head, *generated, *tail]:
        if item not in merged:
            merged.append(deepcopy(item))
    return merged


def merge_records(
    existing: Optional[Mapping[str, Any]],
    candidate: Mapping[str, Any],
    mode: MergeMode = MergeMode(),
    *,
    protected_fields: Iterable[str] = (),
    category_mode: CategoryMode = "hierarchy",
) -> Optional[MetadataRecord]:
    """Return the reconciled record, or ``None`` when the file opted out.

    Args:
        existing: Metadata read from disk, if any.
        candidate: Metadata generated from the file's location and template.
        mode: Overwrite flags for this operation.
        protected_fields: Fields that are only ever filled in when absent.
        category_mode: Active category shaping mode.
    """
    if is_opted_out(candidate) or is_opted_out(existing):
        return None

    if not existing:
        return deepcopy(dict(candidate))

    merged: MetadataRecord = deepcopy(dict(existing))

    if "title" in candidate and (mode.force or mode.resync or _missing(merged, "title")):
        merged["title"] = candidate["title"]

    # Dates are never overwritten once set.
    if _missing(merged, "date") and not _missing(candidate, "date"):
        merged["date"] = candidate["date"]

    for key in protected_fields:
        if key in CORE_FIELDS:
            continue
        if _missing(merged, key) and not _missing(candidate, key):
            merged[key] = deepcopy(candidate[key])

    generated_categories = _as_list(candidate.get("categories"))
    if generated_categories and (
        mode.force or mode.taxonomy_only or mode.resync or _missing(merged, "categories")
    ):
        merged["categories"] = merge_categories(
            merged.get("categories"),
            generated_categories,
            force=mode.force,
            category_mode=category_mode,
        )

    generated_tags = _as_list(candidate.get("tags"))
    if generated_tags and (mode.force or mode.taxonomy_only or _missing(merged, "tags")):
        merged["tags"] = deepcopy(generated_tags)

    protected = set(protected_fields)
    for key, value in candidate.items():
        if key in CORE_FIELDS or key in protected:
            continue
        if key not in merged:
            merged[key] = deepcopy(value)

    return merged


__all__ = [
    "CORE_FIELDS",
    "OPT_OUT_FIELD",
    "MergeMode",
    "is_opted_out",
    "merge_categories",
    "merge_records",
]
