"""Shape raw directory segments into category values."""

from __future__ import annotations

import re
from typing import Iterable, Sequence, Union

from autofm.config.models import AutoFMConfig, CategoryMode

SYSTEM_DIRECTORIES = frozenset({"~", ".", ".."})
_WHITESPACE_RUN = re.compile(r"\s+")

CategoryChain = list[str]
CategoryValue = list[Union[str, CategoryChain]]


def normalize_segment(segment: str) -> str:
    """Collapse whitespace runs to hyphens, preserving case and punctuation."""
    return _WHITESPACE_RUN.sub("-", segment.strip())


class CategoryPolicy:
    """Apply skip-lists, normalization, and hierarchy shaping to path segments."""

    def __init__(self, skip: Iterable[str], mode: CategoryMode = "hierarchy") -> None:
        self._skip = frozenset(skip) | SYSTEM_DIRECTORIES
        self._mode: CategoryMode = mode

    @classmethod
    def from_config(cls, config: AutoFMConfig) -> "CategoryPolicy":
        """Build a policy from the skip-related configuration fields."""
        skip = {
            config.file_patterns.posts,
            config.file_patterns.drafts,
            config.backup.directory,
            *config.watch.ignored_dirs,
            *config.no_category,
        }
        return cls(skip, config.category_mode)

    @property
    def mode(self) -> CategoryMode:
        return self._mode

    def is_skipped(self, segment: str) -> bool:
        """Return whether a raw segment can never become a category."""
        trimmed = segment.strip()
        return not trimmed or trimmed.startswith(".") or segment in self._skip or trimmed in self._skip

    def chain(self, raw_segments: Sequence[str]) -> CategoryChain:
        """Return the normalized, deduplicated chain for the given segments."""
        chain: CategoryChain = []
        for segment in raw_segments:
            if self.is_skipped(segment):
                continue
            normalized = normalize_segment(segment)
            if normalized and normalized not in chain:
                chain.append(normalized)

        return chain

    def derive(self, raw_segments: Sequence[str]) -> CategoryValue:
        """Shape segments into the configured category value.

        Files directly at the watch root have no segments and derive ``[]``.
        """
        chain = self.chain(raw_segments)
        if not chain:
            return []
        if self._mode == "hierarchy":
            return [chain]
        if self._mode == "flat":
            return list(chain)
        return [chain[-1]]


__all__ = [
    "SYSTEM_DIRECTORIES",
    "CategoryChain",
    "CategoryValue",
    "CategoryPolicy",
    "normalize_segment",
]
