"""Path classification and category shaping."""

from .categories import CategoryChain, CategoryPolicy, CategoryValue, normalize_segment
from .paths import Classification, FileLocation, classify_location, parse_file_name

__all__ = [
    "CategoryChain",
    "CategoryPolicy",
    "CategoryValue",
    "Classification",
    "FileLocation",
    "classify_location",
    "normalize_segment",
    "parse_file_name",
]
