"""Front matter parsing, merging, and per-file processing."""

from .merger import CORE_FIELDS, OPT_OUT_FIELD, MergeMode, is_opted_out, merge_categories, merge_records
from .processor import FrontMatterProcessor, Operation, OperationResult, UPDATED_FIELD, content_digest
from .serializer import (
    MetadataRecord,
    ParsedDocument,
    order_fields,
    read_document,
    records_equal,
    render_document,
    split_document,
    write_atomic,
)

__all__ = [
    "CORE_FIELDS",
    "OPT_OUT_FIELD",
    "UPDATED_FIELD",
    "FrontMatterProcessor",
    "MergeMode",
    "MetadataRecord",
    "Operation",
    "OperationResult",
    "ParsedDocument",
    "content_digest",
    "is_opted_out",
    "merge_categories",
    "merge_records",
    "order_fields",
    "read_document",
    "records_equal",
    "render_document",
    "split_document",
    "write_atomic",
]
