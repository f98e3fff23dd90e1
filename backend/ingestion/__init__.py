"""
Ingestion module.

Turns uploaded CSV (or SQLite) files into dataset stores.
"""

from .csv_loader import (
    IngestionError,
    IngestionParseError,
    UnsupportedFileTypeError,
    TableLoadError,
    read_delimited_file,
    infer_column_type,
    infer_columns,
)
from .pipeline import (
    UploadedFile,
    IngestionResult,
    sanitize_table_name,
    fallback_table_name,
    choose_table_name,
    load_table,
    normalize_table,
    ingest_file,
    ingest_files,
    append_file,
    drop_table,
)

__all__ = [
    # Errors
    "IngestionError",
    "IngestionParseError",
    "UnsupportedFileTypeError",
    "TableLoadError",
    # Parsing
    "read_delimited_file",
    "infer_column_type",
    "infer_columns",
    # Pipeline
    "UploadedFile",
    "IngestionResult",
    "sanitize_table_name",
    "fallback_table_name",
    "choose_table_name",
    "load_table",
    "normalize_table",
    "ingest_file",
    "ingest_files",
    "append_file",
    "drop_table",
]
