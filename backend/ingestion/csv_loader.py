"""
Delimited-file parsing and column type inference.

Every value is read as the raw string from the file (pandas with
dtype=str and keep_default_na=False), so "", "NA" and "null" all stay
as written until type inference decides what they mean.
"""
import logging
import math
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from backend.models import ColumnSpec, ColumnType

logger = logging.getLogger("sandboxsql.ingestion")


class IngestionError(Exception):
    """Base exception for ingestion failures."""
    pass


class IngestionParseError(IngestionError):
    """A file could not be parsed as a delimited table."""
    pass


class UnsupportedFileTypeError(IngestionError):
    """An uploaded file has an extension the pipeline does not accept."""
    pass


class TableLoadError(IngestionError):
    """Creating or filling a table failed; the load was rolled back."""
    pass


def read_delimited_file(path: str) -> Tuple[List[str], List[List[str]]]:
    """
    Parse a CSV file into (headers, rows) of raw strings.

    A header-only file yields an empty row list.

    Raises:
        IngestionParseError: empty file, malformed rows, or undecodable bytes
    """
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as e:
        raise IngestionParseError(f"{path}: file is empty") from e
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise IngestionParseError(f"{path}: {e}") from e

    headers = [str(h) for h in frame.columns]
    rows = frame.values.tolist()
    return headers, rows


def is_numeric_value(value: str) -> bool:
    """True when the string parses as a finite number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number)


def infer_column_type(values: Sequence[str]) -> ColumnType:
    """
    numeric iff every non-empty value is a finite number.

    A column with no non-empty values is text.
    """
    non_empty = [v for v in values if v is not None and str(v).strip() != ""]
    if not non_empty:
        return ColumnType.TEXT
    if all(is_numeric_value(v) for v in non_empty):
        return ColumnType.NUMERIC
    return ColumnType.TEXT


def infer_columns(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[ColumnSpec]:
    columns = []
    for idx, name in enumerate(headers):
        col_type = infer_column_type([row[idx] for row in rows])
        columns.append(ColumnSpec(name=name, type=col_type))
    return columns


def coerce_value(value: str, column_type: ColumnType) -> Optional[object]:
    """Storage value: numbers as float, blank numerics as NULL, text verbatim."""
    if column_type is ColumnType.NUMERIC:
        if value is None or str(value).strip() == "":
            return None
        return float(value)
    return value


def coerce_rows(rows: Sequence[Sequence[str]], columns: Sequence[ColumnSpec]) -> List[tuple]:
    return [
        tuple(coerce_value(value, col.type) for value, col in zip(row, columns))
        for row in rows
    ]
