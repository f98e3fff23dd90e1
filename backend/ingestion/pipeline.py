"""
Tabular Ingestion Pipeline.

Turns uploaded files into a SQLite dataset store.

PER FILE:
=========
1. Parse      -> raw string cells (csv_loader)
2. Type       -> numeric iff every non-empty value is a finite number
3. Name       -> model suggestion, sanitized; deterministic fallback
4. Load       -> CREATE TABLE IF NOT EXISTS + bulk insert, one transaction
5. Normalize  -> optional model-proposed UPDATEs; failures only logged

BATCHES:
========
- one CSV          -> <upload>.sqlite
- several CSVs     -> <first upload>.master.sqlite, one table per file
- one SQLite file  -> validated and used as the store directly
- any unsupported file rejects the whole batch before work starts
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from configs import (
    CLEANING_SAMPLE_ROWS,
    MAX_TABLE_NAME_LENGTH,
    MAX_UPLOAD_FILES,
    MIN_TABLE_NAME_LENGTH,
    SQLITE_EXTENSIONS,
    SUPPORTED_DELIMITED_EXTENSIONS,
)

from backend.adapters import (
    DatabaseError,
    SQLiteAdapter,
    quote_identifier,
    verify_sqlite_file,
)
from backend.agents import AgentModel, LLMError, strip_code_fences
from backend.models import ColumnSpec, DatasetSnapshot, TableInfo
from backend.tools import introspect

from .csv_loader import (
    IngestionError,
    IngestionParseError,
    TableLoadError,
    UnsupportedFileTypeError,
    coerce_rows,
    infer_columns,
    read_delimited_file,
)

logger = logging.getLogger("sandboxsql.ingestion")

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


@dataclass
class UploadedFile:
    """A file saved by the upload layer, with the name the client sent."""
    path: str
    original_name: str

    @property
    def extension(self) -> str:
        return Path(self.original_name or self.path).suffix.lower()


class IngestionResult(BaseModel):
    """Where the store lives, what was loaded, and what it looks like now."""
    path: str
    tables: List[TableInfo] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)  # "<file>: <reason>"
    snapshot: DatasetSnapshot = Field(default_factory=DatasetSnapshot)


# ============================================================
# TABLE NAMING
# ============================================================

def sanitize_table_name(raw: str) -> str:
    """
    Clean a suggested table name.

    Raises:
        ValueError: if the result is shorter than MIN_TABLE_NAME_LENGTH or
            longer than MAX_TABLE_NAME_LENGTH
    """
    name = strip_code_fences(raw or "").replace("\n", "").strip()
    if not name:
        raise ValueError("Empty table name")
    name = _INVALID_NAME_CHARS.sub("_", name).lower()
    if not re.match(r"^[a-z]", name):
        name = "t_" + name
    if not MIN_TABLE_NAME_LENGTH <= len(name) <= MAX_TABLE_NAME_LENGTH:
        raise ValueError(f"Unusable table name {name!r}")
    return name


def fallback_table_name(filename: str) -> str:
    stem = Path(filename).stem
    return "table_" + _INVALID_NAME_CHARS.sub("_", stem)


def choose_table_name(model: AgentModel, filename: str, headers: Sequence[str]) -> str:
    """Model-suggested name, or table_<stem> when the suggestion is unusable."""
    try:
        return sanitize_table_name(model.suggest_table_name(filename, list(headers)[:5]))
    except (LLMError, ValueError) as e:
        name = fallback_table_name(filename)
        logger.warning("Smart naming failed for %s, using %s: %s", filename, name, e)
        return name


# ============================================================
# LOAD + NORMALIZE
# ============================================================

def load_table(store: SQLiteAdapter, table_name: str, columns: Sequence[ColumnSpec], rows: Sequence[tuple]) -> int:
    """
    Create the table if needed and insert every row, all-or-nothing.

    Returns the table's row count after the load.

    Raises:
        TableLoadError: the transaction was rolled back
    """
    table = quote_identifier(table_name)
    column_defs = ", ".join(f"{quote_identifier(c.name)} {c.type.sql_type}" for c in columns)
    placeholders = ", ".join("?" for _ in columns)

    try:
        with store.transaction():
            store.execute(f"CREATE TABLE IF NOT EXISTS {table} ({column_defs})")
            store.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
    except DatabaseError as e:
        raise TableLoadError(f"Loading {table_name} failed and was rolled back: {e}") from e

    return store.get_row_count(table_name)


def normalize_table(model: AgentModel, store: SQLiteAdapter, table_name: str, columns: Sequence[ColumnSpec]) -> bool:
    """
    Apply model-proposed UPDATE statements. Best-effort: never raises.

    Returns True when cleanup SQL was applied.
    """
    try:
        sample = store.get_sample_rows(table_name, limit=CLEANING_SAMPLE_ROWS)
        statements = model.propose_cleanup(table_name, [c.name for c in columns], sample)
        updates = [s.rstrip(";").strip() for s in statements if s.lstrip().upper().startswith("UPDATE")]
        if len(updates) != len(statements):
            logger.warning("Ignored %d non-UPDATE cleanup statement(s) for %s",
                           len(statements) - len(updates), table_name)
        if not updates:
            logger.info("No cleaning SQL generated for %s", table_name)
            return False
        store.executescript(";\n".join(updates) + ";")
        logger.info("Applied %d cleanup statement(s) to %s", len(updates), table_name)
        return True
    except (LLMError, DatabaseError) as e:
        logger.warning("Cleanup of %s failed, keeping loaded data: %s", table_name, e)
        return False


def ingest_file(model: AgentModel, store: SQLiteAdapter, upload: UploadedFile, clean: bool = False) -> Optional[TableInfo]:
    """
    Run the per-file pipeline against an open store.

    Returns None for a header-only file (no table is created).
    """
    headers, raw_rows = read_delimited_file(upload.path)
    if not raw_rows:
        logger.info("%s has no data rows, skipping", upload.original_name)
        return None

    columns = infer_columns(headers, raw_rows)
    table_name = choose_table_name(model, upload.original_name, headers)
    row_count = load_table(store, table_name, columns, coerce_rows(raw_rows, columns))
    logger.info("Loaded %s into %s (%d rows)", upload.original_name, table_name, row_count)

    if clean:
        normalize_table(model, store, table_name, columns)

    return TableInfo(
        name=table_name,
        columns=columns,
        row_count=store.get_row_count(table_name),
        source_file=upload.original_name,
    )


# ============================================================
# BATCH OPERATIONS
# ============================================================

def _remove_files(paths: Sequence[str]) -> None:
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)


def _check_delimited(uploads: Sequence[UploadedFile], remove_uploads: bool = False) -> None:
    bad = [u.original_name for u in uploads if u.extension not in SUPPORTED_DELIMITED_EXTENSIONS]
    if bad:
        if remove_uploads:
            _remove_files([u.path for u in uploads])
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {', '.join(bad)}. "
            f"Accepted: {', '.join(SUPPORTED_DELIMITED_EXTENSIONS + SQLITE_EXTENSIONS)} "
            f"(SQLite files only as a single upload)."
        )


def ingest_files(
    model: AgentModel,
    uploads: Sequence[UploadedFile],
    clean: bool = False,
    remove_uploads: bool = False,
) -> IngestionResult:
    """
    Build a new dataset store from an upload batch.

    A file that cannot be parsed is skipped and reported in
    `IngestionResult.skipped`; the rest of the batch still loads.

    Args:
        remove_uploads: the upload paths are server-owned temporary copies.
            They are deleted once the batch is done, whatever the outcome.
            Callers passing a user's own files leave this False.

    Raises:
        UnsupportedFileTypeError: any file is not accepted; nothing is loaded
        IngestionParseError: every file in the batch failed to parse
        TableLoadError: a table load was rolled back; the new store is deleted
    """
    uploads = list(uploads)
    if not uploads:
        raise IngestionError("No files uploaded")
    if len(uploads) > MAX_UPLOAD_FILES:
        if remove_uploads:
            _remove_files([u.path for u in uploads])
        raise IngestionError(f"Too many files: {len(uploads)} (max {MAX_UPLOAD_FILES})")

    first = uploads[0]
    if len(uploads) == 1 and first.extension in SQLITE_EXTENSIONS:
        return _register_sqlite_upload(first, remove_uploads)

    _check_delimited(uploads, remove_uploads)

    suffix = ".sqlite" if len(uploads) == 1 else ".master.sqlite"
    store_path = first.path + suffix

    store = SQLiteAdapter(store_path, create=True)
    tables: List[TableInfo] = []
    skipped: List[str] = []
    try:
        for upload in uploads:
            try:
                info = ingest_file(model, store, upload, clean=clean)
            except IngestionParseError as e:
                logger.warning("Skipping %s: %s", upload.original_name, e)
                skipped.append(f"{upload.original_name}: {e}")
                continue
            if info is not None:
                tables.append(info)
        if skipped and len(skipped) == len(uploads):
            raise IngestionParseError("No file could be parsed. " + "; ".join(skipped))
        snapshot = introspect(store)
    except IngestionError:
        store.close()
        _remove_files([store_path])
        raise
    finally:
        store.close()
        if remove_uploads:
            _remove_files([u.path for u in uploads])

    logger.info("Ingested %d of %d file(s) into %s", len(uploads) - len(skipped), len(uploads), store_path)
    return IngestionResult(path=store_path, tables=tables, skipped=skipped, snapshot=snapshot)


def _register_sqlite_upload(upload: UploadedFile, remove_uploads: bool = False) -> IngestionResult:
    error = verify_sqlite_file(upload.path)
    if error:
        if remove_uploads:
            _remove_files([upload.path])
        raise IngestionParseError(f"{upload.original_name} is not a readable SQLite database: {error}")

    store = SQLiteAdapter(upload.path)
    try:
        snapshot = introspect(store)
    finally:
        store.close()

    logger.info("Registered SQLite upload %s", upload.original_name)
    return IngestionResult(path=upload.path, snapshot=snapshot)


def append_file(
    model: AgentModel,
    store_path: str,
    upload: UploadedFile,
    clean: bool = False,
    remove_uploads: bool = False,
) -> IngestionResult:
    """
    Add one delimited file to an existing store as a new (or existing) table.

    With `remove_uploads`, the uploaded file is deleted afterwards.

    Raises:
        DatasetNotFoundError: the store file is missing
        UnsupportedFileTypeError: the upload is not a delimited file
        IngestionParseError: the file could not be parsed
    """
    try:
        _check_delimited([upload])

        store = SQLiteAdapter(store_path)
        store.connect()
        try:
            info = ingest_file(model, store, upload, clean=clean)
            snapshot = introspect(store)
        finally:
            store.close()
    finally:
        if remove_uploads:
            _remove_files([upload.path])

    return IngestionResult(path=store_path, tables=[info] if info else [], snapshot=snapshot)


def drop_table(store_path: str, table_name: str) -> DatasetSnapshot:
    """Irreversibly drop one table from a persisted store."""
    store = SQLiteAdapter(store_path)
    try:
        store.drop_table(table_name)
        logger.info("Dropped table %s from %s", table_name, store_path)
        return introspect(store)
    finally:
        store.close()
