"""
Schema Introspector.

Builds the two views of a dataset store that the rest of the system uses:

- schema text: every user table's CREATE statement from sqlite_master,
  joined with ";\\n\\n". This is what the generator and validator read.
- database state: {table: TableSnapshot(rows=[one sample row], total=N)}.
  Returned to the caller alongside every answer and every upload.

Per-table sample/count fetches run concurrently in a thread pool; the
adapter's lock serializes access to the shared connection.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from backend.adapters import SQLiteAdapter
from backend.models import DatasetSnapshot, TableSnapshot

logger = logging.getLogger("sandboxsql.introspector")

SCHEMA_SEPARATOR = ";\n\n"


def build_schema_text(adapter: SQLiteAdapter) -> str:
    """DDL of every user table, in creation order."""
    return SCHEMA_SEPARATOR.join(adapter.get_create_statements())


def _snapshot_table(adapter: SQLiteAdapter, table_name: str) -> TableSnapshot:
    return TableSnapshot(
        rows=adapter.get_sample_rows(table_name, limit=1),
        total=adapter.get_row_count(table_name),
    )


def collect_database_state(adapter: SQLiteAdapter, max_workers: Optional[int] = None) -> Dict[str, TableSnapshot]:
    """One sample row and the row count for every user table."""
    tables = adapter.list_tables()
    if not tables:
        return {}

    workers = max_workers or min(8, len(tables))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="introspect") as pool:
        futures = {name: pool.submit(_snapshot_table, adapter, name) for name in tables}
        # Iterate in table order so the mapping is stable
        return {name: futures[name].result() for name in tables}


def introspect(adapter: SQLiteAdapter) -> DatasetSnapshot:
    """Schema text plus database state for the store behind `adapter`."""
    snapshot = DatasetSnapshot(
        schema_text=build_schema_text(adapter),
        database_state=collect_database_state(adapter),
    )
    logger.debug("Introspected %d table(s)", len(snapshot.database_state))
    return snapshot
