"""
SQLite Database Adapter.

Implements the DatabaseAdapter interface for a persisted dataset store.
Ingestion, append and drop-table all write through this adapter; questions
never do (they go through a SandboxSession copy).
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database_adapter import (
    DatabaseAdapter,
    DatabaseError,
    DatasetNotFoundError,
    QueryExecutionError,
    quote_identifier,
)


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite implementation of DatabaseAdapter.

    Features:
    - File-based store, or ":memory:"
    - Autocommit mode; multi-statement work goes through transaction()
    - Schema helpers used by ingestion and the schema introspector
    """

    driver_errors = (sqlite3.Error,)

    def __init__(self, file_path: str, create: bool = False):
        """
        Initialize SQLite adapter.

        Args:
            file_path: Path to the SQLite file, or ":memory:"
            create: Create the file if it does not exist yet
        """
        super().__init__()
        self.file_path = str(file_path)
        self.create = create

    @property
    def is_memory(self) -> bool:
        return self.file_path == ":memory:"

    def connect(self) -> None:
        """Establish the connection to the SQLite file."""
        if self._connection is not None:
            return

        if not self.is_memory and not self.create and not Path(self.file_path).exists():
            raise DatasetNotFoundError(f"Database file not found: {self.file_path}")

        try:
            # isolation_level=None: BEGIN/COMMIT are issued explicitly by transaction()
            self._connection = sqlite3.connect(
                self.file_path, check_same_thread=False, isolation_level=None
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open SQLite file {self.file_path}: {e}") from e

    def close(self) -> None:
        """Close the SQLite connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _translate_error(self, error: Exception, sql: str) -> DatabaseError:
        return QueryExecutionError(str(error))

    # ============================================================
    # SCHEMA HELPERS
    # ============================================================

    def list_tables(self) -> List[str]:
        """User tables in creation order."""
        rows = self.query(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY rowid"
        )
        return [row["name"] for row in rows]

    def get_create_statements(self) -> List[str]:
        rows = self.query(
            "SELECT sql FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' AND sql IS NOT NULL ORDER BY rowid"
        )
        return [row["sql"] for row in rows]

    def get_table_columns(self, table_name: str) -> List[str]:
        rows = self.query(f"PRAGMA table_info({quote_identifier(table_name)})")
        return [row["name"] for row in rows]

    def get_sample_rows(self, table_name: str, limit: int = 1) -> List[Dict[str, Any]]:
        return self.query(f"SELECT * FROM {quote_identifier(table_name)} LIMIT ?", (int(limit),))

    def get_row_count(self, table_name: str) -> int:
        rows = self.query(f"SELECT COUNT(*) AS total FROM {quote_identifier(table_name)}")
        return int(rows[0]["total"]) if rows else 0

    def table_exists(self, table_name: str) -> bool:
        rows = self.query(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ?", (table_name,)
        )
        return bool(rows)

    def drop_table(self, table_name: str) -> None:
        """Irreversibly drop a table (no-op when it does not exist)."""
        self.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")


def open_sqlite_store(file_path: str, create: bool = False) -> SQLiteAdapter:
    """Create and connect a SQLite adapter."""
    adapter = SQLiteAdapter(file_path, create=create)
    adapter.connect()
    return adapter


def verify_sqlite_file(file_path: str) -> Optional[str]:
    """
    Check that a file is a readable SQLite database.

    Returns None when it is, otherwise the driver error message.
    """
    try:
        conn = sqlite3.connect(f"file:{file_path}?mode=ro", uri=True)
        try:
            conn.execute("SELECT 1").fetchone()
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        return str(e)
    return None
