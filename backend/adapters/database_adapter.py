"""
Database Adapter Layer for SandboxSQL.

Every read or write against a dataset store goes through an adapter.
Two concrete adapters exist, both SQLite:
- SQLiteAdapter: the persisted dataset file (ingestion, append, drop table)
- SandboxSession: a disposable working copy used by one question

Design Principles:
- Agents NEVER touch a dataset file directly
- Adapters translate driver errors into the exceptions below
- A single connection per adapter, guarded by a lock so helper threads
  (schema introspection) can share it
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class DatasetNotFoundError(DatabaseError):
    """The dataset file or record does not exist."""
    pass


class SandboxInitializationError(DatabaseError):
    """A sandbox working copy could not be created or opened."""
    pass


class QueryExecutionError(DatabaseError):
    """A statement failed at execution time."""
    pass


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQLite."""
    return '"' + str(name).replace('"', '""') + '"'


class DatabaseAdapter(ABC):
    """
    Abstract base class for dataset store adapters.

    Subclasses decide how a connection is obtained (`connect`) and what
    happens on release (`close`). Query helpers are shared.
    """

    # Driver exception types translated by _translate_error
    driver_errors: tuple = (Exception,)

    def __init__(self):
        self._connection = None
        self._lock = threading.RLock()

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying connection."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection and any resources owned by the adapter."""
        pass

    @abstractmethod
    def _translate_error(self, error: Exception, sql: str) -> DatabaseError:
        """Map a driver exception to a DatabaseError."""
        pass

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _require_connection(self):
        if self._connection is None:
            self.connect()
        return self._connection

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a statement and return its rows as dictionaries.

        Statements that produce no result set return an empty list.
        """
        with self._lock:
            conn = self._require_connection()
            try:
                cursor = conn.execute(sql, tuple(params or ()))
                if cursor.description is None:
                    return []
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except self.driver_errors as e:
                raise self._translate_error(e, sql) from e

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        """Execute a statement, discarding any result set."""
        self.query(sql, params)

    def executemany(self, sql: str, rows: Iterable[Sequence[Any]]) -> None:
        with self._lock:
            conn = self._require_connection()
            try:
                conn.executemany(sql, rows)
            except self.driver_errors as e:
                raise self._translate_error(e, sql) from e

    def executescript(self, script: str) -> None:
        """Run several semicolon-separated statements."""
        with self._lock:
            conn = self._require_connection()
            try:
                conn.executescript(script)
            except self.driver_errors as e:
                raise self._translate_error(e, script) from e

    @contextmanager
    def transaction(self):
        """
        All-or-nothing block: commits on success, rolls back on any exception.
        """
        with self._lock:
            conn = self._require_connection()
            conn.execute("BEGIN")
            try:
                yield self
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
