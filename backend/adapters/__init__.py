"""
Adapters module for SandboxSQL.

Contains:
1. SQLiteAdapter for persisted dataset stores
2. SandboxSession for per-question working copies
"""

from .database_adapter import (
    DatabaseAdapter,
    DatabaseError,
    DatasetNotFoundError,
    SandboxInitializationError,
    QueryExecutionError,
    quote_identifier,
)
from .sqlite_adapter import SQLiteAdapter, open_sqlite_store, verify_sqlite_file
from .sandbox_adapter import SandboxSession, open_sandbox

__all__ = [
    "DatabaseAdapter",
    "DatabaseError",
    "DatasetNotFoundError",
    "SandboxInitializationError",
    "QueryExecutionError",
    "quote_identifier",
    "SQLiteAdapter",
    "open_sqlite_store",
    "verify_sqlite_file",
    "SandboxSession",
    "open_sandbox",
]
