"""
Sandbox Session Manager.

PURPOSE:
========
Every question runs against a DISPOSABLE copy of its dataset store, so
whatever the generated SQL does (including UPDATE/DELETE/DROP) never
reaches the persisted file.

LIFECYCLE:
==========
    with open_sandbox("uploads/sales.csv.sqlite") as sandbox:
        rows = sandbox.query("SELECT COUNT(*) FROM sales")
    # working copy deleted here, on success or failure

- path given  -> copy to sandbox-<uuid>-<basename>, open the copy
- no path     -> in-memory store
- close()     -> idempotent; deletes the copy, logs (never raises) on failure
"""

import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from configs import SANDBOX_DIR

from .database_adapter import DatabaseError, SandboxInitializationError
from .sqlite_adapter import SQLiteAdapter

logger = logging.getLogger("sandboxsql.sandbox")


class SandboxSession(SQLiteAdapter):
    """A SQLite adapter bound to a private working copy of a dataset file."""

    def __init__(self, source_path: Optional[str] = None, sandbox_dir: Optional[str] = None):
        self.source_path = str(source_path) if source_path else None
        self.temp_path: Optional[str] = None
        self._closed = False

        if self.source_path:
            self.temp_path = self._make_copy(self.source_path, sandbox_dir)
            super().__init__(self.temp_path)
        else:
            super().__init__(":memory:")

        try:
            self.connect()
        except DatabaseError as e:
            self._remove_copy()
            raise SandboxInitializationError(f"Could not open sandbox: {e}") from e

    @staticmethod
    def _make_copy(source_path: str, sandbox_dir: Optional[str]) -> str:
        source = Path(source_path)
        if not source.is_file():
            raise SandboxInitializationError(f"Dataset file not found: {source_path}")

        target_dir = Path(sandbox_dir) if sandbox_dir else source.parent
        target = target_dir / f"sandbox-{uuid.uuid4().hex}-{source.name}"
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise SandboxInitializationError(f"Could not copy {source_path} into sandbox: {e}") from e

        logger.debug("Sandbox copy created: %s", target)
        return str(target)

    def _remove_copy(self) -> None:
        if not self.temp_path:
            return
        try:
            os.remove(self.temp_path)
            logger.debug("Sandbox copy removed: %s", self.temp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete sandbox copy %s: %s", self.temp_path, e)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the connection and delete the working copy. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            super().close()
        finally:
            self._remove_copy()


@contextmanager
def open_sandbox(source_path: Optional[str] = None, sandbox_dir: Optional[str] = None):
    """
    Scoped sandbox session; the working copy is removed on every exit path.

    Args:
        source_path: Dataset file to copy, or None for an in-memory store
        sandbox_dir: Directory for the copy (defaults to SANDBOX_DIR, then the
            source file's directory)
    """
    session = SandboxSession(source_path, sandbox_dir or SANDBOX_DIR or None)
    try:
        yield session
    finally:
        session.close()
