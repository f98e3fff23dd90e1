"""
Dataset registry.

Maps dataset ids to SQLite store files. In-memory (like the database
registry it replaces); records are lost on restart, files are not.

Writes to one dataset (append, drop table, delete) are serialized with
a per-dataset lock. Questions never take it: they read a sandbox copy.
"""

import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from configs import UPLOAD_DIR

from backend.adapters import DatasetNotFoundError
from backend.models import DatasetRecord

logger = logging.getLogger("sandboxsql.datasets")


class DatasetRegistry:
    """Thread-safe in-memory dataset registry."""

    def __init__(self):
        self._records: Dict[str, DatasetRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def register(self, path: str, original_name: str) -> DatasetRecord:
        record = DatasetRecord(id=uuid.uuid4().hex, path=str(path), original_name=original_name)
        with self._guard:
            self._records[record.id] = record
            self._locks[record.id] = threading.Lock()
        logger.info("Registered dataset %s -> %s", record.id, record.path)
        return record

    def get(self, dataset_id: str) -> DatasetRecord:
        with self._guard:
            record = self._records.get(dataset_id)
        if record is None:
            raise DatasetNotFoundError(f"Dataset '{dataset_id}' not registered")
        return record

    def list(self) -> List[DatasetRecord]:
        with self._guard:
            return sorted(self._records.values(), key=lambda r: r.created_at)

    def write_lock(self, dataset_id: str) -> threading.Lock:
        """Lock held for the duration of a write to the dataset's store."""
        self.get(dataset_id)
        with self._guard:
            return self._locks[dataset_id]

    def remove(self, dataset_id: str, delete_file: bool = True) -> DatasetRecord:
        """Forget a dataset; by default its store file is deleted too."""
        with self.write_lock(dataset_id):
            with self._guard:
                record = self._records.pop(dataset_id)
                self._locks.pop(dataset_id, None)
            if delete_file:
                try:
                    os.remove(record.path)
                except FileNotFoundError:
                    pass
        logger.info("Removed dataset %s", dataset_id)
        return record

    def __len__(self) -> int:
        with self._guard:
            return len(self._records)


def _is_within(path: Path, root: Path) -> bool:
    return path.resolve().is_relative_to(root.resolve())


def resolve_dataset_path(
    db_file_path: str,
    upload_dir: Optional[str] = None,
    allow_any_path: bool = False,
) -> str:
    """
    Map a client-supplied store path to an existing file in the upload dir.

    - "<x>.csv" means the store built from it: "<x>.csv.sqlite"
    - a path that does not exist, or lies outside the upload dir, is
      looked up in the upload dir by basename

    `allow_any_path` lifts the upload dir restriction; only local callers
    such as the CLI, which already have filesystem access, set it.

    Raises:
        DatasetNotFoundError: nothing exists at either location
    """
    root = Path(upload_dir or UPLOAD_DIR)
    path = db_file_path
    if path.lower().endswith(".csv"):
        path = path + ".sqlite"

    if Path(path).is_file():
        if allow_any_path or _is_within(Path(path), root):
            return path
        logger.warning("Refusing dataset path outside %s: %s", root, db_file_path)

    candidate = root / Path(path).name
    if candidate.is_file():
        logger.debug("Resolved %s via upload dir: %s", db_file_path, candidate)
        return str(candidate)

    raise DatasetNotFoundError(f"Dataset file not found: {db_file_path}")
