"""
Conftest for SandboxSQL tests.

Ensures the project root is on sys.path so that 'backend' and 'configs'
resolve, points UPLOAD_DIR at a scratch directory before any config is
imported, and provides a scripted AgentModel so no test needs an LLM.
"""

import os
import sqlite3
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set environment BEFORE any configs import
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="sandboxsql-uploads-"))
os.environ.setdefault("GEMINI_API_KEY", "test-key-for-ci")

from backend.agents import AgentModel, LLMError  # noqa: E402
from backend.models import (  # noqa: E402
    MissingColumns,
    RelevanceVerdict,
    SqlCandidate,
    ValidationVerdict,
)


# =============================================================================
# FAKE MODEL
# =============================================================================

class FakeAgentModel(AgentModel):
    """
    Scripted AgentModel.

    `generations` are returned in order (a str becomes SqlCandidate); the
    last one repeats. `validations` likewise (a bool becomes a verdict), or
    pass a callable(sql) -> ValidationVerdict. Any role can be made to
    fail by setting its `*_error` attribute.
    """

    def __init__(
        self,
        generations: Sequence[Union[str, MissingColumns]] = ("SELECT 1 AS one",),
        validations: Union[Sequence[Union[bool, ValidationVerdict]], Callable] = (True,),
        relevant: bool = True,
        title: str = "Generated Title",
        table_name: str = "",
        cleanup: Sequence[str] = (),
    ):
        self.generations = list(generations)
        self.validations = validations
        self.relevant = relevant
        self.title = title
        self.table_name = table_name
        self.cleanup = list(cleanup)

        self.generate_error: Optional[Exception] = None
        self.validate_error: Optional[Exception] = None
        self.relevance_error: Optional[Exception] = None
        self.title_error: Optional[Exception] = None
        self.naming_error: Optional[Exception] = None
        self.cleanup_error: Optional[Exception] = None

        self.generate_calls: List[dict] = []
        self.validate_calls: List[str] = []
        self.relevance_calls = 0
        self.naming_calls: List[tuple] = []
        self.cleanup_calls: List[tuple] = []

    @staticmethod
    def _pick(items, index):
        return items[min(index, len(items) - 1)]

    def generate_sql(self, question, schema_text, feedback="", restricted_columns=()):
        if self.generate_error:
            raise self.generate_error
        self.generate_calls.append({
            "question": question,
            "schema_text": schema_text,
            "feedback": feedback,
            "restricted_columns": tuple(restricted_columns),
        })
        item = self._pick(self.generations, len(self.generate_calls) - 1)
        return SqlCandidate(sql=item) if isinstance(item, str) else item

    def validate_sql(self, sql, schema_text):
        if self.validate_error:
            raise self.validate_error
        self.validate_calls.append(sql)
        if callable(self.validations):
            return self.validations(sql)
        item = self._pick(list(self.validations), len(self.validate_calls) - 1)
        if isinstance(item, bool):
            return ValidationVerdict(valid=item, reasoning="ok" if item else f"rejected attempt {len(self.validate_calls)}")
        return item

    def check_relevance(self, question, schema_text):
        self.relevance_calls += 1
        if self.relevance_error:
            raise self.relevance_error
        return RelevanceVerdict(relevant=self.relevant, reasoning="scripted")

    def generate_title(self, question):
        if self.title_error:
            raise self.title_error
        return self.title

    def suggest_table_name(self, filename, headers):
        self.naming_calls.append((filename, tuple(headers)))
        if self.naming_error:
            raise self.naming_error
        return self.table_name

    def propose_cleanup(self, table_name, columns, sample_rows):
        self.cleanup_calls.append((table_name, tuple(columns), len(sample_rows)))
        if self.cleanup_error:
            raise self.cleanup_error
        return list(self.cleanup)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_model():
    return FakeAgentModel()


@pytest.fixture
def write_csv(tmp_path):
    """Write a CSV file under tmp_path and return its path as str."""
    def _write(name: str, content: str) -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def orders_db(tmp_path):
    """A small persisted store with an `orders` table (3 rows)."""
    path = tmp_path / "orders.sqlite"
    conn = sqlite3.connect(path)
    conn.execute('CREATE TABLE "orders" ("id" REAL, "customer" TEXT, "amount" REAL)')
    conn.executemany(
        'INSERT INTO "orders" VALUES (?, ?, ?)',
        [(1, "ada", 10.0), (2, "bob", 25.5), (3, "ada", 4.5)],
    )
    conn.commit()
    conn.close()
    return str(path)


def row_count(db_path: str, table: str) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]
    finally:
        conn.close()


__all__ = ["FakeAgentModel", "LLMError", "row_count"]
