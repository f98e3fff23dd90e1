"""
Ask service tests: one question against a sandbox copy of a dataset,
plus the introspection views and dataset registry it relies on.
"""

import json
import os
from pathlib import Path

import pytest

from conftest import FakeAgentModel, LLMError, row_count

from backend.adapters import DatasetNotFoundError, SandboxInitializationError, SQLiteAdapter
from backend.datasets import DatasetRegistry, resolve_dataset_path
from backend.orchestrator import (
    MemoryQueryLogSink,
    answer_question,
    fallback_title,
    make_title,
)
from backend.tools import build_schema_text, collect_database_state, introspect


def _leftover_sandboxes(directory) -> list:
    return [p.name for p in Path(directory).iterdir() if p.name.startswith("sandbox-")]


# =============================================================================
# INTROSPECTION
# =============================================================================

class TestIntrospection:

    def test_schema_text_joins_create_statements(self, orders_db):
        with SQLiteAdapter(orders_db) as store:
            store.execute('CREATE TABLE "returns" ("order_id" REAL, "reason" TEXT)')
            schema = build_schema_text(store)
        parts = schema.split(";\n\n")
        assert len(parts) == 2
        assert '"orders"' in parts[0]
        assert '"returns"' in parts[1]

    def test_database_state_shape(self, orders_db):
        with SQLiteAdapter(orders_db) as store:
            store.execute('CREATE TABLE "empty" ("x" TEXT)')
            state = collect_database_state(store)
        assert list(state) == ["orders", "empty"]
        assert state["orders"].total == 3
        assert len(state["orders"].rows) == 1
        assert state["empty"].rows == []
        assert state["empty"].total == 0

    def test_introspect_empty_store(self, tmp_path):
        with SQLiteAdapter(str(tmp_path / "new.sqlite"), create=True) as store:
            snapshot = introspect(store)
        assert snapshot.schema_text == ""
        assert snapshot.database_state == {}


# =============================================================================
# TITLES
# =============================================================================

class TestTitles:

    def test_short_question_is_kept(self):
        assert fallback_title("  Sales per region?  ") == "Sales per region?"

    def test_long_question_is_truncated(self):
        question = "x" * 60
        title = fallback_title(question)
        assert title == "x" * 47 + "..."
        assert len(title) == 50

    def test_model_title_preferred(self):
        assert make_title(FakeAgentModel(title="Regional Sales"), "q") == "Regional Sales"

    def test_model_failure_uses_question(self):
        model = FakeAgentModel()
        model.title_error = LLMError("down")
        assert make_title(model, "Total sales?") == "Total sales?"


# =============================================================================
# ANSWER QUESTION
# =============================================================================

class TestAnswerQuestion:

    def test_success_records_query_log(self, orders_db):
        sink = MemoryQueryLogSink()
        model = FakeAgentModel(
            generations=['SELECT "customer", SUM("amount") AS total FROM "orders" GROUP BY "customer" ORDER BY "customer"'],
            title="Spend per Customer",
        )
        result = answer_question(model, "How much did each customer spend?", db_path=orders_db,
                                 dataset_id="ds1", sink=sink)

        assert result.status == "success"
        assert result.answer == [{"customer": "ada", "total": 14.5}, {"customer": "bob", "total": 25.5}]
        assert result.iterations == 1
        assert result.error is None
        assert result.database_state["orders"].total == 3
        assert "CREATE TABLE" in result.schema_text

        assert sink.entries == [result.query_log]
        entry = result.query_log
        assert entry.title == "Spend per Customer"
        assert entry.dataset_id == "ds1"
        assert json.loads(entry.result_summary) == result.answer
        assert entry.status == "success"

    def test_failure_reports_attempts_and_records_log(self, orders_db):
        sink = MemoryQueryLogSink()
        model = FakeAgentModel(generations=["SELECT nope FROM orders"])
        result = answer_question(model, "q?", db_path=orders_db, sink=sink)

        assert result.status == "failure"
        assert result.error == "Could not produce a working query after 3 attempt(s)."
        assert result.answer is None
        assert result.sql == "SELECT nope FROM orders"
        assert result.feedback.startswith("Runtime Error:")
        assert sink.entries == [result.query_log]
        entry = result.query_log
        assert entry.status == "failure"
        assert entry.generated_sql == "SELECT nope FROM orders"
        assert entry.result_summary == "[]"

    def test_no_question_returns_state_only(self, orders_db):
        model = FakeAgentModel()
        result = answer_question(model, "   ", db_path=orders_db)

        assert result.status == "state"
        assert result.database_state["orders"].total == 3
        assert '"orders"' in result.schema_text
        assert model.generate_calls == []

    def test_supplied_schema_is_used(self, orders_db):
        model = FakeAgentModel(generations=['SELECT "customer" FROM "orders"'])
        answer_question(model, "q?", db_path=orders_db, schema_text="CREATE TABLE orders (customer TEXT)")
        assert model.generate_calls[0]["schema_text"] == "CREATE TABLE orders (customer TEXT)"

    def test_mutations_stay_in_sandbox_but_show_in_state(self, orders_db):
        model = FakeAgentModel(generations=['DELETE FROM "orders"'])
        result = answer_question(model, "Clear everything", db_path=orders_db)

        assert result.success
        assert result.database_state["orders"].total == 0
        assert row_count(orders_db, "orders") == 3

    def test_sandbox_removed_when_model_fails(self, orders_db):
        model = FakeAgentModel()
        model.generate_error = LLMError("provider down")
        with pytest.raises(LLMError):
            answer_question(model, "q?", db_path=orders_db)
        assert _leftover_sandboxes(Path(orders_db).parent) == []

    def test_missing_store_raises_before_any_model_call(self, tmp_path):
        model = FakeAgentModel()
        with pytest.raises(SandboxInitializationError):
            answer_question(model, "q?", db_path=str(tmp_path / "gone.sqlite"))
        assert model.generate_calls == []
        assert model.relevance_calls == 0

    def test_graph_options_pass_through(self, orders_db):
        model = FakeAgentModel(generations=['DELETE FROM "orders"', 'SELECT COUNT(*) AS n FROM "orders"'])
        result = answer_question(model, "q?", db_path=orders_db, allow_mutating_queries=False)
        assert result.answer == [{"n": 3}]
        assert result.iterations == 2


# =============================================================================
# DATASETS
# =============================================================================

class TestDatasets:

    def test_registry_lifecycle(self, orders_db):
        registry = DatasetRegistry()
        record = registry.register(orders_db, "orders.sqlite")

        assert registry.get(record.id).path == orders_db
        assert [r.id for r in registry.list()] == [record.id]
        assert len(registry) == 1

        registry.remove(record.id)
        assert len(registry) == 0
        assert not os.path.exists(orders_db)
        with pytest.raises(DatasetNotFoundError):
            registry.get(record.id)

    def test_remove_can_keep_file(self, orders_db):
        registry = DatasetRegistry()
        record = registry.register(orders_db, "orders.sqlite")
        registry.remove(record.id, delete_file=False)
        assert os.path.exists(orders_db)

    def test_csv_path_maps_to_its_store(self, write_csv):
        csv_path = write_csv("sales.csv", "a\n1\n")
        Path(csv_path + ".sqlite").write_bytes(b"")
        assert resolve_dataset_path(csv_path, upload_dir=str(Path(csv_path).parent)) == csv_path + ".sqlite"

    def test_basename_lookup_in_upload_dir(self, tmp_path):
        uploads = tmp_path / "uploads"
        uploads.mkdir()
        (uploads / "store.sqlite").write_bytes(b"")
        resolved = resolve_dataset_path("/somewhere/else/store.sqlite", upload_dir=str(uploads))
        assert resolved == str(uploads / "store.sqlite")

    def test_path_outside_upload_dir_is_refused(self, tmp_path, orders_db):
        uploads = tmp_path / "uploads"
        uploads.mkdir()
        with pytest.raises(DatasetNotFoundError):
            resolve_dataset_path(orders_db, upload_dir=str(uploads))
        with pytest.raises(DatasetNotFoundError):
            resolve_dataset_path(str(uploads / ".." / "orders.sqlite"), upload_dir=str(uploads))

    def test_outside_path_allowed_for_local_callers(self, tmp_path, orders_db):
        uploads = tmp_path / "uploads"
        uploads.mkdir()
        assert resolve_dataset_path(orders_db, upload_dir=str(uploads), allow_any_path=True) == orders_db

    def test_unknown_path(self, tmp_path):
        with pytest.raises(DatasetNotFoundError):
            resolve_dataset_path(str(tmp_path / "none.sqlite"), upload_dir=str(tmp_path))
