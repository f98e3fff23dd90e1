"""
Ingestion pipeline tests.

CSV parsing, type inference, table naming, transactional loads,
best-effort cleanup and batch handling against real SQLite files.
"""
import os
import sqlite3
from pathlib import Path

import pytest

from conftest import FakeAgentModel, LLMError, row_count

from backend.adapters import DatasetNotFoundError, SQLiteAdapter
from backend.ingestion import (
    IngestionParseError,
    TableLoadError,
    UnsupportedFileTypeError,
    UploadedFile,
    append_file,
    choose_table_name,
    drop_table,
    fallback_table_name,
    infer_column_type,
    ingest_files,
    load_table,
    normalize_table,
    sanitize_table_name,
)
from backend.models import ColumnSpec, ColumnType

SALES_CSV = (
    "region,units,rep\n"
    "north,10,ann\n"
    "south,20,ben\n"
    "east,30,cat\n"
    "west,40,dan\n"
    "north,50,eve\n"
)


def _upload(path: str) -> UploadedFile:
    return UploadedFile(path=path, original_name=Path(path).name)


def _column_types(db_path: str, table: str) -> dict:
    conn = sqlite3.connect(db_path)
    try:
        return {row[1]: row[2] for row in conn.execute(f'PRAGMA table_info("{table}")')}
    finally:
        conn.close()


# =============================================================================
# TYPE INFERENCE
# =============================================================================

class TestTypeInference:

    @pytest.mark.parametrize("values,expected", [
        (["1", "2", "3"], ColumnType.NUMERIC),
        (["1.5", "-2", "3e2"], ColumnType.NUMERIC),
        (["1", "", "3"], ColumnType.NUMERIC),
        (["1", "n/a", "3"], ColumnType.TEXT),
        (["", "abc", ""], ColumnType.TEXT),
        (["", "", ""], ColumnType.TEXT),
        (["1,200", "3"], ColumnType.TEXT),
        (["inf", "1"], ColumnType.TEXT),
        (["nan"], ColumnType.TEXT),
    ])
    def test_numeric_iff_every_non_empty_value_is_a_number(self, values, expected):
        assert infer_column_type(values) == expected


# =============================================================================
# TABLE NAMING
# =============================================================================

class TestTableNaming:

    def test_sanitize_replaces_and_lowercases(self):
        assert sanitize_table_name("Monthly Sales-2023") == "monthly_sales_2023"

    def test_sanitize_prefixes_non_letter_start(self):
        assert sanitize_table_name("2023_sales") == "t_2023_sales"

    def test_sanitize_strips_code_fences(self):
        assert sanitize_table_name("```\nsales\n```") == "sales"

    @pytest.mark.parametrize("raw", ["", "x" * 51])
    def test_sanitize_rejects_bad_lengths(self, raw):
        with pytest.raises(ValueError):
            sanitize_table_name(raw)

    def test_fallback_uses_filename_stem(self):
        assert fallback_table_name("my sales.csv") == "table_my_sales"

    def test_model_suggestion_is_used(self):
        model = FakeAgentModel(table_name="Quarterly Sales")
        assert choose_table_name(model, "q.csv", ["a", "b", "c", "d", "e", "f"]) == "quarterly_sales"
        assert model.naming_calls == [("q.csv", ("a", "b", "c", "d", "e"))]

    def test_model_failure_uses_fallback(self):
        model = FakeAgentModel()
        model.naming_error = LLMError("down")
        assert choose_table_name(model, "sales.csv", ["a"]) == "table_sales"

    def test_unusable_suggestion_uses_fallback(self):
        model = FakeAgentModel(table_name="")
        assert choose_table_name(model, "sales.csv", ["a"]) == "table_sales"


# =============================================================================
# SINGLE FILE
# =============================================================================

class TestSingleFile:

    def test_three_columns_five_rows(self, write_csv):
        path = write_csv("sales.csv", SALES_CSV)
        result = ingest_files(FakeAgentModel(table_name="sales"), [_upload(path)])

        assert result.path == path + ".sqlite"
        assert [t.name for t in result.tables] == ["sales"]
        info = result.tables[0]
        assert info.row_count == 5
        assert {c.name: c.type for c in info.columns} == {
            "region": ColumnType.TEXT,
            "units": ColumnType.NUMERIC,
            "rep": ColumnType.TEXT,
        }
        assert _column_types(result.path, "sales") == {"region": "TEXT", "units": "REAL", "rep": "TEXT"}
        assert row_count(result.path, "sales") == 5

    def test_snapshot_shape(self, write_csv):
        path = write_csv("sales.csv", SALES_CSV)
        result = ingest_files(FakeAgentModel(table_name="sales"), [_upload(path)])

        snapshot = result.snapshot
        assert snapshot.schema_text.startswith("CREATE TABLE")
        assert '"sales"' in snapshot.schema_text
        assert snapshot.database_state["sales"].total == 5
        assert snapshot.database_state["sales"].rows == [{"region": "north", "units": 10.0, "rep": "ann"}]

    def test_blank_numeric_values_become_null(self, write_csv):
        path = write_csv("m.csv", "name,score\na,1\nb,\nc,3\n")
        result = ingest_files(FakeAgentModel(table_name="marks"), [_upload(path)])
        conn = sqlite3.connect(result.path)
        try:
            assert conn.execute('SELECT COUNT(*) FROM "marks" WHERE "score" IS NULL').fetchone()[0] == 1
        finally:
            conn.close()

    def test_header_only_file_creates_no_table(self, write_csv):
        path = write_csv("empty.csv", "a,b,c\n")
        result = ingest_files(FakeAgentModel(table_name="empty"), [_upload(path)])
        assert result.tables == []
        assert result.snapshot.database_state == {}

    def test_unparseable_file(self, write_csv):
        path = write_csv("bad.csv", "a,b\n1,2\n3,4,5,6\n")
        with pytest.raises(IngestionParseError):
            ingest_files(FakeAgentModel(table_name="bad"), [_upload(path)])
        assert not os.path.exists(path + ".sqlite")
        assert os.path.exists(path)

    def test_empty_file(self, write_csv):
        path = write_csv("nothing.csv", "")
        with pytest.raises(IngestionParseError):
            ingest_files(FakeAgentModel(), [_upload(path)])


# =============================================================================
# TRANSACTIONAL LOAD
# =============================================================================

class TestLoadAtomicity:

    def test_failed_insert_keeps_previous_rows(self, orders_db):
        store = SQLiteAdapter(orders_db)
        columns = [ColumnSpec(name=n, type=ColumnType.TEXT) for n in ("id", "customer", "amount")]
        rows = [("4", "cy", "1"), ("5", "dee")]  # second row has too few values
        with pytest.raises(TableLoadError):
            load_table(store, "orders", columns, rows)
        store.close()
        assert row_count(orders_db, "orders") == 3

    def test_failed_load_of_new_table_leaves_no_table(self, tmp_path):
        store = SQLiteAdapter(str(tmp_path / "s.sqlite"), create=True)
        columns = [ColumnSpec(name="a", type=ColumnType.TEXT)]
        with pytest.raises(TableLoadError):
            load_table(store, "fresh", columns, [("1",), ("2", "3")])
        assert not store.table_exists("fresh")
        store.close()


# =============================================================================
# CLEANUP
# =============================================================================

class TestNormalization:

    def test_cleanup_statements_are_applied(self, write_csv):
        path = write_csv("p.csv", "name,city\nann,  oslo \nben,bergen\n")
        model = FakeAgentModel(
            table_name="people",
            cleanup=['UPDATE "people" SET "city" = TRIM("city")'],
        )
        result = ingest_files(model, [_upload(path)], clean=True)

        conn = sqlite3.connect(result.path)
        try:
            cities = [r[0] for r in conn.execute('SELECT "city" FROM "people" ORDER BY "name"')]
        finally:
            conn.close()
        assert cities == ["oslo", "bergen"]
        assert model.cleanup_calls == [("people", ("name", "city"), 2)]

    def test_cleanup_failure_is_swallowed(self, write_csv):
        path = write_csv("p.csv", "name,city\nann,oslo\n")
        model = FakeAgentModel(table_name="people", cleanup=["UPDATE missing_table SET x = 1"])
        result = ingest_files(model, [_upload(path)], clean=True)
        assert row_count(result.path, "people") == 1

    def test_cleanup_model_error_is_swallowed(self, orders_db):
        model = FakeAgentModel()
        model.cleanup_error = LLMError("quota")
        store = SQLiteAdapter(orders_db)
        assert normalize_table(model, store, "orders", []) is False
        store.close()

    def test_non_update_statements_are_ignored(self, orders_db):
        model = FakeAgentModel(cleanup=['DROP TABLE "orders"'])
        store = SQLiteAdapter(orders_db)
        assert normalize_table(model, store, "orders", []) is False
        store.close()
        assert row_count(orders_db, "orders") == 3

    def test_cleanup_skipped_unless_requested(self, write_csv):
        path = write_csv("p.csv", "name\nann\n")
        model = FakeAgentModel(table_name="people", cleanup=['UPDATE "people" SET "name" = \'x\''])
        ingest_files(model, [_upload(path)])
        assert model.cleanup_calls == []


# =============================================================================
# BATCHES
# =============================================================================

class TestBatches:

    def test_multiple_files_merge_into_master_store(self, write_csv):
        first = write_csv("a.csv", "x,y\n1,2\n")
        second = write_csv("b.csv", "name\nann\nben\n")
        model = FakeAgentModel()
        model.naming_error = LLMError("offline")

        result = ingest_files(model, [_upload(first), _upload(second)])

        assert result.path == first + ".master.sqlite"
        assert [t.name for t in result.tables] == ["table_a", "table_b"]
        assert result.snapshot.database_state["table_b"].total == 2
        assert result.snapshot.schema_text.count("CREATE TABLE") == 2
        assert ";\n\n" in result.snapshot.schema_text

    def test_unparseable_file_is_skipped_in_a_batch(self, write_csv):
        good = write_csv("good.csv", "a,b\n1,x\n2,y\n")
        bad = write_csv("bad.csv", "a,b\n1,2\n3,4,5\n")
        model = FakeAgentModel()
        model.naming_error = LLMError("offline")

        result = ingest_files(model, [_upload(good), _upload(bad)])

        assert [t.name for t in result.tables] == ["table_good"]
        assert len(result.skipped) == 1
        assert result.skipped[0].startswith("bad.csv:")
        assert os.path.exists(result.path)
        assert row_count(result.path, "table_good") == 2

    def test_every_file_unparseable_fails_the_batch(self, write_csv):
        first = write_csv("a.csv", "a,b\n1,2\n3,4,5\n")
        second = write_csv("b.csv", "")
        with pytest.raises(IngestionParseError, match="No file could be parsed"):
            ingest_files(FakeAgentModel(), [_upload(first), _upload(second)])
        assert not os.path.exists(first + ".master.sqlite")
        assert os.path.exists(first)

    def test_unsupported_file_rejects_whole_batch(self, write_csv):
        good = write_csv("a.csv", "x\n1\n")
        bad = write_csv("notes.txt", "hello")
        with pytest.raises(UnsupportedFileTypeError):
            ingest_files(FakeAgentModel(), [_upload(good), _upload(bad)], remove_uploads=True)
        assert not os.path.exists(good)
        assert not os.path.exists(bad)
        assert not os.path.exists(good + ".master.sqlite")

    def test_rejected_batch_keeps_caller_files(self, write_csv):
        good = write_csv("a.csv", "x\n1\n")
        bad = write_csv("notes.txt", "hello")
        with pytest.raises(UnsupportedFileTypeError):
            ingest_files(FakeAgentModel(), [_upload(good), _upload(bad)])
        assert os.path.exists(good)
        assert os.path.exists(bad)

    def test_server_owned_csvs_removed_after_load(self, write_csv):
        first = write_csv("a.csv", "x,y\n1,2\n")
        second = write_csv("b.csv", "name\nann\n")
        model = FakeAgentModel()
        model.naming_error = LLMError("offline")
        result = ingest_files(model, [_upload(first), _upload(second)], remove_uploads=True)
        assert not os.path.exists(first)
        assert not os.path.exists(second)
        assert os.path.exists(result.path)

    def test_caller_csv_kept_after_load(self, write_csv):
        path = write_csv("sales.csv", SALES_CSV)
        result = ingest_files(FakeAgentModel(table_name="sales"), [_upload(path)])
        assert os.path.exists(path)
        assert os.path.exists(result.path)

    def test_single_sqlite_upload_is_registered_directly(self, orders_db):
        result = ingest_files(FakeAgentModel(), [_upload(orders_db)], remove_uploads=True)
        assert result.path == orders_db
        assert os.path.exists(orders_db)
        assert result.snapshot.database_state["orders"].total == 3

    def test_corrupt_sqlite_upload(self, write_csv):
        path = write_csv("broken.db", "definitely not sqlite")
        with pytest.raises(IngestionParseError):
            ingest_files(FakeAgentModel(), [_upload(path)], remove_uploads=True)
        assert not os.path.exists(path)


# =============================================================================
# APPEND / DROP
# =============================================================================

class TestAppendAndDrop:

    def test_append_adds_table(self, orders_db, write_csv):
        path = write_csv("returns.csv", "order_id,reason\n1,late\n")
        result = append_file(FakeAgentModel(table_name="returns"), orders_db, _upload(path))
        assert [t.name for t in result.tables] == ["returns"]
        assert set(result.snapshot.database_state) == {"orders", "returns"}

    def test_append_to_missing_store(self, tmp_path, write_csv):
        path = write_csv("r.csv", "a\n1\n")
        with pytest.raises(DatasetNotFoundError):
            append_file(FakeAgentModel(), str(tmp_path / "gone.sqlite"), _upload(path))

    def test_append_rejects_non_csv(self, orders_db, write_csv):
        path = write_csv("r.json", "{}")
        with pytest.raises(UnsupportedFileTypeError):
            append_file(FakeAgentModel(), orders_db, _upload(path))
        assert os.path.exists(path)

    def test_append_removes_server_owned_upload(self, orders_db, write_csv):
        path = write_csv("returns.csv", "order_id,reason\n1,late\n")
        append_file(FakeAgentModel(table_name="returns"), orders_db, _upload(path), remove_uploads=True)
        assert not os.path.exists(path)
        assert row_count(orders_db, "returns") == 1

    def test_append_keeps_caller_upload(self, orders_db, write_csv):
        path = write_csv("returns.csv", "order_id,reason\n1,late\n")
        append_file(FakeAgentModel(table_name="returns"), orders_db, _upload(path))
        assert os.path.exists(path)

    def test_drop_table(self, orders_db):
        snapshot = drop_table(orders_db, "orders")
        assert snapshot.database_state == {}
        assert snapshot.schema_text == ""
