"""
Pydantic models for datasets, tables and the query log.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ColumnType(str, Enum):
    """Inferred type of an ingested column."""
    NUMERIC = "numeric"
    TEXT = "text"

    @property
    def sql_type(self) -> str:
        return "REAL" if self is ColumnType.NUMERIC else "TEXT"


class ColumnSpec(BaseModel):
    """A column of an ingested table."""
    name: str = Field(description="Column name taken from the header row")
    type: ColumnType = Field(description="Inferred column type")


class TableInfo(BaseModel):
    """Result of ingesting one delimited file."""
    name: str = Field(description="Table name")
    columns: List[ColumnSpec] = Field(default_factory=list)
    row_count: int = Field(default=0, description="Rows in the table after the load")
    source_file: Optional[str] = Field(default=None, description="Original filename")


class TableSnapshot(BaseModel):
    """One sample row and the total row count of a table."""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class DatasetSnapshot(BaseModel):
    """Schema text plus a per-table snapshot; shared by ingestion and introspection."""
    schema_text: str = ""
    database_state: Dict[str, TableSnapshot] = Field(default_factory=dict)

    @property
    def table_names(self) -> List[str]:
        return list(self.database_state.keys())


class DatasetRecord(BaseModel):
    """A registered dataset store."""
    id: str
    path: str
    original_name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QueryLogRecord(BaseModel):
    """Durable artifact of an asked question; persisting it is up to a sink."""
    question: str
    title: str
    generated_sql: str = ""
    status: str = "success"
    result_summary: str = "[]"
    dataset_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
