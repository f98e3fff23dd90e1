"""
Pydantic schemas for the SandboxSQL API.

These models define the request/response structure for all API endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.models import QueryLogRecord, TableSnapshot


# ============================================================
# REQUEST MODELS
# ============================================================

class SandboxRequest(BaseModel):
    """Request body for POST /sandbox."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"question": "Total deposits in August", "dataset_id": "3f2c..."},
                {
                    "question": "Show each customer's spend",
                    "db_file_path": "uploads/sales.csv",
                    "restricted_columns": ["orders:customer", "orders:amount"],
                },
                {"dataset_id": "3f2c..."},
            ]
        },
    )

    question: Optional[str] = Field(
        default=None,
        description="Natural language question. Omit to fetch schema and database state only.",
    )
    schema_text: Optional[str] = Field(
        default=None,
        alias="schema",
        description="DDL text. Introspected from the dataset when omitted.",
    )
    db_file_path: Optional[str] = Field(default=None, description="Path of the dataset store, inside the upload directory")
    dataset_id: Optional[str] = Field(default=None, description="Registered dataset id")
    restricted_columns: List[str] = Field(
        default_factory=list,
        description="table:column identifiers that must appear in the result",
    )


# ============================================================
# RESPONSE MODELS
# ============================================================

class SandboxResponse(BaseModel):
    """Response body for POST /sandbox."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(..., description="success | failure | state")
    sql: Optional[str] = None
    answer: Optional[List[Dict[str, Any]]] = Field(default=None, description="Result rows, or null")
    error: Optional[str] = None
    feedback: Optional[str] = Field(default=None, description="Last validator reasoning or runtime error")
    valid: Optional[bool] = None
    iterations: int = 0
    relevant: bool = True
    schema_text: str = Field(default="", alias="schema")
    database_state: Dict[str, TableSnapshot] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    query_log: Optional[QueryLogRecord] = None


class UploadResponse(BaseModel):
    """Response body for POST /upload, POST /append and DELETE table."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    message: str = ""
    schema_text: str = Field(default="", alias="schema")
    database_state: Dict[str, TableSnapshot] = Field(default_factory=dict)
    dataset_id: str
    path: str
    tables: List[str] = Field(default_factory=list, description="Tables created or extended by this call")
    skipped: List[str] = Field(default_factory=list, description="Files left out because they could not be parsed")


class DatasetInfo(BaseModel):
    """Registered dataset."""
    id: str
    path: str
    original_name: str
    created_at: datetime


class DatasetListResponse(BaseModel):
    """Response for GET /datasets."""
    datasets: List[DatasetInfo]


class DeleteResponse(BaseModel):
    status: str = "deleted"
    dataset_id: str


class HealthResponse(BaseModel):
    """Response for GET /health."""
    status: str = Field(..., description="API status")
    version: str = Field(..., description="API version")
    llm_model: str = Field(..., description="Configured litellm model")
    dataset_count: int = Field(default=0, description="Registered datasets")
