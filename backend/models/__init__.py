"""Models module initialization."""
from .agent_outputs import (
    SqlCandidate,
    MissingColumns,
    GenerationOutcome,
    ValidationVerdict,
    RelevanceVerdict,
)
from .state import (
    AgentStep,
    AgentState,
    PipelineEvent,
    AgentRunResult,
    normalize_restricted_columns,
    bare_column_name,
)
from .schemas import (
    ColumnType,
    ColumnSpec,
    TableInfo,
    TableSnapshot,
    DatasetSnapshot,
    DatasetRecord,
    QueryLogRecord,
)

__all__ = [
    # Agent outputs
    "SqlCandidate",
    "MissingColumns",
    "GenerationOutcome",
    "ValidationVerdict",
    "RelevanceVerdict",
    # State machine
    "AgentStep",
    "AgentState",
    "PipelineEvent",
    "AgentRunResult",
    "normalize_restricted_columns",
    "bare_column_name",
    # Datasets
    "ColumnType",
    "ColumnSpec",
    "TableInfo",
    "TableSnapshot",
    "DatasetSnapshot",
    "DatasetRecord",
    "QueryLogRecord",
]
