"""
Ask-a-question service.

One call = one question against one dataset:

    open sandbox → (introspect) → agent graph → title + query log → close

The sandbox is closed on every exit path, including model failures,
which propagate to the caller after cleanup.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from backend.adapters import open_sandbox
from backend.agents import AgentModel, LLMError
from backend.models import AgentRunResult, QueryLogRecord, TableSnapshot
from backend.tools import build_schema_text, collect_database_state

from .agent_graph import AgentGraph

logger = logging.getLogger("sandboxsql.ask")

MAX_TITLE_LENGTH = 50
TRUNCATED_TITLE_LENGTH = 47


# ============================================================
# QUERY LOG
# ============================================================

class QueryLogSink(ABC):
    """Destination for query-log records (history storage lives elsewhere)."""

    @abstractmethod
    def record(self, entry: QueryLogRecord) -> None:
        pass


class LoggingQueryLogSink(QueryLogSink):
    """Default sink: writes each record to the application log."""

    def record(self, entry: QueryLogRecord) -> None:
        logger.info("Query log [%s]: %s | %s", entry.status, entry.title, entry.generated_sql)


class MemoryQueryLogSink(QueryLogSink):
    """Keeps records in a list; used by the CLI session and tests."""

    def __init__(self):
        self.entries: List[QueryLogRecord] = []

    def record(self, entry: QueryLogRecord) -> None:
        self.entries.append(entry)


def fallback_title(question: str) -> str:
    question = question.strip()
    if len(question) > MAX_TITLE_LENGTH:
        return question[:TRUNCATED_TITLE_LENGTH] + "..."
    return question


def make_title(model: AgentModel, question: str) -> str:
    """Model-generated 3-6 word title; truncated question on failure."""
    try:
        return model.generate_title(question)
    except LLMError as e:
        logger.warning("Title generation failed, using question: %s", e)
        return fallback_title(question)


def summarize_result(rows: Optional[List[Dict[str, Any]]]) -> str:
    return json.dumps(rows, default=str) if rows else "[]"


# ============================================================
# RESULT
# ============================================================

class AskResult(BaseModel):
    """Everything the caller gets back for one question (or state fetch)."""
    status: str = Field(description="success | failure | state")
    sql: Optional[str] = None
    answer: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    feedback: Optional[str] = None
    valid: Optional[bool] = None
    iterations: int = 0
    relevant: bool = True
    schema_text: str = ""
    database_state: Dict[str, TableSnapshot] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    query_log: Optional[QueryLogRecord] = None

    @property
    def success(self) -> bool:
        return self.status == "success"


def _from_run(run: AgentRunResult, schema_text: str, database_state: Dict[str, TableSnapshot]) -> AskResult:
    state = run.state
    error = None
    if not run.success:
        error = f"Could not produce a working query after {state.iterations} attempt(s)."
    return AskResult(
        status="success" if run.success else "failure",
        sql=state.sql or None,
        answer=state.result if run.success else None,
        error=error,
        feedback=state.feedback or None,
        valid=state.valid,
        iterations=state.iterations,
        relevant=run.relevant,
        schema_text=schema_text,
        database_state=database_state,
        logs=run.logs,
    )


# ============================================================
# SERVICE
# ============================================================

def answer_question(
    model: AgentModel,
    question: Optional[str],
    db_path: Optional[str] = None,
    schema_text: Optional[str] = None,
    restricted_columns: Sequence[str] = (),
    dataset_id: Optional[str] = None,
    sink: Optional[QueryLogSink] = None,
    sandbox_dir: Optional[str] = None,
    **graph_options,
) -> AskResult:
    """
    Answer one question against a disposable copy of `db_path`.

    With no question, only the schema text and database state are returned.
    Without a schema, it is introspected from the sandbox.

    Raises:
        SandboxInitializationError: the working copy could not be made
        LLMError: the generator or validator failed
    """
    with open_sandbox(db_path, sandbox_dir=sandbox_dir) as sandbox:
        if not question or not question.strip():
            schema = schema_text or build_schema_text(sandbox)
            return AskResult(
                status="state",
                schema_text=schema,
                database_state=collect_database_state(sandbox),
            )

        schema = schema_text or build_schema_text(sandbox)
        run = AgentGraph(model, sandbox, **graph_options).run(question, schema, restricted_columns)
        database_state = collect_database_state(sandbox)

    result = _from_run(run, schema, database_state)

    # Every asked question is logged; a failed run has no result rows.
    entry = QueryLogRecord(
        question=question,
        title=make_title(model, question),
        generated_sql=run.state.sql or "",
        status=result.status,
        result_summary=summarize_result(run.state.result if result.success else None),
        dataset_id=dataset_id,
    )
    (sink or LoggingQueryLogSink()).record(entry)
    result.query_log = entry
    return result
