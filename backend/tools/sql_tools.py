"""
SQL tools used by the agent state machine.

Each function is one step's worth of work:

    generate_candidate  -> GenerationOutcome   (model)
    validate_candidate  -> ValidationVerdict   (deterministic checks, then model)
    execute_candidate   -> rows                (sandbox)
    check_relevance     -> RelevanceVerdict    (model, soft)

The state machine decides what happens next from the returned values;
none of these functions retries or loops.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from configs import FORBIDDEN_KEYWORDS

from backend.adapters import DatabaseAdapter
from backend.models import (
    GenerationOutcome,
    MissingColumns,
    RelevanceVerdict,
    SqlCandidate,
    ValidationVerdict,
    bare_column_name,
)
from backend.agents import AgentModel, LLMError, strip_code_fences

logger = logging.getLogger("sandboxsql.tools")

_STRING_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")


# ============================================================
# GENERATE
# ============================================================

def generate_candidate(
    model: AgentModel,
    question: str,
    schema_text: str,
    feedback: str = "",
    restricted_columns: Sequence[str] = (),
) -> GenerationOutcome:
    """Ask the generator for SQL; code fences are stripped from the result."""
    outcome = model.generate_sql(question, schema_text, feedback, tuple(restricted_columns))
    if isinstance(outcome, SqlCandidate):
        return SqlCandidate(sql=strip_code_fences(outcome.sql))
    return outcome


# ============================================================
# VALIDATE
# ============================================================

def find_forbidden_keyword(sql: str) -> Optional[str]:
    """First FORBIDDEN_KEYWORDS entry used as a keyword (outside string literals)."""
    code = _STRING_LITERAL_RE.sub("''", sql or "")
    for keyword in FORBIDDEN_KEYWORDS:
        if re.search(rf"\b{keyword}\b", code, re.IGNORECASE):
            return keyword
    return None


def missing_projection_columns(sql: str, restricted_columns: Sequence[str]) -> List[str]:
    """
    Pinned columns absent from the outermost SELECT list.

    A pinned column counts as present when a projection's output name or
    any column referenced inside a projection matches its bare name
    (case-insensitive). `*` and `table.*` satisfy every pin. SQL that
    cannot be parsed as a query satisfies none.
    """
    pins = list(restricted_columns)
    if not pins:
        return []

    try:
        tree = sqlglot.parse_one(sql, read="sqlite")
    except SqlglotError as e:
        logger.debug("Projection check could not parse SQL: %s", e)
        return pins

    if not isinstance(tree, exp.Query):
        return pins

    present = set()
    for projection in tree.selects:
        if isinstance(projection, exp.Star):
            return []
        if isinstance(projection, exp.Column) and isinstance(projection.this, exp.Star):
            return []
        if projection.alias_or_name:
            present.add(projection.alias_or_name.lower())
        for column in projection.find_all(exp.Column):
            if column.name:
                present.add(column.name.lower())

    return [pin for pin in pins if bare_column_name(pin).lower() not in present]


def validate_candidate(
    model: AgentModel,
    outcome: GenerationOutcome,
    schema_text: str,
    restricted_columns: Sequence[str] = (),
    allow_mutating_queries: bool = True,
) -> ValidationVerdict:
    """
    Validate one generator outcome.

    Order:
    1. MissingColumns outcome    -> rejected, no model call
    2. read-only guard           -> only when mutating queries are disallowed
    3. pinned-column projection  -> sqlglot, SQLite dialect
    4. model review
    """
    if isinstance(outcome, MissingColumns):
        return ValidationVerdict(valid=False, reasoning=outcome.describe())

    sql = outcome.sql

    if not allow_mutating_queries:
        keyword = find_forbidden_keyword(sql)
        if keyword:
            return ValidationVerdict(
                valid=False,
                reasoning=f"Invalid Query: {keyword} statements are not allowed. Read-only queries only.",
            )

    missing = missing_projection_columns(sql, restricted_columns)
    if missing:
        return ValidationVerdict(
            valid=False,
            reasoning=(
                "The SELECT list must include these required columns: "
                + ", ".join(missing) + "."
            ),
        )

    return model.validate_sql(sql, schema_text)


# ============================================================
# EXECUTE
# ============================================================

def execute_candidate(sandbox: DatabaseAdapter, sql: str) -> List[Dict[str, Any]]:
    """
    Run accepted SQL against the sandbox and return rows verbatim.

    Raises:
        QueryExecutionError: on any driver error
    """
    return sandbox.query(sql)


# ============================================================
# RELEVANCE
# ============================================================

def check_relevance(model: AgentModel, question: str, schema_text: str) -> RelevanceVerdict:
    """Soft pre-check. A failing check counts as relevant."""
    try:
        return model.check_relevance(question, schema_text)
    except LLMError as e:
        logger.warning("Relevance check failed, assuming relevant: %s", e)
        return RelevanceVerdict(relevant=True, reasoning=f"Relevance check unavailable: {e}")
