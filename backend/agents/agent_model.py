"""
Model capability injected into the pipeline.

AgentModel has one method per role. The state machine, the ingestion
pipeline and the ask service only see this interface, so tests run
against deterministic fakes and production runs against LLMAgentModel.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from configs import ALL_COLUMNS_ALLOWED, MAX_TABLE_NAME_LENGTH

from backend.models import (
    GenerationOutcome,
    MissingColumns,
    RelevanceVerdict,
    SqlCandidate,
    ValidationVerdict,
)

from .json_utils import JSONExtractionError, safe_parse_llm_json, strip_code_fences
from .llm_client import JSON_RESPONSE_FORMAT, LLMClient, LLMError, build_llm_client
from .prompts import (
    CLEANUP_PROMPT,
    RELEVANCE_CHECK_PROMPT,
    SQL_GENERATION_PROMPT,
    SQL_VALIDATION_PROMPT,
    TABLE_NAME_PROMPT,
    TITLE_PROMPT,
)

logger = logging.getLogger("sandboxsql.agents")


class AgentModel(ABC):
    """One method per model-backed role."""

    @abstractmethod
    def generate_sql(
        self,
        question: str,
        schema_text: str,
        feedback: str = "",
        restricted_columns: Sequence[str] = (),
    ) -> GenerationOutcome:
        """Candidate SQL, or the columns the schema lacks."""

    @abstractmethod
    def validate_sql(self, sql: str, schema_text: str) -> ValidationVerdict:
        pass

    @abstractmethod
    def check_relevance(self, question: str, schema_text: str) -> RelevanceVerdict:
        pass

    @abstractmethod
    def generate_title(self, question: str) -> str:
        pass

    @abstractmethod
    def suggest_table_name(self, filename: str, headers: Sequence[str]) -> str:
        """Raw suggestion; the ingestion pipeline sanitizes it."""

    @abstractmethod
    def propose_cleanup(
        self, table_name: str, columns: Sequence[str], sample_rows: List[Dict[str, Any]]
    ) -> List[str]:
        """UPDATE statements that normalize the sampled data."""


class LLMAgentModel(AgentModel):
    """
    AgentModel backed by an LLMClient in JSON mode.

    Every response goes through safe_parse_llm_json; unreadable output
    raises LLMError so callers decide whether to fall back or propagate.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or build_llm_client()

    @property
    def model_name(self) -> str:
        return self.llm.model

    def _ask_json(self, role: str, prompt: str) -> Dict[str, Any]:
        response = self.llm.generate(prompt, response_format=JSON_RESPONSE_FORMAT)
        try:
            parsed, stripped = safe_parse_llm_json(response.content)
        except JSONExtractionError as e:
            raise LLMError(f"{role}: unreadable model output: {e}") from e
        if stripped:
            logger.debug("%s: stripped %d chars around JSON", role, len(stripped))
        return parsed

    def generate_sql(self, question, schema_text, feedback="", restricted_columns=()):
        columns_text = ", ".join(restricted_columns) if restricted_columns else ALL_COLUMNS_ALLOWED
        prompt = SQL_GENERATION_PROMPT.format(
            question=question,
            schema=schema_text,
            feedback=feedback or "None",
            restricted_columns=columns_text,
        )
        response = self.llm.generate(prompt, response_format=JSON_RESPONSE_FORMAT)
        return parse_generation_output(response.content)

    def validate_sql(self, sql, schema_text):
        data = self._ask_json("validator", SQL_VALIDATION_PROMPT.format(schema=schema_text, query=sql))
        try:
            return ValidationVerdict.model_validate(data)
        except ValidationError as e:
            raise LLMError(f"validator: unexpected output shape: {e}") from e

    def check_relevance(self, question, schema_text):
        data = self._ask_json("relevance", RELEVANCE_CHECK_PROMPT.format(schema=schema_text, question=question))
        try:
            return RelevanceVerdict.model_validate(data)
        except ValidationError as e:
            raise LLMError(f"relevance: unexpected output shape: {e}") from e

    def generate_title(self, question):
        data = self._ask_json("title", TITLE_PROMPT.format(question=question))
        title = str(data.get("title", "")).strip().strip('"\'')
        if not title:
            raise LLMError("title: empty title")
        return title

    def suggest_table_name(self, filename, headers):
        prompt = TABLE_NAME_PROMPT.format(
            filename=filename,
            headers=", ".join(list(headers)[:5]),
            max_length=MAX_TABLE_NAME_LENGTH,
        )
        data = self._ask_json("naming", prompt)
        return str(data.get("table_name", ""))

    def propose_cleanup(self, table_name, columns, sample_rows):
        prompt = CLEANUP_PROMPT.format(
            table_name=table_name,
            columns=", ".join(columns),
            sample_count=len(sample_rows),
            sample_rows=json.dumps(sample_rows, indent=2, default=str),
        )
        data = self._ask_json("cleanup", prompt)
        statements = data.get("statements") or []
        if isinstance(statements, str):
            statements = statements.split(";")
        return [strip_code_fences(str(s)).strip() for s in statements if str(s).strip()]


def parse_generation_output(content: str) -> GenerationOutcome:
    """
    Turn raw generator output into a tagged outcome.

    JSON with "missingColumns"/"error" -> MissingColumns
    JSON with "sql"                   -> SqlCandidate
    anything else                     -> treated as bare SQL text
    """
    try:
        data, _ = safe_parse_llm_json(content)
    except JSONExtractionError:
        sql = strip_code_fences(content)
        if not sql:
            raise LLMError("generator: empty output")
        return SqlCandidate(sql=sql)

    if data.get("missingColumns") or data.get("missing_columns") or data.get("error"):
        columns = data.get("missingColumns") or data.get("missing_columns") or []
        if isinstance(columns, str):
            columns = [columns]
        return MissingColumns(columns=[str(c) for c in columns], message=str(data.get("error", "")))

    sql = strip_code_fences(str(data.get("sql", "")))
    if not sql:
        raise LLMError("generator: JSON output without 'sql'")
    return SqlCandidate(sql=sql)
