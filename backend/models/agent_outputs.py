"""
Structured outputs for each model-backed role in the pipeline.

DESIGN PRINCIPLE:
================
Every role returns a TYPED value instead of free text:
- generator  -> GenerationOutcome (SqlCandidate | MissingColumns)
- validator  -> ValidationVerdict
- relevance  -> RelevanceVerdict

The state machine inspects these values to decide what runs next,
so no step ever has to guess whether a string is SQL or an error.
"""
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field


# ============================================================
# GENERATOR OUTPUT
# ============================================================

class SqlCandidate(BaseModel):
    """A not-yet-validated SQL query produced by the generator."""
    kind: Literal["sql"] = "sql"
    sql: str = Field(description="Candidate SQL text")


class MissingColumns(BaseModel):
    """
    The generator could not build a query because the schema lacks
    columns the question needs.
    """
    kind: Literal["missing_columns"] = "missing_columns"
    columns: List[str] = Field(default_factory=list, description="Columns the question needs but the schema lacks")
    message: str = Field(default="", description="Generator explanation")

    def describe(self) -> str:
        cols = ", ".join(self.columns) if self.columns else "unknown"
        text = f"Cannot answer from this schema. Missing columns: {cols}."
        if self.message:
            text += f" {self.message}"
        return text


GenerationOutcome = Annotated[Union[SqlCandidate, MissingColumns], Field(discriminator="kind")]


# ============================================================
# VALIDATOR / RELEVANCE OUTPUT
# ============================================================

class ValidationVerdict(BaseModel):
    """Validator decision; reasoning becomes feedback on rejection."""
    valid: bool = Field(description="Whether the SQL query is valid according to the schema")
    reasoning: str = Field(default="", description="Explanation of why the query is valid or invalid")


class RelevanceVerdict(BaseModel):
    """Soft pre-check: can the question be answered from the schema at all."""
    relevant: bool = Field(default=True, description="Whether the question is relevant to the schema")
    reasoning: str = Field(default="", description="Why the question is relevant or not")
