"""
Agent state for the generate → validate → execute state machine.

AgentState is IMMUTABLE. Each transition builds a new value with
`model_copy(update=...)`, so every intermediate state can be kept for
logging or audit. Only the loop driver holds a mutable "current state".
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .agent_outputs import GenerationOutcome


# ============================================================
# STEPS
# ============================================================

class AgentStep(str, Enum):
    """State machine states."""
    START = "start"
    GENERATE = "generate"
    VALIDATE = "validate"
    EXECUTE = "execute"
    DONE_SUCCESS = "done_success"
    DONE_FAILURE = "done_failure"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStep.DONE_SUCCESS, AgentStep.DONE_FAILURE)


# ============================================================
# STATE
# ============================================================

class AgentState(BaseModel):
    """The unit of orchestration, threaded through every transition."""
    model_config = ConfigDict(frozen=True)

    question: str = Field(description="Natural language question")
    schema_text: str = Field(default="", description="DDL-like schema text")
    feedback: str = Field(default="", description="Validator reasoning or runtime error from the last attempt")
    sql: str = Field(default="", description="Last candidate SQL (empty for a missing-columns outcome)")
    outcome: Optional[GenerationOutcome] = Field(default=None, description="Last tagged generator output")
    valid: Optional[bool] = Field(default=None, description="Last validator verdict")
    result: Optional[List[Dict[str, Any]]] = Field(default=None, description="Rows from a successful execution")
    iterations: int = Field(default=0, ge=0, description="Generation attempts so far")
    restricted_columns: Tuple[str, ...] = Field(default=(), description="Pinned table:column identifiers")
    step: AgentStep = Field(default=AgentStep.START, description="Current state machine state")

    @property
    def is_done(self) -> bool:
        return self.step.is_terminal


def normalize_restricted_columns(columns) -> Tuple[str, ...]:
    """Ordered, de-duplicated, whitespace-trimmed column identifiers."""
    seen = []
    for col in columns or []:
        col = str(col).strip()
        if col and col not in seen:
            seen.append(col)
    return tuple(seen)


def bare_column_name(identifier: str) -> str:
    """'orders:amount' / 'orders.amount' / 'amount' -> 'amount' (quotes removed)."""
    name = identifier
    for sep in (":", "."):
        if sep in name:
            name = name.rsplit(sep, 1)[1]
    return name.strip().strip('"`[]')


# ============================================================
# RUN LOG
# ============================================================

class PipelineEvent(BaseModel):
    """One milestone in a run: state entered, action taken, or tool output."""
    kind: str = Field(description="SYSTEM | AGENT | TOOL")
    message: str
    step: Optional[AgentStep] = None
    iteration: int = 0

    def render(self) -> str:
        return f"[{self.kind}] {self.message}"


class AgentRunResult(BaseModel):
    """Final state of a run plus its ordered milestone log."""
    state: AgentState
    events: List[PipelineEvent] = Field(default_factory=list)
    relevant: bool = True

    @property
    def success(self) -> bool:
        return self.state.step == AgentStep.DONE_SUCCESS

    @property
    def logs(self) -> List[str]:
        return [e.render() for e in self.events]
