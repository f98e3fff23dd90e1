"""
Bounded generate → validate → execute state machine.

DESIGN PRINCIPLES:
==================
1. CENTRAL CONTROL: the driver decides what runs next, never a tool
2. EXPLICIT FLOW: every branch is a pure transition function below
3. IMMUTABLE STATE: transitions return a new AgentState; only the
   driver loop rebinds `state`
4. BOUNDED: iterations += 1 on every entry to GENERATE and the run ends
   in DONE_FAILURE once MAX_ITERATIONS attempts are spent
5. FULL TRACEABILITY: every step appends a PipelineEvent

EXECUTION FLOW:
===============
START
→ GENERATE                       (iterations += 1)
→ VALIDATE
     valid                       → EXECUTE
     invalid, iterations < MAX   → GENERATE (feedback = reasoning)
     invalid, iterations ≥ MAX   → DONE_FAILURE
→ EXECUTE
     rows                        → DONE_SUCCESS
     error, iterations < MAX     → GENERATE (feedback = "Runtime Error: ...")
     error, iterations ≥ MAX     → DONE_FAILURE

DONE_FAILURE is a normal outcome: it carries the last SQL and feedback
and never raises.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from configs import ALLOW_MUTATING_QUERIES, MAX_ITERATIONS, STOP_ON_MISSING_COLUMNS

from backend.adapters import DatabaseAdapter, QueryExecutionError
from backend.agents import AgentModel
from backend.models import (
    AgentRunResult,
    AgentState,
    AgentStep,
    GenerationOutcome,
    MissingColumns,
    PipelineEvent,
    SqlCandidate,
    ValidationVerdict,
    normalize_restricted_columns,
)
from backend.tools import (
    check_relevance,
    execute_candidate,
    generate_candidate,
    validate_candidate,
)

logger = logging.getLogger("sandboxsql.orchestrator")


def runtime_error_feedback(message: str) -> str:
    """Feedback for an execution failure; prefix differs from validator reasoning."""
    return f"Runtime Error: {message}. Please fix the SQL."


# ============================================================
# PURE TRANSITIONS
# ============================================================

def start(question: str, schema_text: str, restricted_columns: Sequence[str] = ()) -> AgentState:
    """START → GENERATE (first attempt)."""
    initial = AgentState(
        question=question,
        schema_text=schema_text,
        restricted_columns=normalize_restricted_columns(restricted_columns),
    )
    return enter_generate(initial, feedback="")


def enter_generate(state: AgentState, feedback: str) -> AgentState:
    return state.model_copy(update={
        "step": AgentStep.GENERATE,
        "iterations": state.iterations + 1,
        "feedback": feedback,
    })


def after_generate(state: AgentState, outcome: GenerationOutcome) -> AgentState:
    """GENERATE → VALIDATE, always."""
    sql = outcome.sql if isinstance(outcome, SqlCandidate) else ""
    return state.model_copy(update={
        "step": AgentStep.VALIDATE,
        "outcome": outcome,
        "sql": sql,
        "valid": None,
        "result": None,
    })


def after_validate(
    state: AgentState,
    verdict: ValidationVerdict,
    max_iterations: int = MAX_ITERATIONS,
    stop_on_missing_columns: bool = False,
) -> AgentState:
    if verdict.valid:
        return state.model_copy(update={
            "step": AgentStep.EXECUTE,
            "valid": True,
            "feedback": verdict.reasoning,
        })

    rejected = state.model_copy(update={"valid": False, "feedback": verdict.reasoning})
    missing = isinstance(state.outcome, MissingColumns)
    if state.iterations >= max_iterations or (missing and stop_on_missing_columns):
        return rejected.model_copy(update={"step": AgentStep.DONE_FAILURE})
    return enter_generate(rejected, feedback=verdict.reasoning)


def after_execute(
    state: AgentState,
    rows: Optional[List[Dict[str, Any]]] = None,
    error: Optional[str] = None,
    max_iterations: int = MAX_ITERATIONS,
) -> AgentState:
    if error is None:
        return state.model_copy(update={
            "step": AgentStep.DONE_SUCCESS,
            "result": list(rows or []),
        })

    feedback = runtime_error_feedback(error)
    failed = state.model_copy(update={"valid": False, "feedback": feedback})
    if state.iterations >= max_iterations:
        return failed.model_copy(update={"step": AgentStep.DONE_FAILURE})
    return enter_generate(failed, feedback=feedback)


# ============================================================
# DRIVER
# ============================================================

class AgentGraph:
    """
    Runs the state machine for one question against one sandbox.

    KEY BEHAVIORS:
    1. One step at a time, sequentially
    2. Inspects typed step outputs to pick the next state
    3. Enforces the iteration cap
    4. Produces an ordered run log
    """

    def __init__(
        self,
        model: AgentModel,
        sandbox: DatabaseAdapter,
        max_iterations: int = MAX_ITERATIONS,
        allow_mutating_queries: bool = ALLOW_MUTATING_QUERIES,
        stop_on_missing_columns: bool = STOP_ON_MISSING_COLUMNS,
        relevance_check: bool = True,
    ):
        self.model = model
        self.sandbox = sandbox
        self.max_iterations = max_iterations
        self.allow_mutating_queries = allow_mutating_queries
        self.stop_on_missing_columns = stop_on_missing_columns
        self.relevance_check = relevance_check

    def run(
        self,
        question: str,
        schema_text: str,
        restricted_columns: Sequence[str] = (),
    ) -> AgentRunResult:
        """
        Drive the machine until DONE_SUCCESS or DONE_FAILURE.

        Model failures during generation or validation propagate; every
        other failure is folded into the final state.
        """
        events: List[PipelineEvent] = []
        relevant = True

        def emit(kind: str, message: str, state: Optional[AgentState] = None):
            event = PipelineEvent(
                kind=kind,
                message=message,
                step=state.step if state else None,
                iteration=state.iterations if state else 0,
            )
            events.append(event)
            logger.debug(event.render())

        emit("SYSTEM", f"Question received: {question}")

        if self.relevance_check:
            verdict = check_relevance(self.model, question, schema_text)
            relevant = verdict.relevant
            if not relevant:
                logger.warning("Question may be unrelated to the schema, proceeding anyway: %s", verdict.reasoning)
                emit("SYSTEM", f"Relevance check: question may be unrelated to the schema ({verdict.reasoning}). Proceeding anyway.")

        state = start(question, schema_text, restricted_columns)

        while not state.is_done:
            state = self._execute_step(state, emit)

        if state.step == AgentStep.DONE_SUCCESS:
            emit("SYSTEM", f"Finished: {len(state.result or [])} row(s) after {state.iterations} attempt(s)", state)
        else:
            emit("SYSTEM", f"Failed after {state.iterations} attempt(s): {state.feedback}", state)
            logger.info("Run ended in failure after %d attempt(s)", state.iterations)

        return AgentRunResult(state=state, events=events, relevant=relevant)

    def _execute_step(self, state: AgentState, emit) -> AgentState:
        """The state machine transition function."""
        current = state.step

        # ============================================
        # GENERATE → VALIDATE
        # ============================================
        if current == AgentStep.GENERATE:
            emit("SYSTEM", f"Entering GENERATE (attempt {state.iterations}/{self.max_iterations})", state)
            emit("AGENT", "Action: generate SQL" + (" using feedback" if state.feedback else ""), state)
            outcome = generate_candidate(
                self.model,
                state.question,
                state.schema_text,
                state.feedback,
                state.restricted_columns,
            )
            if isinstance(outcome, MissingColumns):
                emit("TOOL", f"Output: {outcome.describe()}", state)
            else:
                emit("TOOL", f"Output: {outcome.sql}", state)
            return after_generate(state, outcome)

        # ============================================
        # VALIDATE → EXECUTE | GENERATE | DONE_FAILURE
        # ============================================
        elif current == AgentStep.VALIDATE:
            emit("SYSTEM", "Entering VALIDATE", state)
            emit("AGENT", "Action: validate SQL", state)
            verdict = validate_candidate(
                self.model,
                state.outcome,
                state.schema_text,
                state.restricted_columns,
                self.allow_mutating_queries,
            )
            emit("TOOL", f"Output: valid={verdict.valid}. {verdict.reasoning}".rstrip(), state)
            return after_validate(
                state,
                verdict,
                self.max_iterations,
                self.stop_on_missing_columns,
            )

        # ============================================
        # EXECUTE → DONE_SUCCESS | GENERATE | DONE_FAILURE
        # ============================================
        elif current == AgentStep.EXECUTE:
            emit("SYSTEM", "Entering EXECUTE", state)
            emit("AGENT", "Action: execute SQL in sandbox", state)
            try:
                rows = execute_candidate(self.sandbox, state.sql)
            except QueryExecutionError as e:
                emit("TOOL", f"Output: execution failed: {e}", state)
                return after_execute(state, error=str(e), max_iterations=self.max_iterations)
            emit("TOOL", f"Output: {len(rows)} row(s)", state)
            return after_execute(state, rows=rows, max_iterations=self.max_iterations)

        raise ValueError(f"No transition from step {current}")


def run_agent(
    model: AgentModel,
    sandbox: DatabaseAdapter,
    question: str,
    schema_text: str,
    restricted_columns: Sequence[str] = (),
    **options,
) -> AgentRunResult:
    """Convenience wrapper: build an AgentGraph and run one question."""
    return AgentGraph(model, sandbox, **options).run(question, schema_text, restricted_columns)
