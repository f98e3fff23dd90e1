"""Orchestrator module initialization."""

from .agent_graph import (
    AgentGraph,
    run_agent,
    runtime_error_feedback,
    start,
    enter_generate,
    after_generate,
    after_validate,
    after_execute,
)
from .ask_pipeline import (
    AskResult,
    QueryLogSink,
    LoggingQueryLogSink,
    MemoryQueryLogSink,
    answer_question,
    make_title,
    fallback_title,
    summarize_result,
)

__all__ = [
    # State machine
    "AgentGraph",
    "run_agent",
    "runtime_error_feedback",
    "start",
    "enter_generate",
    "after_generate",
    "after_validate",
    "after_execute",
    # Ask service
    "AskResult",
    "QueryLogSink",
    "LoggingQueryLogSink",
    "MemoryQueryLogSink",
    "answer_question",
    "make_title",
    "fallback_title",
    "summarize_result",
]
