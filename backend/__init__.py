"""
SandboxSQL Backend Package

This package contains the NL→SQL question-answering service:
- orchestrator: generate → validate → execute state machine and ask service
- agents: model-backed roles (generation, validation, naming, cleanup)
- tools: per-step SQL tools and schema introspection
- adapters: SQLite dataset stores and per-question sandboxes
- ingestion: CSV/SQLite upload pipeline
- models: Data models and schemas
"""

from backend.orchestrator import AgentGraph, AskResult, answer_question
from backend.agents import AgentModel, LLMAgentModel
from backend.models import AgentState, AgentStep, QueryLogRecord

__all__ = [
    "AgentGraph",
    "AskResult",
    "answer_question",
    "AgentModel",
    "LLMAgentModel",
    "AgentState",
    "AgentStep",
    "QueryLogRecord",
]
