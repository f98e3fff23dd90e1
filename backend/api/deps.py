"""
Shared dependencies for the SandboxSQL API.

Provides:
- Structured logging (one "sandboxsql" logger tree)
- Singleton AgentModel (created once, reused per request)
- Dataset registry (in-memory)
- Query-log sink

Routers receive these through FastAPI `Depends`, so tests swap them
with `app.dependency_overrides`.
"""

import logging
import os
from typing import Optional

from configs import LOG_LEVEL, UPLOAD_DIR

from backend.agents import AgentModel, LLMAgentModel
from backend.datasets import DatasetRegistry
from backend.orchestrator import LoggingQueryLogSink, QueryLogSink


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure structured logging for the service."""
    logger = logging.getLogger("sandboxsql")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    log_level = (level or LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    return logger


logger = setup_logging()


# =============================================================================
# UPLOAD STORAGE
# =============================================================================

def ensure_upload_dir() -> str:
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    return UPLOAD_DIR


# =============================================================================
# SINGLETONS
# =============================================================================

_agent_model: Optional[AgentModel] = None
_dataset_registry = DatasetRegistry()
_query_log_sink: QueryLogSink = LoggingQueryLogSink()


def get_agent_model() -> AgentModel:
    """
    Get or create the singleton AgentModel.

    Created lazily so importing the app never needs provider credentials.
    """
    global _agent_model
    if _agent_model is None:
        logger.info("Creating singleton LLMAgentModel")
        _agent_model = LLMAgentModel()
    return _agent_model


def get_dataset_registry() -> DatasetRegistry:
    return _dataset_registry


def get_query_log_sink() -> QueryLogSink:
    return _query_log_sink


def reset_agent_model() -> None:
    """Reset the model (useful for testing)."""
    global _agent_model
    _agent_model = None
