"""
Ask router: natural language questions against a dataset sandbox.

Endpoints:
- POST /sandbox - answer a question, or fetch schema + database state
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, status

from backend.adapters import DatasetNotFoundError, SandboxInitializationError
from backend.agents import AgentModel, LLMError
from backend.datasets import DatasetRegistry, resolve_dataset_path
from backend.orchestrator import QueryLogSink, answer_question

from ..schemas import SandboxRequest, SandboxResponse
from ..deps import get_agent_model, get_dataset_registry, get_query_log_sink, logger


router = APIRouter(tags=["Query"])


def _resolve_store(request: SandboxRequest, registry: DatasetRegistry):
    """Dataset id wins over a raw path; neither means an in-memory sandbox."""
    if request.dataset_id:
        return registry.get(request.dataset_id).path
    if request.db_file_path:
        return resolve_dataset_path(request.db_file_path)
    return None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/sandbox", response_model=SandboxResponse)
async def ask_question(
    request: SandboxRequest,
    model: AgentModel = Depends(get_agent_model),
    registry: DatasetRegistry = Depends(get_dataset_registry),
    sink: QueryLogSink = Depends(get_query_log_sink),
):
    """
    Answer a question against a disposable copy of the dataset.

    Without a question only the schema and per-table state are returned.
    The synchronous pipeline runs in a worker thread so the event loop
    stays free.
    """
    try:
        db_path = _resolve_store(request, registry)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    try:
        result = await asyncio.to_thread(
            answer_question,
            model,
            request.question,
            db_path=db_path,
            schema_text=request.schema_text,
            restricted_columns=request.restricted_columns,
            dataset_id=request.dataset_id,
            sink=sink,
        )
    except SandboxInitializationError as e:
        logger.error("Sandbox initialization failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not open a sandbox for this dataset: {e}",
        )
    except LLMError as e:
        logger.error("Model call failed for question %r: %s", (request.question or "")[:100], e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The language model is unavailable. Please try again.",
        )
    except Exception:
        # Log the full error internally, return sanitized message to client
        logger.exception("Question failed: %s", (request.question or "")[:100])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred while processing your question.",
        )

    return SandboxResponse(**result.model_dump(exclude={"schema_text"}), schema_text=result.schema_text)
