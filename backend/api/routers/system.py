"""
System router: health check.

Endpoints:
- GET /health - Health check (always available)
"""

from fastapi import APIRouter, Depends

from configs import LLM_MODEL

from backend.datasets import DatasetRegistry

from ..schemas import HealthResponse
from ..deps import get_dataset_registry


router = APIRouter(tags=["System"])

API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(registry: DatasetRegistry = Depends(get_dataset_registry)):
    """Check API health and configuration status."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        llm_model=LLM_MODEL,
        dataset_count=len(registry),
    )
