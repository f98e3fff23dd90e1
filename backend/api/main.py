"""
SandboxSQL FastAPI Application.

This module provides the REST API layer for the SandboxSQL NL→SQL service.
All business logic is delegated to the ingestion pipeline and the ask
service; no SQL or LLM logic here.

Endpoints:
- POST   /sandbox                                 - Ask a question (or fetch dataset state)
- POST   /upload                                  - Create a dataset from files
- POST   /append                                  - Add a CSV to a dataset
- GET    /datasets                                - List datasets
- DELETE /datasets/{id}                           - Delete a dataset
- DELETE /datasets/{id}/tables/{table}            - Drop a table
- GET    /health                                  - Health check
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs import ALLOWED_ORIGINS, LLM_MODEL, ConfigurationError, validate_configuration

from .deps import ensure_upload_dir, logger
from .routers import ask, datasets, system, upload


# ============================================================
# APP LIFECYCLE
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    upload_dir = ensure_upload_dir()
    try:
        validate_configuration()
    except ConfigurationError as e:
        # Ingestion falls back to deterministic naming; questions will fail until fixed
        logger.warning("Configuration incomplete: %s", e)
    logger.info("SandboxSQL API started. Model: %s, uploads: %s", LLM_MODEL, upload_dir)
    yield
    # Shutdown
    logger.info("SandboxSQL API shutting down.")


# ============================================================
# FASTAPI APP
# ============================================================

app = FastAPI(
    title="SandboxSQL API",
    description="Sandboxed NL→SQL question answering over uploaded datasets",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system.router)
app.include_router(ask.router)
app.include_router(upload.router)
app.include_router(datasets.router)


# ============================================================
# RUN DIRECTLY (for development)
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
