"""
Upload router: build and extend dataset stores from uploaded files.

Endpoints:
- POST /upload?clean=bool - 1..MAX_UPLOAD_FILES files → new dataset
- POST /append?clean=bool - one CSV added to an existing dataset
"""

import asyncio
import shutil
import uuid
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from configs import MAX_UPLOAD_FILES

from backend.adapters import DatabaseError, DatasetNotFoundError
from backend.agents import AgentModel
from backend.datasets import DatasetRegistry
from backend.ingestion import (
    IngestionError,
    IngestionResult,
    UploadedFile,
    append_file,
    ingest_files,
)

from ..schemas import UploadResponse
from ..deps import ensure_upload_dir, get_agent_model, get_dataset_registry, logger


router = APIRouter(tags=["Upload"])


# =============================================================================
# HELPERS
# =============================================================================

def _save_upload(file: UploadFile) -> UploadedFile:
    """Persist an upload under UPLOAD_DIR with a collision-free name."""
    original_name = Path(file.filename or "upload").name
    target = Path(ensure_upload_dir()) / f"{uuid.uuid4().hex}-{original_name}"
    with open(target, "wb") as out:
        shutil.copyfileobj(file.file, out)
    return UploadedFile(path=str(target), original_name=original_name)


def _to_response(result: IngestionResult, dataset_id: str, message: str) -> UploadResponse:
    return UploadResponse(
        status="success",
        message=message,
        schema_text=result.snapshot.schema_text,
        database_state=result.snapshot.database_state,
        dataset_id=dataset_id,
        path=result.path,
        tables=[t.name for t in result.tables],
        skipped=result.skipped,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    files: List[UploadFile] = File(...),
    clean: bool = Query(False, description="Apply model-proposed data cleanup"),
    model: AgentModel = Depends(get_agent_model),
    registry: DatasetRegistry = Depends(get_dataset_registry),
):
    """
    Create a dataset from uploaded files.

    - one .csv → one table
    - several .csv files → one store, one table per file
    - one .sqlite/.sqlite3/.db file → used as the store directly
    """
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded.")
    if len(files) > MAX_UPLOAD_FILES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files: {len(files)} (max {MAX_UPLOAD_FILES}).",
        )

    uploads = [_save_upload(f) for f in files]

    try:
        result = await asyncio.to_thread(ingest_files, model, uploads, clean, True)
    except IngestionError as e:
        logger.warning("Upload rejected: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Upload failed: %s", [u.original_name for u in uploads])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred while processing the upload.",
        )

    record = registry.register(result.path, ", ".join(u.original_name for u in uploads))
    message = f"Processed {len(uploads) - len(result.skipped)} of {len(uploads)} file(s)"
    return _to_response(result, record.id, message)


@router.post("/append", response_model=UploadResponse)
async def append_to_dataset(
    dataset_id: str = Form(...),
    file: UploadFile = File(...),
    clean: bool = Query(False, description="Apply model-proposed data cleanup"),
    model: AgentModel = Depends(get_agent_model),
    registry: DatasetRegistry = Depends(get_dataset_registry),
):
    """Add one CSV file to an existing dataset as a new table."""
    try:
        record = registry.get(dataset_id)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    upload = _save_upload(file)

    def _append():
        with registry.write_lock(dataset_id):
            return append_file(model, record.path, upload, clean, remove_uploads=True)

    try:
        result = await asyncio.to_thread(_append)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IngestionError as e:
        logger.warning("Append rejected for %s: %s", dataset_id, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DatabaseError:
        logger.exception("Append failed for %s", dataset_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred while appending the file.",
        )

    return _to_response(result, dataset_id, f"Appended {upload.original_name}")
