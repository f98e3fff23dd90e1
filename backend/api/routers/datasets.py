"""
Datasets router: list and delete registered datasets.

Endpoints:
- GET    /datasets - List datasets
- DELETE /datasets/{dataset_id} - Forget a dataset, delete its store
- DELETE /datasets/{dataset_id}/tables/{table} - Drop one table (irreversible)
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, status

from backend.adapters import DatabaseError, DatasetNotFoundError
from backend.datasets import DatasetRegistry
from backend.ingestion import drop_table

from ..schemas import DatasetInfo, DatasetListResponse, DeleteResponse, UploadResponse
from ..deps import get_dataset_registry, logger


router = APIRouter(prefix="/datasets", tags=["Datasets"])


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=DatasetListResponse)
async def list_datasets(registry: DatasetRegistry = Depends(get_dataset_registry)):
    """List all registered datasets."""
    return DatasetListResponse(
        datasets=[DatasetInfo(**record.model_dump()) for record in registry.list()]
    )


@router.delete("/{dataset_id}", response_model=DeleteResponse)
async def delete_dataset(dataset_id: str, registry: DatasetRegistry = Depends(get_dataset_registry)):
    """Forget a dataset and delete its store file (all of its tables)."""
    try:
        await asyncio.to_thread(registry.remove, dataset_id)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return DeleteResponse(dataset_id=dataset_id)


@router.delete("/{dataset_id}/tables/{table_name}", response_model=UploadResponse)
async def delete_table(
    dataset_id: str,
    table_name: str,
    registry: DatasetRegistry = Depends(get_dataset_registry),
):
    """Irreversibly drop one table from the persisted store."""
    try:
        record = registry.get(dataset_id)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    def _drop():
        with registry.write_lock(dataset_id):
            return drop_table(record.path, table_name)

    try:
        snapshot = await asyncio.to_thread(_drop)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DatabaseError:
        logger.exception("Dropping %s from %s failed", table_name, dataset_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to drop table '{table_name}'.",
        )

    return UploadResponse(
        status="success",
        message=f"Table '{table_name}' deleted",
        schema_text=snapshot.schema_text,
        database_state=snapshot.database_state,
        dataset_id=dataset_id,
        path=record.path,
    )
