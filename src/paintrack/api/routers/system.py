"""Liveness and storage health endpoints under ``/api/system``."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from paintrack.api.deps import get_facade
from paintrack.api.models import ApiResponse, StorageStatusOut
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import utcnow

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "time": utcnow().isoformat()}


@router.get("/storage", response_model=ApiResponse[StorageStatusOut])
async def storage_status(
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[StorageStatusOut]:
    """Report whether data is currently durable (PostgreSQL) or volatile (memory)."""
    return ApiResponse[StorageStatusOut](data=StorageStatusOut.model_validate(facade.status()))
