"""Medication schedule and daily dose tracking, mounted at ``/api/medications``."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from paintrack.api.deps import get_current_user, get_facade
from paintrack.api.models import (
    ApiResponse,
    MedicationCreate,
    MedicationOut,
    MedicationStatusOut,
    TakeMedicationRequest,
)
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import NewMedication, User

router = APIRouter(prefix="/api/medications", tags=["medications"])


@router.post("", response_model=ApiResponse[MedicationOut], status_code=201)
async def create_medication(
    body: MedicationCreate,
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[MedicationOut]:
    medication = await facade.create_medication(
        NewMedication(user_id=user.id, **body.model_dump())
    )
    return ApiResponse[MedicationOut](data=MedicationOut.model_validate(medication))


@router.get("", response_model=ApiResponse[list[MedicationOut]])
async def list_medications(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[MedicationOut]]:
    medications = await facade.get_medications_by_user(user.id)
    return ApiResponse[list[MedicationOut]](
        data=[MedicationOut.model_validate(m) for m in medications]
    )


@router.get("/today", response_model=ApiResponse[list[MedicationStatusOut]])
async def today_medications(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[MedicationStatusOut]]:
    statuses = await facade.get_today_medications(user.id)
    return ApiResponse[list[MedicationStatusOut]](
        data=[MedicationStatusOut.model_validate(s.to_dict()) for s in statuses]
    )


@router.post("/take", response_model=ApiResponse[MedicationStatusOut])
async def take_medication(
    body: TakeMedicationRequest,
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[MedicationStatusOut]:
    """Mark one dose slot of today's schedule as taken."""
    owned = {m.id for m in await facade.get_medications_by_user(user.id)}
    if body.medication_id not in owned:
        raise HTTPException(status_code=404, detail=f"Medication {body.medication_id} not found")
    status = await facade.take_medication(body.medication_id, body.dose_index)
    return ApiResponse[MedicationStatusOut](
        data=MedicationStatusOut.model_validate(status.to_dict())
    )
