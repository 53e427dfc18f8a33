"""Pain entry logging and the views derived from a user's entries.

Mounted at ``/api/pain-entries``. Every endpoint acts on the session user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from paintrack.api.deps import get_current_user, get_facade
from paintrack.api.models import (
    ApiResponse,
    PainEntryCreate,
    PainEntryOut,
    PatternOut,
    TriggerStatOut,
)
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import NewPainEntry, User

router = APIRouter(prefix="/api/pain-entries", tags=["pain-entries"])

DEFAULT_RECENT_LIMIT = 3


@router.post("", response_model=ApiResponse[PainEntryOut], status_code=201)
async def create_pain_entry(
    body: PainEntryCreate,
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[PainEntryOut]:
    entry = await facade.create_pain_entry(NewPainEntry(user_id=user.id, **body.model_dump()))
    return ApiResponse[PainEntryOut](data=PainEntryOut.model_validate(entry))


@router.get("", response_model=ApiResponse[list[PainEntryOut]])
async def list_pain_entries(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[PainEntryOut]]:
    entries = await facade.get_pain_entries_by_user(user.id)
    return ApiResponse[list[PainEntryOut]](
        data=[PainEntryOut.model_validate(e) for e in entries]
    )


@router.get("/recent", response_model=ApiResponse[list[PainEntryOut]])
async def recent_pain_entries(
    limit: int = Query(DEFAULT_RECENT_LIMIT),
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[PainEntryOut]]:
    entries = await facade.get_recent_pain_entries(user.id, limit)
    return ApiResponse[list[PainEntryOut]](
        data=[PainEntryOut.model_validate(e) for e in entries]
    )


@router.get("/trend", response_model=ApiResponse[list[PainEntryOut]])
async def pain_trend(
    days: int = Query(7),
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[PainEntryOut]]:
    """Entries from the trailing *days* window, oldest first."""
    entries = await facade.get_pain_trend(user.id, days)
    return ApiResponse[list[PainEntryOut]](
        data=[PainEntryOut.model_validate(e) for e in entries],
        meta={"days": days},
    )


@router.get("/triggers", response_model=ApiResponse[list[TriggerStatOut]])
async def trigger_stats(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[TriggerStatOut]]:
    stats = await facade.get_trigger_stats(user.id)
    return ApiResponse[list[TriggerStatOut]](
        data=[TriggerStatOut.model_validate(s) for s in stats]
    )


@router.get("/patterns", response_model=ApiResponse[list[PatternOut]])
async def patterns(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[PatternOut]]:
    found = await facade.get_patterns(user.id)
    return ApiResponse[list[PatternOut]](data=[PatternOut.model_validate(p) for p in found])
