"""Profile and reminder settings of the session user, mounted at ``/api/user``."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from paintrack.api.deps import get_current_user, get_facade
from paintrack.api.models import (
    ApiResponse,
    ProfileUpdate,
    ReminderSettingsOut,
    ReminderSettingsUpdate,
    UserOut,
)
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import User

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/profile", response_model=ApiResponse[UserOut])
async def get_profile(user: User = Depends(get_current_user)) -> ApiResponse[UserOut]:
    return ApiResponse[UserOut](data=UserOut.model_validate(user))


@router.patch("/profile", response_model=ApiResponse[UserOut])
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[UserOut]:
    """Apply only the fields present in the request body."""
    updated = await facade.update_user(user.id, body.model_dump(exclude_unset=True))
    return ApiResponse[UserOut](data=UserOut.model_validate(updated))


@router.get("/reminder-settings", response_model=ApiResponse[ReminderSettingsOut])
async def get_reminder_settings(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[ReminderSettingsOut]:
    settings = await facade.get_reminder_settings(user.id)
    return ApiResponse[ReminderSettingsOut](data=ReminderSettingsOut.model_validate(settings))


@router.patch("/reminder-settings", response_model=ApiResponse[ReminderSettingsOut])
async def update_reminder_settings(
    body: ReminderSettingsUpdate,
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[ReminderSettingsOut]:
    settings = await facade.update_reminder_settings(
        user.id, body.model_dump(exclude_unset=True)
    )
    return ApiResponse[ReminderSettingsOut](data=ReminderSettingsOut.model_validate(settings))
