"""Recommendations, educational resources and summary reports."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from paintrack.api.deps import get_current_user, get_facade
from paintrack.api.models import ApiResponse, PainReportOut, RecommendationOut, ResourceOut
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import User

router = APIRouter(prefix="/api", tags=["insights"])


@router.get("/recommendations", response_model=ApiResponse[list[RecommendationOut]])
async def recommendations(
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[RecommendationOut]]:
    found = await facade.get_recommendations(user.id)
    return ApiResponse[list[RecommendationOut]](
        data=[RecommendationOut.model_validate(r) for r in found]
    )


@router.get("/resources", response_model=ApiResponse[list[ResourceOut]])
async def resources(
    user: User = Depends(get_current_user),  # noqa: ARG001
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[list[ResourceOut]]:
    found = await facade.get_resources()
    return ApiResponse[list[ResourceOut]](
        data=[ResourceOut.model_validate(r) for r in found]
    )


@router.get("/reports", response_model=ApiResponse[PainReportOut])
async def pain_report(
    days: int = Query(30),
    user: User = Depends(get_current_user),
    facade: StorageFacade = Depends(get_facade),
) -> ApiResponse[PainReportOut]:
    report = await facade.get_pain_report(user.id, days)
    return ApiResponse[PainReportOut](data=PainReportOut.model_validate(report))
