"""Registration, login, logout and the current-user endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from paintrack.api.deps import (
    end_session,
    get_app_config,
    get_current_user,
    get_facade,
    start_session,
)
from paintrack.api.models import ApiResponse, LoginRequest, RegisterRequest, UserOut
from paintrack.auth import authenticate, register_user
from paintrack.config import AppConfig
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/register", response_model=ApiResponse[UserOut], status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    facade: StorageFacade = Depends(get_facade),
    config: AppConfig = Depends(get_app_config),
) -> ApiResponse[UserOut]:
    """Create an account and log it in."""
    user = await register_user(
        facade,
        body.username,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
    )
    await start_session(response, facade, config, user)
    return ApiResponse[UserOut](data=UserOut.model_validate(user))


@router.post("/login", response_model=ApiResponse[UserOut])
async def login(
    body: LoginRequest,
    response: Response,
    facade: StorageFacade = Depends(get_facade),
    config: AppConfig = Depends(get_app_config),
) -> ApiResponse[UserOut]:
    user = await authenticate(facade, body.username, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    await start_session(response, facade, config, user)
    return ApiResponse[UserOut](data=UserOut.model_validate(user))


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    response: Response,
    facade: StorageFacade = Depends(get_facade),
    config: AppConfig = Depends(get_app_config),
) -> Response:
    await end_session(request, response, facade, config)
    response.status_code = 204
    return response


@router.get("/user", response_model=ApiResponse[UserOut])
async def current_user(user: User = Depends(get_current_user)) -> ApiResponse[UserOut]:
    return ApiResponse[UserOut](data=UserOut.model_validate(user))
