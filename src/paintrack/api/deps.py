"""FastAPI dependencies: the storage facade, config and the session user.

Sessions are opaque random ids carried in a cookie and resolved through
``facade.sessions``, so they follow the same primary/fallback routing as
the rest of the data.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, Response

from paintrack.config import AppConfig
from paintrack.core.logging import set_user_context
from paintrack.storage.facade import StorageFacade
from paintrack.storage.models import User

logger = logging.getLogger(__name__)


def get_facade(request: Request) -> StorageFacade:
    return request.app.state.facade


def get_app_config(request: Request) -> AppConfig:
    return request.app.state.config


async def get_current_user(
    request: Request,
    facade: StorageFacade = Depends(get_facade),
    config: AppConfig = Depends(get_app_config),
) -> User:
    """Resolve the session cookie to a user or raise 401.

    The session records both the user id and the username. Ids are only
    unique within one store, so a user whose username differs from the
    session's is a different person (e.g. a durable session looked up in the
    fallback store during an outage) and the request is refused.
    """
    sid = request.cookies.get(config.sessions.cookie_name)
    if not sid:
        raise HTTPException(status_code=401, detail="Not authenticated")
    session = await facade.sessions.get(sid) or {}
    user_id = session.get("user_id")
    username = session.get("username")
    if not isinstance(user_id, int) or not isinstance(username, str):
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = await facade.get_user(user_id)
    if user is None:
        # Session outlived its user (e.g. fallback store was reset by a restart).
        await facade.sessions.destroy(sid)
        raise HTTPException(status_code=401, detail="Not authenticated")
    if user.username != username:
        logger.warning(
            "Session for %r resolved to user id %s owned by %r; refusing",
            username,
            user_id,
            user.username,
        )
        raise HTTPException(status_code=401, detail="Not authenticated")
    set_user_context(user.id)
    return user


async def start_session(
    response: Response,
    facade: StorageFacade,
    config: AppConfig,
    user: User,
) -> str:
    sid = secrets.token_urlsafe(32)
    await facade.sessions.set(
        sid,
        {"user_id": user.id, "username": user.username},
        config.sessions.max_age_seconds,
    )
    response.set_cookie(
        config.sessions.cookie_name,
        sid,
        max_age=config.sessions.max_age_seconds,
        httponly=True,
        samesite="lax",
    )
    return sid


async def end_session(
    request: Request,
    response: Response,
    facade: StorageFacade,
    config: AppConfig,
) -> None:
    sid = request.cookies.get(config.sessions.cookie_name)
    if sid:
        await facade.sessions.destroy(sid)
    response.delete_cookie(config.sessions.cookie_name)
