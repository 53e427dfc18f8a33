"""PainTrack API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- Lifespan handler that initializes and shuts down the storage facade
- The standard error envelope
- Routers for auth, pain entries, medications, user settings, insights
  and system health
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paintrack.api.middleware import register_error_handlers
from paintrack.api.routers.auth import router as auth_router
from paintrack.api.routers.insights import router as insights_router
from paintrack.api.routers.medications import router as medications_router
from paintrack.api.routers.pain_entries import router as pain_entries_router
from paintrack.api.routers.system import router as system_router
from paintrack.api.routers.users import router as users_router
from paintrack.config import AppConfig
from paintrack.storage.base import StorageState
from paintrack.storage.facade import StorageFacade

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle for the storage facade.

    A facade that is already initialized (e.g. by a test) is left alone on
    startup but is still shut down on exit.
    """
    facade: StorageFacade = app.state.facade
    if facade.state is StorageState.UNINITIALIZED:
        state = await facade.init()
        logger.info("Storage initialized in %s mode", state)
    facade.start_session_pruning(app.state.config.sessions.prune_interval_seconds)

    yield

    await facade.shutdown()


def create_app(
    config: AppConfig | None = None,
    facade: StorageFacade | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Application config. Defaults to :class:`AppConfig` defaults, which
        run without a database.
    facade:
        Storage facade to serve from. Built from ``config.storage`` when
        omitted.
    """
    if config is None:
        config = AppConfig()
    if facade is None:
        facade = StorageFacade(config.storage)

    app = FastAPI(
        title="PainTrack API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config
    app.state.facade = facade

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(system_router)
    app.include_router(auth_router)
    app.include_router(pain_entries_router)
    app.include_router(medications_router)
    app.include_router(users_router)
    app.include_router(insights_router)

    return app
