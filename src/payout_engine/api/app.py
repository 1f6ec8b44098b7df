"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payout_engine.api.errors import setup_exception_handlers
from payout_engine.api.routes import advances_router, health_router, settlements_router
from payout_engine.config import Settings, get_settings
from payout_engine.database import dispose_db, init_db
from payout_engine.events.audit import EventLogHandler
from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.notifications import LoggingNotifier, WorkerNotificationHandler
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.sources.base import WorkerNotifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    owns_engine = app.state.session_factory is None
    if owns_engine:
        _, app.state.session_factory = init_db()
    logger.info("Payout engine %s started", app.state.settings.engine_version)
    yield
    # Shutdown
    if owns_engine:
        await dispose_db()


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: WorkerNotifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Payout Engine API",
        description="Worker settlement, cash advances and payout ledger",
        version=settings.engine_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.locks = WorkerLockRegistry()
    app.state.emitter = AsyncEventEmitter()
    WorkerNotificationHandler(notifier or LoggingNotifier()).register(app.state.emitter)
    EventLogHandler().register(app.state.emitter)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(advances_router, prefix="/api/v1")
    app.include_router(settlements_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
