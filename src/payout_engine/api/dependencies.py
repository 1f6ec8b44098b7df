"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.config import Settings
from payout_engine.database import init_db
from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.services.advance_service import AdvanceWorkflow
from payout_engine.services.ledger_service import PayoutLedger
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.services.settlement_service import SettlementOrchestrator
from payout_engine.sources.sql import SqlAdvanceRepository, SqlLedgerRepository, SqlSourceFeeds


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    factory = request.app.state.session_factory
    if factory is None:
        _, factory = init_db()
        request.app.state.session_factory = factory
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_locks(request: Request) -> WorkerLockRegistry:
    """Process-wide worker locks."""
    return request.app.state.locks


def get_emitter(request: Request) -> AsyncEventEmitter:
    return request.app.state.emitter


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings_dep)]
Locks = Annotated[WorkerLockRegistry, Depends(get_locks)]
Emitter = Annotated[AsyncEventEmitter, Depends(get_emitter)]


def get_advance_workflow(
    db: DbSession, settings: AppSettings, locks: Locks, emitter: Emitter
) -> AdvanceWorkflow:
    """Advance workflow bound to the request's session."""
    return AdvanceWorkflow(
        SqlAdvanceRepository(db),
        locks,
        emitter=emitter,
        policy=settings.advances,
        ledger=PayoutLedger(SqlLedgerRepository(db)),
    )


def get_orchestrator(
    db: DbSession, settings: AppSettings, locks: Locks, emitter: Emitter
) -> SettlementOrchestrator:
    """Settlement orchestrator bound to the request's session."""
    return SettlementOrchestrator(
        SqlSourceFeeds(db),
        PayoutLedger(SqlLedgerRepository(db)),
        locks,
        emitter=emitter,
        policy=settings.settlement,
    )


# Type aliases for cleaner dependency injection
Advances = Annotated[AdvanceWorkflow, Depends(get_advance_workflow)]
Orchestrator = Annotated[SettlementOrchestrator, Depends(get_orchestrator)]
