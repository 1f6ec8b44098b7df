"""Pytest fixtures for payout engine tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.models import Base
from payout_engine.services.advance_service import AdvanceWorkflow
from payout_engine.services.ledger_service import PayoutLedger
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.services.settlement_service import SettlementOrchestrator
from payout_engine.sources.memory import InMemoryStore

from factories import FixedClock

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def locks() -> WorkerLockRegistry:
    return WorkerLockRegistry()


@pytest.fixture
def emitter() -> AsyncEventEmitter:
    return AsyncEventEmitter()


@pytest.fixture
def workflow(store, locks, emitter, clock, ledger) -> AdvanceWorkflow:
    return AdvanceWorkflow(store, locks, emitter=emitter, clock=clock, ledger=ledger)


@pytest.fixture
def ledger(store) -> PayoutLedger:
    return PayoutLedger(store)


@pytest.fixture
def orchestrator(store, ledger, locks, emitter, clock) -> SettlementOrchestrator:
    return SettlementOrchestrator(store, ledger, locks, emitter=emitter, clock=clock)


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()
