"""SQLAlchemy adapters for feeds, advances and the payout ledger.

Each adapter works on one AsyncSession. Calls on a session must not
overlap, so callers await them one at a time. Writes commit before
returning.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.calculators.types import (
    Advance,
    AdvanceStatus,
    Fine,
    FineStatus,
    PayoutLedgerEntry,
    Purchase,
    ServiceRecord,
)
from payout_engine.exceptions import SourceUnavailable, StaleSettlement
from payout_engine.models.settlement import (
    CashAdvance,
    CompletedService,
    PayoutEntry,
    StorePurchase,
    WorkerFine,
)

logger = logging.getLogger(__name__)


class _SqlAdapter:
    source = "database"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _scalars(self, query: Any, worker_id: str | None = None) -> list[Any]:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.warning("Query against %s failed: %s", self.source, e)
            raise SourceUnavailable(self.source, worker_id, str(e)) from e
        return list(result.scalars().all())

    async def _commit(self, worker_id: str | None = None) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Commit against %s failed: %s", self.source, e)
            raise SourceUnavailable(self.source, worker_id, str(e)) from e


class SqlSourceFeeds(_SqlAdapter):
    """SourceFeeds over the completed_service, store_purchase,
    worker_fine and cash_advance tables."""

    source = "feeds"

    async def fetch_services_since(
        self, worker_id: str, since: datetime | None
    ) -> list[ServiceRecord]:
        query = select(CompletedService).where(CompletedService.worker_id == worker_id)
        if since is not None:
            query = query.where(CompletedService.completed_at > since)
        rows = await self._scalars(query.order_by(CompletedService.completed_at), worker_id)
        return [row.to_record() for row in rows]

    async def fetch_purchases_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Purchase]:
        query = select(StorePurchase).where(StorePurchase.worker_id == worker_id)
        if since is not None:
            query = query.where(StorePurchase.occurred_at > since)
        rows = await self._scalars(query.order_by(StorePurchase.occurred_at), worker_id)
        return [row.to_record() for row in rows]

    async def fetch_active_fines_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Fine]:
        query = select(WorkerFine).where(
            WorkerFine.worker_id == worker_id,
            WorkerFine.status == FineStatus.ACTIVE.value,
        )
        if since is not None:
            query = query.where(WorkerFine.issued_at > since)
        rows = await self._scalars(query.order_by(WorkerFine.issued_at), worker_id)
        return [row.to_record() for row in rows]

    async def fetch_approved_advances_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Advance]:
        query = select(CashAdvance).where(
            CashAdvance.worker_id == worker_id,
            CashAdvance.status == AdvanceStatus.APPROVED.value,
        )
        if since is not None:
            query = query.where(CashAdvance.resolved_at > since)
        rows = await self._scalars(query.order_by(CashAdvance.resolved_at), worker_id)
        return [row.to_record() for row in rows]


class SqlAdvanceRepository(_SqlAdapter):
    """AdvanceRepository over the cash_advance table."""

    source = "advances"

    async def add(self, advance: Advance) -> None:
        self.session.add(CashAdvance.from_record(advance))
        await self._commit(advance.worker_id)

    async def get(self, advance_id: UUID) -> Advance | None:
        rows = await self._scalars(
            select(CashAdvance)
            .where(CashAdvance.advance_id == advance_id)
            .execution_options(populate_existing=True)
        )
        return rows[0].to_record() if rows else None

    async def save(self, advance: Advance) -> None:
        row = await self.session.get(CashAdvance, advance.id)
        if row is None:
            self.session.add(CashAdvance.from_record(advance))
        else:
            row.update_from(advance)
        await self._commit(advance.worker_id)

    async def list_by_status(self, status: AdvanceStatus) -> list[Advance]:
        rows = await self._scalars(
            select(CashAdvance)
            .where(CashAdvance.status == AdvanceStatus(status).value)
            .order_by(CashAdvance.requested_at)
        )
        return [row.to_record() for row in rows]

    async def list_for_worker(self, worker_id: str) -> list[Advance]:
        rows = await self._scalars(
            select(CashAdvance)
            .where(CashAdvance.worker_id == worker_id)
            .order_by(CashAdvance.requested_at.desc()),
            worker_id,
        )
        return [row.to_record() for row in rows]


class SqlLedgerRepository(_SqlAdapter):
    """LedgerRepository over the append-only payout_entry table."""

    source = "ledger"

    async def persist_ledger_entry(self, entry: PayoutLedgerEntry) -> None:
        """Insert one entry.

        Raises:
            StaleSettlement: another payout already closed the same window
            SourceUnavailable: the insert failed for any other reason
        """
        self.session.add(PayoutEntry.from_record(entry))
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Payout for worker %s rejected, window already paid: %s", entry.worker_id, e.orig
            )
            start = entry.period_start.isoformat() if entry.period_start else "never"
            raise StaleSettlement(
                entry.worker_id,
                f"a payout for the window starting at {start} was already registered",
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Insert into %s failed: %s", self.source, e)
            raise SourceUnavailable(self.source, entry.worker_id, str(e)) from e
        await self._commit(entry.worker_id)

    async def entries_for_worker(self, worker_id: str) -> list[PayoutLedgerEntry]:
        rows = await self._scalars(
            select(PayoutEntry)
            .where(PayoutEntry.worker_id == worker_id)
            .order_by(PayoutEntry.paid_at.desc()),
            worker_id,
        )
        return [row.to_record() for row in rows]

    async def all_entries(self) -> list[PayoutLedgerEntry]:
        rows = await self._scalars(select(PayoutEntry).order_by(PayoutEntry.paid_at.desc()))
        return [row.to_record() for row in rows]

    async def last_paid_at(self, worker_id: str) -> datetime | None:
        rows = await self._scalars(
            select(func.max(PayoutEntry.paid_at)).where(PayoutEntry.worker_id == worker_id),
            worker_id,
        )
        return rows[0] if rows else None
