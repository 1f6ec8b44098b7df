"""Settlement orchestrator - preview and confirmation of worker payouts.

Orchestrates:
1. Window lookup (last payout time from the ledger)
2. Source feed fetches, failing closed per worker
3. Settlement computation
4. Payout confirmation: re-verification under the worker lock, ledger
   append, payout event
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, TypeVar

from payout_engine.calculators.settlement import compute_settlement
from payout_engine.calculators.types import ZERO, PayoutLedgerEntry, SettlementBreakdown
from payout_engine.config import DEFAULT_SETTLEMENT_POLICY, SettlementPolicy
from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.types import (
    DomainEvent,
    EventMetadata,
    PayoutRegistered,
    SettlementExcluded,
)
from payout_engine.exceptions import (
    InconsistentState,
    PayoutEngineError,
    SourceUnavailable,
    StaleSettlement,
    ValidationError,
)
from payout_engine.services.advance_service import utcnow
from payout_engine.services.ledger_service import PayoutLedger
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.sources.base import SourceFeeds

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchSettlement:
    """Result of settling a batch of workers.

    ``settlements`` holds one breakdown per worker that could be computed;
    ``failures`` maps every excluded worker to the error that excluded it.
    """

    settlements: list[SettlementBreakdown] = field(default_factory=list)
    failures: dict[str, PayoutEngineError] = field(default_factory=dict)

    @property
    def total_payable(self) -> Decimal:
        return sum((s.total_payable for s in self.settlements), ZERO)

    @property
    def workers_with_payable(self) -> int:
        return sum(1 for s in self.settlements if s.total_payable > 0)

    @property
    def largest_payable(self) -> Decimal:
        return max((s.total_payable for s in self.settlements), default=ZERO)

    def payable(self) -> list[SettlementBreakdown]:
        """Settlements with something to pay, largest first."""
        return sorted(
            (s for s in self.settlements if s.total_payable > 0),
            key=lambda s: s.total_payable,
            reverse=True,
        )

    def get(self, worker_id: str) -> SettlementBreakdown | None:
        for settlement in self.settlements:
            if settlement.worker_id == worker_id:
                return settlement
        return None


class SettlementOrchestrator:
    """Settlement orchestration service.

    Coordinates the settlement lifecycle:
    - Preview a worker's settlement over their open window (read-only,
      safe to repeat)
    - Preview a batch, excluding workers whose feeds are unavailable
    - Confirm a payout, appending exactly one ledger entry
    """

    def __init__(
        self,
        feeds: SourceFeeds,
        ledger: PayoutLedger,
        locks: WorkerLockRegistry,
        emitter: AsyncEventEmitter | None = None,
        policy: SettlementPolicy = DEFAULT_SETTLEMENT_POLICY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.feeds = feeds
        self.ledger = ledger
        self.locks = locks
        self.emitter = emitter
        self.policy = policy
        self.clock = clock

    async def preview(self, worker_id: str) -> SettlementBreakdown:
        """Compute the worker's settlement since their last payout.

        Raises:
            SourceUnavailable: a feed could not be fetched
            InconsistentState: the feeds returned impossible data
        """
        window_start = await self.ledger.last_payout_time(worker_id)
        return await self._compute(worker_id, window_start)

    async def settle_all(self, worker_ids: Iterable[str]) -> BatchSettlement:
        """Preview every worker's settlement.

        A worker whose feeds are unavailable, or whose data is inconsistent,
        is excluded and reported in ``failures``; the rest of the batch
        still completes.
        """
        batch = BatchSettlement()
        # Sequential: feeds may share one database session.
        for worker_id in dict.fromkeys(worker_ids):
            try:
                batch.settlements.append(await self.preview(worker_id))
            except SourceUnavailable as e:
                logger.warning("Excluding worker %s from settlement: %s", worker_id, e)
                await self._exclude(batch, worker_id, e)
            except InconsistentState as e:
                logger.error(
                    "Inconsistent settlement state for worker %s: %s", worker_id, e, exc_info=True
                )
                await self._exclude(batch, worker_id, e)
        return batch

    async def register_payout(
        self,
        worker_id: str,
        breakdown: SettlementBreakdown,
        performed_by: str,
        method: str,
        notes: str | None = None,
    ) -> PayoutLedgerEntry:
        """Confirm a payout and append it to the ledger.

        The settlement is recomputed under the worker's lock, bounded at
        the payout instant, and must match the confirmed breakdown. The
        recorded amount is the breakdown's total_payable.

        Raises:
            ValidationError: the breakdown belongs to another worker, or a
                required field is blank
            StaleSettlement: a payout, approval or new record changed the
                worker's settlement since the breakdown was computed
            InconsistentState: the breakdown's totals do not add up, or the
                clock is not after the previous payout
            SourceUnavailable: a feed could not be fetched
        """
        if breakdown.worker_id != worker_id:
            raise ValidationError(
                f"breakdown belongs to worker {breakdown.worker_id}, not {worker_id}",
                field="breakdown",
            )
        for name, value in (("performed_by", performed_by), ("method", method)):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} is required", field=name)

        errors = breakdown.verify()
        if errors:
            raise InconsistentState(
                f"breakdown for worker {worker_id} is inconsistent: " + "; ".join(errors)
            )

        async with self.locks.hold(worker_id):
            last_paid_at = await self.ledger.last_payout_time(worker_id)
            if breakdown.window_start != last_paid_at:
                raise StaleSettlement(
                    worker_id,
                    f"window starts at {_fmt(breakdown.window_start)} "
                    f"but the last payout was at {_fmt(last_paid_at)}",
                )

            paid_at = self.clock()
            if last_paid_at is not None and paid_at <= last_paid_at:
                raise InconsistentState(
                    f"payout time {paid_at.isoformat()} is not after the previous "
                    f"payout at {last_paid_at.isoformat()} for worker {worker_id}"
                )

            current = await self._compute(worker_id, last_paid_at, window_end=paid_at)
            if current.fingerprint() != breakdown.fingerprint():
                raise StaleSettlement(
                    worker_id,
                    f"payable is now {current.total_payable}, "
                    f"confirmed {breakdown.total_payable}",
                )

            entry = PayoutLedgerEntry(
                worker_id=worker_id,
                paid_at=paid_at,
                amount=breakdown.total_payable,
                breakdown=breakdown,
                method=method,
                performed_by=performed_by,
                notes=notes or None,
            )
            await self.ledger.append(entry)

        logger.info(
            "Payout %s registered for %s: %s via %s",
            entry.id,
            worker_id,
            entry.amount,
            method,
        )
        await self._emit(
            PayoutRegistered(
                metadata=EventMetadata.create(actor_id=performed_by, actor_type="user"),
                entry_id=entry.id,
                worker_id=worker_id,
                amount=entry.amount,
                method=method,
                paid_at=entry.paid_at,
                period_start=entry.period_start,
            )
        )
        return entry

    async def payout_history(self, worker_id: str) -> list[PayoutLedgerEntry]:
        """The worker's payouts, newest first."""
        return await self.ledger.history(worker_id)

    async def _compute(
        self,
        worker_id: str,
        window_start: datetime | None,
        window_end: datetime | None = None,
    ) -> SettlementBreakdown:
        feeds = self.feeds
        services = await self._fetch("services", feeds.fetch_services_since, worker_id, window_start)
        purchases = await self._fetch("purchases", feeds.fetch_purchases_since, worker_id, window_start)
        fines = await self._fetch("fines", feeds.fetch_active_fines_since, worker_id, window_start)
        advances = await self._fetch(
            "advances", feeds.fetch_approved_advances_since, worker_id, window_start
        )
        return compute_settlement(
            worker_id,
            window_start,
            services,
            purchases,
            fines,
            advances,
            policy=self.policy,
            window_end=window_end,
        )

    async def _fetch(
        self,
        source: str,
        fetch: Callable[[str, datetime | None], Awaitable[list[T]]],
        worker_id: str,
        since: datetime | None,
    ) -> list[T]:
        try:
            return await fetch(worker_id, since)
        except SourceUnavailable:
            raise
        except (OSError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(source, worker_id, str(e) or type(e).__name__) from e

    async def _exclude(
        self, batch: BatchSettlement, worker_id: str, error: PayoutEngineError
    ) -> None:
        batch.failures[worker_id] = error
        await self._emit(
            SettlementExcluded(
                metadata=EventMetadata.create(),
                worker_id=worker_id,
                reason=error.message,
                code=error.code,
            )
        )

    async def _emit(self, event: DomainEvent) -> None:
        if self.emitter is None:
            return
        errors = await self.emitter.emit(event)
        if errors:
            logger.warning(
                "%d handler(s) failed for %s", len(errors), event.event_type
            )


def _fmt(value: datetime | None) -> str:
    return value.isoformat() if value else "never"
