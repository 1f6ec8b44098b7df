"""Cash-advance approval workflow."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable
from uuid import UUID

from payout_engine.calculators.settlement import in_window
from payout_engine.calculators.types import ZERO, Advance, AdvanceStatus, to_money, to_utc
from payout_engine.config import DEFAULT_ADVANCE_POLICY, AdvancePolicy
from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.types import (
    AdvanceApproved,
    AdvanceRejected,
    AdvanceSubmitted,
    DomainEvent,
    EventMetadata,
)
from payout_engine.exceptions import NotFound, ValidationError
from payout_engine.services.ledger_service import PayoutLedger
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.services.state_machine import AdvanceStateMachine
from payout_engine.sources.base import AdvanceRepository

logger = logging.getLogger(__name__)

# Smallest step the ledger stores (microsecond timestamps).
RESOLUTION_STEP = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdvanceWorkflow:
    """Governs a cash advance from submission to approval or rejection.

    Resolution runs under the worker's lock and is persisted before any
    event fires, so the new state is observable before the worker is
    notified. Handler failures are logged by the emitter and never undo
    the state change.

    With a ledger attached, resolved_at is strictly after the worker's
    last payout.
    """

    def __init__(
        self,
        repository: AdvanceRepository,
        locks: WorkerLockRegistry,
        emitter: AsyncEventEmitter | None = None,
        policy: AdvancePolicy = DEFAULT_ADVANCE_POLICY,
        clock: Callable[[], datetime] = utcnow,
        ledger: PayoutLedger | None = None,
    ):
        self.repository = repository
        self.locks = locks
        self.emitter = emitter
        self.policy = policy
        self.clock = clock
        self.ledger = ledger

    async def submit(
        self,
        worker_id: str,
        amount: Decimal | int | str,
        reason: str | None = None,
    ) -> Advance:
        """Submit a new advance request in pending status.

        Raises:
            ValidationError: blank worker, amount <= 0 or above the maximum
        """
        if not isinstance(worker_id, str) or not worker_id.strip():
            raise ValidationError("worker_id is required", field="worker_id")
        value = to_money(amount)
        if value <= 0:
            raise ValidationError(f"amount must be greater than zero, got {value}", field="amount")
        if value > self.policy.max_amount:
            raise ValidationError(
                f"amount {value} exceeds the maximum advance of {self.policy.max_amount}",
                field="amount",
            )

        advance = Advance(
            worker_id=worker_id,
            amount=value,
            requested_at=self.clock(),
            reason=reason or None,
        )
        await self.repository.add(advance)
        logger.info("Advance %s submitted by %s for %s", advance.id, worker_id, value)

        await self._emit(
            AdvanceSubmitted(
                metadata=EventMetadata.create(actor_id=worker_id, actor_type="user"),
                advance_id=advance.id,
                worker_id=worker_id,
                amount=value,
                reason=advance.reason,
            )
        )
        return advance

    async def approve(self, advance_id: UUID, approver_id: str) -> Advance:
        """Approve a pending advance.

        Raises:
            NotFound: unknown advance id
            InvalidStateTransition: the advance is not pending
        """
        advance = await self._resolve(advance_id, approver_id, AdvanceStatus.APPROVED)
        await self._emit(
            AdvanceApproved(
                metadata=EventMetadata.create(actor_id=approver_id, actor_type="user"),
                advance_id=advance.id,
                worker_id=advance.worker_id,
                amount=advance.amount,
                approved_by=approver_id,
                resolved_at=advance.resolved_at,
            )
        )
        return advance

    async def reject(
        self, advance_id: UUID, approver_id: str, note: str | None = None
    ) -> Advance:
        """Reject a pending advance.

        Raises:
            NotFound: unknown advance id
            InvalidStateTransition: the advance is not pending
        """
        advance = await self._resolve(
            advance_id, approver_id, AdvanceStatus.REJECTED, note=note
        )
        await self._emit(
            AdvanceRejected(
                metadata=EventMetadata.create(actor_id=approver_id, actor_type="user"),
                advance_id=advance.id,
                worker_id=advance.worker_id,
                amount=advance.amount,
                rejected_by=approver_id,
                resolved_at=advance.resolved_at,
                note=advance.resolution_note,
            )
        )
        return advance

    async def get(self, advance_id: UUID) -> Advance:
        """Fetch one advance, raising NotFound if unknown."""
        advance = await self.repository.get(advance_id)
        if advance is None:
            raise NotFound("Advance", advance_id)
        return advance

    async def list_pending(self) -> list[Advance]:
        """Pending advances for the review queue, oldest first."""
        return await self.repository.list_by_status(AdvanceStatus.PENDING)

    async def advances_for_worker(self, worker_id: str) -> list[Advance]:
        """All advances of a worker, newest first."""
        return await self.repository.list_for_worker(worker_id)

    async def approved_total_since(
        self, worker_id: str, window_start: datetime | None
    ) -> Decimal:
        """Sum of approved advances resolved after window_start.

        Uses the calculator's window predicate, so this is exactly the
        advance deduction of the worker's next settlement.
        """
        window_start = to_utc(window_start, "window_start")
        advances = await self.repository.list_for_worker(worker_id)
        return sum(
            (
                a.amount
                for a in advances
                if AdvanceStateMachine.is_deductible(a.status)
                and in_window(a.resolved_at, window_start)
            ),
            ZERO,
        )

    async def _resolve(
        self,
        advance_id: UUID,
        approver_id: str,
        to_status: AdvanceStatus,
        note: str | None = None,
    ) -> Advance:
        if not isinstance(approver_id, str) or not approver_id.strip():
            raise ValidationError("approver_id is required", field="approver_id")

        advance = await self.get(advance_id)
        async with self.locks.hold(advance.worker_id):
            # Re-read under the lock; a concurrent resolution may have won.
            current = await self.get(advance_id)
            AdvanceStateMachine.validate_transition(current.status, to_status)
            resolved = replace(
                current,
                status=to_status,
                resolved_at=await self._resolution_time(current.worker_id),
                resolved_by=approver_id,
                resolution_note=note or None,
            )
            await self.repository.save(resolved)

        logger.info(
            "Advance %s %s by %s", resolved.id, to_status.value, approver_id
        )
        return resolved

    async def _resolution_time(self, worker_id: str) -> datetime:
        now = self.clock()
        if self.ledger is None:
            return now
        last_paid_at = await self.ledger.last_payout_time(worker_id)
        if last_paid_at is not None and now <= last_paid_at:
            bumped = last_paid_at + RESOLUTION_STEP
            logger.warning(
                "Clock %s is not after the last payout %s for worker %s; resolving at %s",
                now.isoformat(),
                last_paid_at.isoformat(),
                worker_id,
                bumped.isoformat(),
            )
            return bumped
        return now

    async def _emit(self, event: DomainEvent) -> None:
        if self.emitter is None:
            return
        errors = await self.emitter.emit(event)
        if errors:
            logger.warning(
                "%d handler(s) failed for %s; state change kept",
                len(errors),
                event.event_type,
            )
