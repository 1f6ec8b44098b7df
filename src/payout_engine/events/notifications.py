"""Worker notifications driven by domain events.

Delivery itself is external (push, email, in-app). This module only
shapes the payload and calls ``WorkerNotifier.notify_worker``.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.types import (
    AdvanceApproved,
    AdvanceRejected,
    DomainEvent,
    PayoutRegistered,
)
from payout_engine.sources.base import WorkerNotifier

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_NOTE = "Request denied by administration"
PAYOUT_CONCEPT = "Service settlement"


class LoggingNotifier:
    """Notifier that only logs. Default when no delivery channel is wired."""

    async def notify_worker(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("notify %s: %s", event, payload)


class WorkerNotificationHandler:
    """Translates domain events into worker notifications.

    Failures propagate to the emitter, which logs and isolates them; they
    never reach the operation that emitted the event.
    """

    def __init__(self, notifier: WorkerNotifier, payment_delay: timedelta = timedelta(days=1)):
        self.notifier = notifier
        self.payment_delay = payment_delay

    def register(self, emitter: AsyncEventEmitter) -> None:
        """Subscribe to the events that notify workers."""
        emitter.on([AdvanceApproved, AdvanceRejected, PayoutRegistered], self)

    async def __call__(self, event: DomainEvent) -> None:
        if isinstance(event, AdvanceApproved):
            await self._advance_approved(event)
        elif isinstance(event, AdvanceRejected):
            await self._advance_rejected(event)
        elif isinstance(event, PayoutRegistered):
            await self._payout_registered(event)

    async def _advance_approved(self, event: AdvanceApproved) -> None:
        payment_date = (event.resolved_at + self.payment_delay).date()
        await self.notifier.notify_worker(
            "advance_approved",
            {
                "worker_id": event.worker_id,
                "amount": str(event.amount),
                "payment_date": payment_date.isoformat(),
                "title": "Advance approved",
                "message": (
                    f"Your advance request of ${event.amount:,} has been approved. "
                    f"You will receive the payment on {payment_date.isoformat()}"
                ),
                "priority": "high",
            },
        )

    async def _advance_rejected(self, event: AdvanceRejected) -> None:
        note = event.note or DEFAULT_REJECTION_NOTE
        await self.notifier.notify_worker(
            "advance_rejected",
            {
                "worker_id": event.worker_id,
                "amount": str(event.amount),
                "reason": note,
                "title": "Advance rejected",
                "message": f"Your advance request of ${event.amount:,} has been rejected: {note}",
                "priority": "high",
            },
        )

    async def _payout_registered(self, event: PayoutRegistered) -> None:
        await self.notifier.notify_worker(
            "payment_received",
            {
                "worker_id": event.worker_id,
                "amount": str(event.amount),
                "concept": PAYOUT_CONCEPT,
                "method": event.method,
                "title": "Payment received",
                "message": (
                    f"You have received ${event.amount:,} for {PAYOUT_CONCEPT.lower()} "
                    f"({event.method})"
                ),
                "priority": "high",
            },
        )
