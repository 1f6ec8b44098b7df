"""Collaborator interfaces consumed by the settlement engine.

Each storage backend has its own adapter implementing these protocols.
The engine uses them without knowing how records are stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from payout_engine.calculators.types import (
    Advance,
    AdvanceStatus,
    Fine,
    PayoutLedgerEntry,
    Purchase,
    ServiceRecord,
)


class SourceFeeds(Protocol):
    """Read-only revenue and deduction feeds.

    Every fetch returns records for one worker with a timestamp strictly
    after ``since`` (all records when ``since`` is None). A fetch that
    cannot complete raises SourceUnavailable.
    """

    async def fetch_services_since(
        self, worker_id: str, since: datetime | None
    ) -> list[ServiceRecord]:
        """Completed services, by completed_at."""
        ...

    async def fetch_purchases_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Purchase]:
        """Store purchases, by occurred_at."""
        ...

    async def fetch_active_fines_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Fine]:
        """Active fines, by created_at."""
        ...

    async def fetch_approved_advances_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Advance]:
        """Approved advances, by resolved_at."""
        ...


class AdvanceRepository(Protocol):
    """Storage for cash-advance requests."""

    async def add(self, advance: Advance) -> None:
        """Persist a new advance."""
        ...

    async def get(self, advance_id: UUID) -> Advance | None:
        """Fetch one advance, or None if unknown."""
        ...

    async def save(self, advance: Advance) -> None:
        """Persist a resolved advance (latest write wins)."""
        ...

    async def list_by_status(self, status: AdvanceStatus) -> list[Advance]:
        """All advances in a status, oldest request first."""
        ...

    async def list_for_worker(self, worker_id: str) -> list[Advance]:
        """All advances of a worker, newest request first."""
        ...


class LedgerRepository(Protocol):
    """Append-only storage for payout ledger entries."""

    async def persist_ledger_entry(self, entry: PayoutLedgerEntry) -> None:
        """Append an entry. Must be durable before returning."""
        ...

    async def entries_for_worker(self, worker_id: str) -> list[PayoutLedgerEntry]:
        """All entries of a worker, newest first."""
        ...

    async def all_entries(self) -> list[PayoutLedgerEntry]:
        """All entries, newest first."""
        ...

    async def last_paid_at(self, worker_id: str) -> datetime | None:
        """Max paid_at for the worker, or None."""
        ...


class WorkerNotifier(Protocol):
    """Delivers notifications to workers (push, email, in-app)."""

    async def notify_worker(self, event: str, payload: dict[str, Any]) -> None:
        """Fire-and-forget delivery. May raise; callers log and move on."""
        ...
