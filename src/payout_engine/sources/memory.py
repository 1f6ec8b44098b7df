"""In-memory adapters for feeds, advances and the payout ledger.

Holds the same provider state the admin console keeps client-side, behind
the collaborator protocols. Used by tests and demos.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from payout_engine.calculators.settlement import in_window
from payout_engine.calculators.types import (
    Advance,
    AdvanceStatus,
    Fine,
    FineStatus,
    PayoutLedgerEntry,
    Purchase,
    ServiceRecord,
)
from payout_engine.exceptions import StaleSettlement


class InMemoryStore:
    """Implements SourceFeeds, AdvanceRepository and LedgerRepository."""

    def __init__(self) -> None:
        self.services: list[ServiceRecord] = []
        self.purchases: list[Purchase] = []
        self.fines: list[Fine] = []
        self._advances: dict[UUID, Advance] = {}
        self._ledger: list[PayoutLedgerEntry] = []

    # === Seeding ===

    def add_service(self, record: ServiceRecord) -> None:
        self.services.append(record)

    def add_purchase(self, purchase: Purchase) -> None:
        self.purchases.append(purchase)

    def add_fine(self, fine: Fine) -> None:
        self.fines.append(fine)

    # === SourceFeeds ===

    async def fetch_services_since(
        self, worker_id: str, since: datetime | None
    ) -> list[ServiceRecord]:
        return [
            s for s in self.services
            if s.worker_id == worker_id and in_window(s.completed_at, since)
        ]

    async def fetch_purchases_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Purchase]:
        return [
            p for p in self.purchases
            if p.worker_id == worker_id and in_window(p.occurred_at, since)
        ]

    async def fetch_active_fines_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Fine]:
        return [
            f for f in self.fines
            if f.worker_id == worker_id
            and f.status == FineStatus.ACTIVE
            and in_window(f.created_at, since)
        ]

    async def fetch_approved_advances_since(
        self, worker_id: str, since: datetime | None
    ) -> list[Advance]:
        return [
            a for a in self._advances.values()
            if a.worker_id == worker_id
            and a.status == AdvanceStatus.APPROVED
            and in_window(a.resolved_at, since)
        ]

    # === AdvanceRepository ===

    async def add(self, advance: Advance) -> None:
        if advance.id in self._advances:
            raise ValueError(f"Advance {advance.id} already exists")
        self._advances[advance.id] = advance

    async def get(self, advance_id: UUID) -> Advance | None:
        return self._advances.get(advance_id)

    async def save(self, advance: Advance) -> None:
        self._advances[advance.id] = advance

    async def list_by_status(self, status: AdvanceStatus) -> list[Advance]:
        return sorted(
            (a for a in self._advances.values() if a.status == status),
            key=lambda a: a.requested_at,
        )

    async def list_for_worker(self, worker_id: str) -> list[Advance]:
        return sorted(
            (a for a in self._advances.values() if a.worker_id == worker_id),
            key=lambda a: a.requested_at,
            reverse=True,
        )

    # === LedgerRepository ===

    async def persist_ledger_entry(self, entry: PayoutLedgerEntry) -> None:
        for existing in self._ledger:
            if (existing.worker_id, existing.period_start) == (entry.worker_id, entry.period_start):
                raise StaleSettlement(
                    entry.worker_id, f"window already paid by payout {existing.id}"
                )
        self._ledger.append(entry)

    async def entries_for_worker(self, worker_id: str) -> list[PayoutLedgerEntry]:
        return sorted(
            (e for e in self._ledger if e.worker_id == worker_id),
            key=lambda e: e.paid_at,
            reverse=True,
        )

    async def all_entries(self) -> list[PayoutLedgerEntry]:
        return sorted(self._ledger, key=lambda e: e.paid_at, reverse=True)

    async def last_paid_at(self, worker_id: str) -> datetime | None:
        paid = [e.paid_at for e in self._ledger if e.worker_id == worker_id]
        return max(paid) if paid else None
