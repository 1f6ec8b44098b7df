"""Payout ledger - append-only record of executed payments.

Provides:
- Durable append of payout entries (no updates, no deletes)
- Last payout time per worker, the sole authority for settlement windows
- Payout history queries
"""

from __future__ import annotations

from datetime import datetime

from payout_engine.calculators.types import PayoutLedgerEntry
from payout_engine.sources.base import LedgerRepository


class PayoutLedger:
    """Append-only payout ledger.

    Notes:
    - Entries are frozen; the stored breakdown is the snapshot at
      confirmation time, even if source data changes later.
    - max(paid_at) per worker starts the worker's next window. It is never
      derived from any other timestamp.
    """

    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def append(self, entry: PayoutLedgerEntry) -> PayoutLedgerEntry:
        """Append an entry. Returns once the repository has persisted it."""
        await self.repository.persist_ledger_entry(entry)
        return entry

    async def last_payout_time(self, worker_id: str) -> datetime | None:
        """Max paid_at across the worker's entries, or None."""
        return await self.repository.last_paid_at(worker_id)

    async def last_entry(self, worker_id: str) -> PayoutLedgerEntry | None:
        """The worker's most recent payout, or None."""
        entries = await self.repository.entries_for_worker(worker_id)
        return entries[0] if entries else None

    async def history(self, worker_id: str) -> list[PayoutLedgerEntry]:
        """The worker's payouts, newest first."""
        return await self.repository.entries_for_worker(worker_id)

    async def all_history(self) -> list[PayoutLedgerEntry]:
        """Every payout, newest first."""
        return await self.repository.all_entries()
