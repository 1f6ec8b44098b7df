"""Per-worker locking for advance resolution and payout registration."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class WorkerLockRegistry:
    """Hands out one lock per worker.

    An advance approval/rejection and a payout registration for the same
    worker are serialized, so a payout is never confirmed while one of the
    worker's advances is mid-transition. Operations on different workers
    never contend.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, worker_id: str) -> asyncio.Lock:
        """Get (creating on first use) the lock for a worker."""
        lock = self._locks.get(worker_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[worker_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, worker_id: str) -> AsyncIterator[None]:
        """Hold the worker's lock for the duration of the block."""
        async with self.lock_for(worker_id):
            yield

    def is_locked(self, worker_id: str) -> bool:
        """Check whether the worker's lock is currently held."""
        lock = self._locks.get(worker_id)
        return lock is not None and lock.locked()
