"""Storage adapters behind the collaborator protocols."""

from payout_engine.sources.base import (
    AdvanceRepository,
    LedgerRepository,
    SourceFeeds,
    WorkerNotifier,
)
from payout_engine.sources.memory import InMemoryStore

__all__ = [
    "AdvanceRepository",
    "LedgerRepository",
    "SourceFeeds",
    "WorkerNotifier",
    "InMemoryStore",
]
