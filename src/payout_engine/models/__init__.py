"""SQLAlchemy ORM models for the payout engine."""

from payout_engine.models.base import Base, TimestampMixin, UTCDateTime
from payout_engine.models.settlement import (
    CashAdvance,
    CompletedService,
    PayoutEntry,
    StorePurchase,
    WorkerFine,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "CashAdvance",
    "CompletedService",
    "PayoutEntry",
    "StorePurchase",
    "WorkerFine",
]
