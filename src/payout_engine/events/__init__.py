"""Domain events package.

This package provides:
- Typed domain events for advance and payout operations
- An async event emitter with handler isolation
- Worker notification handlers and a structured event log
"""

from payout_engine.events.audit import EventLogHandler
from payout_engine.events.emitter import AsyncEventEmitter
from payout_engine.events.notifications import LoggingNotifier, WorkerNotificationHandler
from payout_engine.events.types import (
    AdvanceApproved,
    AdvanceRejected,
    AdvanceSubmitted,
    DomainEvent,
    EventCategory,
    EventMetadata,
    PayoutRegistered,
    SettlementExcluded,
)

__all__ = [
    "AsyncEventEmitter",
    "EventLogHandler",
    "LoggingNotifier",
    "WorkerNotificationHandler",
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    "AdvanceSubmitted",
    "AdvanceApproved",
    "AdvanceRejected",
    "PayoutRegistered",
    "SettlementExcluded",
]
