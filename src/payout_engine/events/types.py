"""Domain event types for advance and payout operations.

All events are:
- Immutable (frozen dataclasses)
- Typed with explicit payloads
- Traceable via metadata
- Serializable for logging and notification delivery
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    ADVANCE = "advance"
    PAYOUT = "payout"
    SETTLEMENT = "settlement"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID  # Links related events
    actor_id: str | None  # User or system that triggered
    actor_type: str  # 'user', 'system'
    source_service: str  # Service that emitted
    version: int = 1  # Schema version for evolution

    @classmethod
    def create(
        cls,
        correlation_id: UUID | None = None,
        actor_id: str | None = None,
        actor_type: str = "system",
        source_service: str = "payout_engine",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        return _serialize_dict(asdict(self))

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


# =============================================================================
# Advance Events
# =============================================================================


@dataclass(frozen=True)
class AdvanceSubmitted(DomainEvent):
    """A worker requested a cash advance."""

    advance_id: UUID
    worker_id: str
    amount: Decimal
    reason: str | None

    @property
    def category(self) -> EventCategory:
        return EventCategory.ADVANCE


@dataclass(frozen=True)
class AdvanceApproved(DomainEvent):
    """A pending advance was approved. It now counts against the next payout."""

    advance_id: UUID
    worker_id: str
    amount: Decimal
    approved_by: str
    resolved_at: datetime

    @property
    def category(self) -> EventCategory:
        return EventCategory.ADVANCE


@dataclass(frozen=True)
class AdvanceRejected(DomainEvent):
    """A pending advance was rejected."""

    advance_id: UUID
    worker_id: str
    amount: Decimal
    rejected_by: str
    resolved_at: datetime
    note: str | None

    @property
    def category(self) -> EventCategory:
        return EventCategory.ADVANCE


# =============================================================================
# Payout / Settlement Events
# =============================================================================


@dataclass(frozen=True)
class PayoutRegistered(DomainEvent):
    """A payout was appended to the ledger."""

    entry_id: UUID
    worker_id: str
    amount: Decimal
    method: str
    paid_at: datetime
    period_start: datetime | None

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYOUT


@dataclass(frozen=True)
class SettlementExcluded(DomainEvent):
    """A worker was left out of a settlement batch (failed closed)."""

    worker_id: str
    reason: str
    code: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.SETTLEMENT
