"""Cash-advance state machine with transition validation."""

from __future__ import annotations

from payout_engine.calculators.types import AdvanceStatus
from payout_engine.exceptions import InvalidStateTransition


def _coerce(status: str) -> AdvanceStatus | None:
    try:
        return AdvanceStatus(status)
    except ValueError:
        return None


class AdvanceStateMachine:
    """State machine for cash-advance status transitions.

    Allowed transitions:
    - pending → approved
    - pending → rejected

    Approved and rejected are terminal; an advance is never re-opened.
    """

    VALID_TRANSITIONS: dict[AdvanceStatus, list[AdvanceStatus]] = {
        AdvanceStatus.PENDING: [AdvanceStatus.APPROVED, AdvanceStatus.REJECTED],
        AdvanceStatus.APPROVED: [],
        AdvanceStatus.REJECTED: [],
    }

    # Statuses that count against a settlement
    DEDUCTIBLE = frozenset({AdvanceStatus.APPROVED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.get_next_statuses(from_status)
        return _coerce(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidStateTransition if invalid."""
        if cls.can_transition(from_status, to_status):
            return
        current = _coerce(from_status)
        reason = None
        if current is None:
            reason = f"unknown status '{from_status}'"
        elif cls.is_terminal(current):
            reason = f"advance was already {current.value}"
        target = _coerce(to_status)
        raise InvalidStateTransition(
            current.value if current else str(from_status),
            target.value if target else str(to_status),
            reason,
        )

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        current = _coerce(status)
        return current is not None and not cls.VALID_TRANSITIONS[current]

    @classmethod
    def is_deductible(cls, status: str) -> bool:
        """Check if an advance in this status is deducted from settlements."""
        return _coerce(status) in cls.DEDUCTIBLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[AdvanceStatus]:
        """Get list of valid next statuses from current status."""
        current = _coerce(current_status)
        if current is None:
            return []
        return list(cls.VALID_TRANSITIONS[current])
