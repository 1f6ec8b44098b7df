"""Tests for cash-advance state machine."""

import pytest

from payout_engine.calculators.types import AdvanceStatus
from payout_engine.exceptions import InvalidStateTransition
from payout_engine.services.state_machine import AdvanceStateMachine


class TestAdvanceStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # pending → approved
        assert AdvanceStateMachine.can_transition("pending", "approved") is True

        # pending → rejected
        assert AdvanceStateMachine.can_transition("pending", "rejected") is True

        # Enum members work the same as raw values
        assert AdvanceStateMachine.can_transition(
            AdvanceStatus.PENDING, AdvanceStatus.APPROVED
        ) is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Resolved advances are never re-opened
        assert AdvanceStateMachine.can_transition("approved", "pending") is False
        assert AdvanceStateMachine.can_transition("rejected", "pending") is False

        # A decision is final
        assert AdvanceStateMachine.can_transition("approved", "rejected") is False
        assert AdvanceStateMachine.can_transition("rejected", "approved") is False
        assert AdvanceStateMachine.can_transition("approved", "approved") is False

        # Unknown statuses
        assert AdvanceStateMachine.can_transition("pending", "paid") is False
        assert AdvanceStateMachine.can_transition("draft", "approved") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidStateTransition) as exc_info:
            AdvanceStateMachine.validate_transition(AdvanceStatus.APPROVED, AdvanceStatus.APPROVED)

        assert exc_info.value.from_status == "approved"
        assert exc_info.value.to_status == "approved"
        assert exc_info.value.code == "INVALID_STATE_TRANSITION"
        assert "already approved" in str(exc_info.value)

    def test_validate_transition_unknown_status(self):
        with pytest.raises(InvalidStateTransition, match="unknown status 'draft'"):
            AdvanceStateMachine.validate_transition("draft", "approved")

    def test_validate_transition_allows_valid(self):
        AdvanceStateMachine.validate_transition("pending", "rejected")

    def test_terminal_statuses(self):
        assert AdvanceStateMachine.is_terminal("pending") is False
        assert AdvanceStateMachine.is_terminal("approved") is True
        assert AdvanceStateMachine.is_terminal(AdvanceStatus.REJECTED) is True

    def test_only_approved_is_deductible(self):
        assert AdvanceStateMachine.is_deductible("approved") is True
        assert AdvanceStateMachine.is_deductible(AdvanceStatus.APPROVED) is True
        assert AdvanceStateMachine.is_deductible("pending") is False
        assert AdvanceStateMachine.is_deductible("rejected") is False

    def test_get_next_statuses(self):
        """Test getting valid next statuses."""
        assert set(AdvanceStateMachine.get_next_statuses("pending")) == {
            AdvanceStatus.APPROVED,
            AdvanceStatus.REJECTED,
        }
        assert AdvanceStateMachine.get_next_statuses("approved") == []
        assert AdvanceStateMachine.get_next_statuses("nonsense") == []
