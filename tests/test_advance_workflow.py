"""Tests for the cash-advance approval workflow."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from payout_engine.calculators.types import AdvanceStatus
from payout_engine.config import AdvancePolicy
from payout_engine.events.notifications import WorkerNotificationHandler
from payout_engine.events.types import AdvanceApproved, AdvanceRejected, AdvanceSubmitted
from payout_engine.exceptions import InvalidStateTransition, NotFound, ValidationError
from payout_engine.services.advance_service import AdvanceWorkflow

from factories import T0, WORKER, FailingNotifier, RecordingNotifier, service

pytestmark = pytest.mark.asyncio


class TestSubmit:
    """Test advance submission and its validation."""

    async def test_submit_creates_pending_advance(self, workflow, store):
        advance = await workflow.submit(WORKER, Decimal("30000"), reason="rent")

        assert advance.status == AdvanceStatus.PENDING
        assert advance.amount == Decimal("30000")
        assert advance.requested_at == T0
        assert advance.resolved_at is None
        assert await store.get(advance.id) == advance

    async def test_accepts_string_amount(self, workflow):
        advance = await workflow.submit(WORKER, "1500.50")
        assert advance.amount == Decimal("1500.50")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    async def test_rejects_non_positive_amount(self, workflow, amount):
        with pytest.raises(ValidationError, match="greater than zero"):
            await workflow.submit(WORKER, amount)

    async def test_rejects_amount_over_maximum(self, workflow):
        with pytest.raises(ValidationError) as exc_info:
            await workflow.submit(WORKER, Decimal("60000"))

        assert "exceeds the maximum advance of 50000" in str(exc_info.value)
        assert exc_info.value.field == "amount"

    async def test_maximum_itself_is_allowed(self, workflow):
        advance = await workflow.submit(WORKER, Decimal("50000"))
        assert advance.amount == Decimal("50000")

    async def test_maximum_is_configurable(self, store, locks, clock):
        workflow = AdvanceWorkflow(
            store, locks, policy=AdvancePolicy(max_amount=Decimal("100")), clock=clock
        )
        with pytest.raises(ValidationError):
            await workflow.submit(WORKER, Decimal("100.01"))

    async def test_rejects_float_amount(self, workflow):
        with pytest.raises(ValidationError):
            await workflow.submit(WORKER, 100.5)

    async def test_rejects_blank_worker(self, workflow):
        with pytest.raises(ValidationError):
            await workflow.submit("  ", Decimal("10"))

    async def test_submit_emits_event(self, workflow, emitter):
        received = []

        async def handler(event):
            received.append(event)

        emitter.on(AdvanceSubmitted, handler)
        advance = await workflow.submit(WORKER, Decimal("10"))

        assert len(received) == 1
        assert received[0].advance_id == advance.id


class TestResolution:
    """Test approval and rejection."""

    async def test_approve(self, workflow, clock):
        advance = await workflow.submit(WORKER, Decimal("30000"))
        clock.advance(timedelta(hours=2))

        approved = await workflow.approve(advance.id, "admin1")

        assert approved.status == AdvanceStatus.APPROVED
        assert approved.resolved_by == "admin1"
        assert approved.resolved_at == T0 + timedelta(hours=2)
        assert (await workflow.get(advance.id)).status == AdvanceStatus.APPROVED

    async def test_approve_twice_fails(self, workflow):
        advance = await workflow.submit(WORKER, Decimal("30000"))
        await workflow.approve(advance.id, "admin1")

        with pytest.raises(InvalidStateTransition, match="already approved"):
            await workflow.approve(advance.id, "admin2")

    async def test_reject_then_approve_fails(self, workflow):
        advance = await workflow.submit(WORKER, Decimal("100"))
        await workflow.reject(advance.id, "admin1", note="too frequent")

        with pytest.raises(InvalidStateTransition):
            await workflow.approve(advance.id, "admin1")

        current = await workflow.get(advance.id)
        assert current.status == AdvanceStatus.REJECTED
        assert current.resolution_note == "too frequent"

    async def test_unknown_advance(self, workflow):
        with pytest.raises(NotFound):
            await workflow.approve(uuid4(), "admin1")

    async def test_blank_approver_rejected(self, workflow):
        advance = await workflow.submit(WORKER, Decimal("100"))
        with pytest.raises(ValidationError):
            await workflow.approve(advance.id, "")

    async def test_concurrent_resolutions_exactly_one_wins(self, workflow):
        advance = await workflow.submit(WORKER, Decimal("100"))

        results = await asyncio.gather(
            workflow.approve(advance.id, "admin1"),
            workflow.reject(advance.id, "admin2"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, InvalidStateTransition)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert (await workflow.get(advance.id)).status == winners[0].status

    async def test_resolution_events(self, workflow, emitter):
        received = []

        async def handler(event):
            received.append(event)

        emitter.on([AdvanceApproved, AdvanceRejected], handler)
        first = await workflow.submit(WORKER, Decimal("10"))
        second = await workflow.submit(WORKER, Decimal("20"))
        await workflow.approve(first.id, "admin1")
        await workflow.reject(second.id, "admin1")

        assert [type(e) for e in received] == [AdvanceApproved, AdvanceRejected]
        assert received[0].approved_by == "admin1"
        assert received[1].note is None


class TestPayoutOrdering:
    """Test that resolutions are stamped after the worker's last payout."""

    async def test_approval_at_payout_instant_is_deducted_next_window(
        self, workflow, orchestrator, store, clock
    ):
        store.add_service(service("100000", T0 - timedelta(hours=1)))
        advance = await workflow.submit(WORKER, Decimal("30000"))
        entry = await orchestrator.register_payout(
            WORKER, await orchestrator.preview(WORKER), "admin1", "cash"
        )
        assert entry.amount == Decimal("50000")

        # Same clock reading as the payout.
        approved = await workflow.approve(advance.id, "admin1")
        assert approved.resolved_at > entry.paid_at

        clock.advance()
        store.add_service(service("100000", clock() - timedelta(seconds=30)))
        result = await orchestrator.preview(WORKER)

        assert result.advances.amount == Decimal("30000")
        assert result.total_payable == Decimal("20000")

    async def test_clock_behind_last_payout(self, workflow, orchestrator, store, clock):
        store.add_service(service("100", T0 - timedelta(hours=1)))
        entry = await orchestrator.register_payout(
            WORKER, await orchestrator.preview(WORKER), "admin1", "cash"
        )
        advance = await workflow.submit(WORKER, Decimal("40"))

        clock.set(T0 - timedelta(seconds=5))
        approved = await workflow.approve(advance.id, "admin1")

        assert approved.resolved_at == entry.paid_at + timedelta(microseconds=1)
        assert await workflow.approved_total_since(WORKER, entry.paid_at) == Decimal("40")

    async def test_without_payouts_clock_is_used(self, workflow, clock):
        advance = await workflow.submit(WORKER, Decimal("10"))
        approved = await workflow.approve(advance.id, "admin1")
        assert approved.resolved_at == clock()


class TestNotifications:
    """Test that notification failures never undo a resolution."""

    async def test_failing_notifier_does_not_roll_back_approval(self, workflow, emitter, store):
        notifier = FailingNotifier()
        WorkerNotificationHandler(notifier).register(emitter)

        advance = await workflow.submit(WORKER, Decimal("500"))
        approved = await workflow.approve(advance.id, "admin1")

        assert notifier.attempts == 1
        assert approved.status == AdvanceStatus.APPROVED
        assert (await store.get(advance.id)).status == AdvanceStatus.APPROVED

    async def test_approval_notification_payload(self, workflow, emitter):
        notifier = RecordingNotifier()
        WorkerNotificationHandler(notifier).register(emitter)

        advance = await workflow.submit(WORKER, Decimal("30000"))
        await workflow.approve(advance.id, "admin1")

        [(event, payload)] = notifier.sent
        assert event == "advance_approved"
        assert payload["worker_id"] == WORKER
        assert payload["amount"] == "30000"
        assert payload["payment_date"] == (T0 + timedelta(days=1)).date().isoformat()

    async def test_rejection_uses_default_reason(self, workflow, emitter):
        notifier = RecordingNotifier()
        WorkerNotificationHandler(notifier).register(emitter)

        advance = await workflow.submit(WORKER, Decimal("100"))
        await workflow.reject(advance.id, "admin1")

        [(event, payload)] = notifier.sent
        assert event == "advance_rejected"
        assert payload["reason"] == "Request denied by administration"


class TestQueries:
    """Test listing and totals."""

    async def test_list_pending_oldest_first(self, workflow, clock):
        first = await workflow.submit("w1", Decimal("10"))
        clock.advance()
        second = await workflow.submit("w2", Decimal("20"))
        clock.advance()
        third = await workflow.submit("w1", Decimal("30"))
        await workflow.approve(third.id, "admin1")

        pending = await workflow.list_pending()
        assert [a.id for a in pending] == [first.id, second.id]

    async def test_advances_for_worker_newest_first(self, workflow, clock):
        first = await workflow.submit(WORKER, Decimal("10"))
        clock.advance()
        second = await workflow.submit(WORKER, Decimal("20"))
        await workflow.submit("someone-else", Decimal("30"))

        advances = await workflow.advances_for_worker(WORKER)
        assert [a.id for a in advances] == [second.id, first.id]

    async def test_approved_total_since(self, workflow, clock):
        early = await workflow.submit(WORKER, Decimal("10"))
        await workflow.approve(early.id, "admin1")
        cutoff = clock()
        clock.advance()
        late = await workflow.submit(WORKER, Decimal("25"))
        await workflow.approve(late.id, "admin1")
        pending = await workflow.submit(WORKER, Decimal("99"))

        assert pending.status == AdvanceStatus.PENDING
        assert await workflow.approved_total_since(WORKER, None) == Decimal("35")
        assert await workflow.approved_total_since(WORKER, cutoff) == Decimal("25")
