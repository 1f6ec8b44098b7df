"""API endpoint tests.

Runs the FastAPI app against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import warnings

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from payout_engine.api.app import create_app
from payout_engine.api.errors import status_code_for
from payout_engine.config import AdvancePolicy, Settings
from payout_engine.exceptions import (
    InconsistentState,
    InvalidStateTransition,
    SourceUnavailable,
    StaleSettlement,
    ValidationError,
)
from payout_engine.models import CompletedService, StorePurchase, WorkerFine

from factories import RecordingNotifier

pytestmark = pytest.mark.asyncio

WORKER = "worker-1"


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(session_factory, notifier):
    settings = Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        advances=AdvancePolicy(max_amount=Decimal("50000")),
    )
    return create_app(settings=settings, session_factory=session_factory, notifier=notifier)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def seeded(session):
    """One worker with a service and an out-of-service purchase."""
    an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    session.add_all(
        [
            CompletedService(
                worker_id=WORKER, base_amount=Decimal("100000"), completed_at=an_hour_ago
            ),
            StorePurchase(
                worker_id=WORKER,
                total_amount=Decimal("20000"),
                during_service=False,
                occurred_at=an_hour_ago,
            ),
            CompletedService(
                worker_id="worker-2", base_amount=Decimal("10000"), completed_at=an_hour_ago
            ),
            WorkerFine(
                worker_id="worker-3", amount=Decimal("500"), status="active", issued_at=an_hour_ago
            ),
        ]
    )
    await session.commit()
    return session


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["version"] == "test"

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestAdvanceEndpoints:
    """Test the advance approval workflow over HTTP."""

    async def submit(self, client, amount="30000", worker_id=WORKER):
        response = await client.post(
            "/api/v1/advances",
            json={"worker_id": worker_id, "amount": amount, "reason": "rent"},
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def test_submit_advance(self, client: AsyncClient):
        data = await self.submit(client)

        assert data["status"] == "pending"
        assert Decimal(data["amount"]) == Decimal("30000")
        assert data["resolved_at"] is None

    async def test_submit_over_maximum(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/advances", json={"worker_id": WORKER, "amount": "60000"}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "exceeds the maximum advance" in body["detail"]

    async def test_malformed_request(self, client: AsyncClient):
        response = await client.post("/api/v1/advances", json={"amount": "10"})

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    async def test_approve_then_approve_again(self, client: AsyncClient, notifier):
        advance = await self.submit(client)

        response = await client.post(
            f"/api/v1/advances/{advance['id']}/approve", json={"approver_id": "admin1"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert response.json()["resolved_by"] == "admin1"
        assert [event for event, _ in notifier.sent] == ["advance_approved"]

        response = await client.post(
            f"/api/v1/advances/{advance['id']}/approve", json={"approver_id": "admin1"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"

    async def test_reject(self, client: AsyncClient):
        advance = await self.submit(client)

        response = await client.post(
            f"/api/v1/advances/{advance['id']}/reject",
            json={"approver_id": "admin1", "note": "too soon"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["resolution_note"] == "too soon"

    async def test_unknown_advance(self, client: AsyncClient):
        response = await client.post(
            f"/api/v1/advances/{uuid4()}/approve", json={"approver_id": "admin1"}
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_listing(self, client: AsyncClient):
        first = await self.submit(client, amount="10")
        await self.submit(client, amount="20", worker_id="worker-2")
        await client.post(
            f"/api/v1/advances/{first['id']}/approve", json={"approver_id": "admin1"}
        )

        pending = (await client.get("/api/v1/advances/pending")).json()
        assert [a["worker_id"] for a in pending] == ["worker-2"]

        mine = (await client.get(f"/api/v1/workers/{WORKER}/advances")).json()
        assert [a["id"] for a in mine] == [first["id"]]

        single = (await client.get(f"/api/v1/advances/{first['id']}")).json()
        assert single["status"] == "approved"


class TestSettlementEndpoints:
    """Test preview, payout and history over HTTP."""

    async def test_preview(self, client: AsyncClient, seeded):
        response = await client.get(f"/api/v1/workers/{WORKER}/settlement")
        assert response.status_code == 200

        data = response.json()
        assert data["window_start"] is None
        assert Decimal(data["subtotal"]) == Decimal("50000")
        assert Decimal(data["deductions"]) == Decimal("20000")
        assert Decimal(data["total_payable"]) == Decimal("30000")
        assert len(data["fingerprint"]) == 32

    async def test_register_payout_and_history(self, client: AsyncClient, seeded, notifier):
        preview = (await client.get(f"/api/v1/workers/{WORKER}/settlement")).json()

        response = await client.post(
            f"/api/v1/workers/{WORKER}/payouts",
            json={"breakdown": preview, "performed_by": "admin1", "method": "transfer"},
        )
        assert response.status_code == 201, response.text
        entry = response.json()
        assert Decimal(entry["amount"]) == Decimal("30000")
        assert entry["period_start"] is None
        assert entry["period_end"] == entry["paid_at"]
        assert ("payment_received" in [event for event, _ in notifier.sent])

        history = (await client.get(f"/api/v1/workers/{WORKER}/payouts")).json()
        assert [e["id"] for e in history] == [entry["id"]]

        after = (await client.get(f"/api/v1/workers/{WORKER}/settlement")).json()
        assert after["window_start"] is not None
        assert Decimal(after["total_payable"]) == Decimal("0")

    async def test_confirming_twice_is_stale(self, client: AsyncClient, seeded):
        preview = (await client.get(f"/api/v1/workers/{WORKER}/settlement")).json()
        payload = {"breakdown": preview, "performed_by": "admin1", "method": "cash"}

        first = await client.post(f"/api/v1/workers/{WORKER}/payouts", json=payload)
        assert first.status_code == 201

        second = await client.post(f"/api/v1/workers/{WORKER}/payouts", json=payload)
        assert second.status_code == 422
        assert second.json()["code"] == "STALE_SETTLEMENT"

        history = (await client.get(f"/api/v1/workers/{WORKER}/payouts")).json()
        assert len(history) == 1

    async def test_tampered_breakdown_is_rejected(self, client: AsyncClient, seeded):
        preview = (await client.get(f"/api/v1/workers/{WORKER}/settlement")).json()
        preview["total_payable"] = "99999.00"

        response = await client.post(
            f"/api/v1/workers/{WORKER}/payouts",
            json={"breakdown": preview, "performed_by": "admin1", "method": "cash"},
        )
        assert response.status_code == 500
        assert response.json()["code"] == "INCONSISTENT_STATE"

    async def test_batch_preview(self, client: AsyncClient, seeded):
        response = await client.get(
            "/api/v1/settlements",
            params=[("worker_id", WORKER), ("worker_id", "worker-2"), ("worker_id", "worker-3")],
        )
        assert response.status_code == 200

        data = response.json()
        assert [s["worker_id"] for s in data["settlements"]] == [WORKER, "worker-2", "worker-3"]
        assert data["failures"] == []
        assert Decimal(data["total_payable"]) == Decimal("35000")
        assert data["workers_with_payable"] == 2
        assert Decimal(data["largest_payable"]) == Decimal("30000")

    async def test_batch_requires_workers(self, client: AsyncClient):
        response = await client.get("/api/v1/settlements")
        assert response.status_code == 422


class TestErrorMapping:
    """Test engine errors map onto HTTP statuses."""

    async def test_status_codes_follow_class_hierarchy(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            unprocessable = status.HTTP_422_UNPROCESSABLE_CONTENT

        assert unprocessable == 422
        assert status_code_for(ValidationError("bad amount", field="amount")) == 422
        assert status_code_for(StaleSettlement(WORKER, "window moved")) == 422
        assert status_code_for(InvalidStateTransition("approved", "rejected", "done")) == 409
        assert status_code_for(SourceUnavailable("feeds", WORKER, "timeout")) == 503
        assert status_code_for(InconsistentState("negative subtotal")) == 500
