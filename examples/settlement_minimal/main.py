#!/usr/bin/env python
"""Settlement Minimal Example - library-first walkthrough.

Runs one settlement cycle against the in-memory store:
1. Seed services, purchases and a fine for two workers
2. Submit and approve a cash advance
3. Preview the batch
4. Confirm a payout and show the next (empty) window

No database, no HTTP. This is how the engine is embedded in another
application.

Usage:
    python examples/settlement_minimal/main.py
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from payout_engine.calculators.types import Fine, FineStatus, Purchase, ServiceRecord
from payout_engine.events import AsyncEventEmitter, LoggingNotifier, WorkerNotificationHandler
from payout_engine.services import (
    AdvanceWorkflow,
    PayoutLedger,
    SettlementOrchestrator,
    WorkerLockRegistry,
)
from payout_engine.sources import InMemoryStore


def print_header(title: str) -> None:
    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)


def print_step(step: int, description: str) -> None:
    print()
    print(f"[Step {step}] {description}")
    print("-" * 40)


def seed(store: InMemoryStore, now: datetime) -> None:
    yesterday = now - timedelta(days=1)
    store.add_service(ServiceRecord.from_extensions(
        worker_id="ana",
        base_amount=Decimal("100000"),
        extension_costs=[Decimal("20000")],
        add_on_amount=Decimal("15000"),
        completed_at=yesterday,
    ))
    store.add_purchase(Purchase(
        worker_id="ana",
        total_amount=Decimal("12000"),
        during_service=True,
        occurred_at=yesterday,
    ))
    store.add_purchase(Purchase(
        worker_id="ana",
        total_amount=Decimal("8000"),
        during_service=False,
        occurred_at=yesterday,
    ))
    store.add_service(ServiceRecord.from_extensions(
        worker_id="bea",
        base_amount=Decimal("80000"),
        completed_at=yesterday,
    ))
    store.add_fine(Fine(
        worker_id="bea",
        amount=Decimal("5000"),
        status=FineStatus.ACTIVE,
        created_at=yesterday,
        concept="Late arrival",
    ))


async def run_demo() -> None:
    print_header("Payout Engine - Settlement Cycle")

    store = InMemoryStore()
    locks = WorkerLockRegistry()
    emitter = AsyncEventEmitter()
    WorkerNotificationHandler(LoggingNotifier()).register(emitter)

    ledger = PayoutLedger(store)
    workflow = AdvanceWorkflow(store, locks, emitter=emitter, ledger=ledger)
    orchestrator = SettlementOrchestrator(store, ledger, locks, emitter=emitter)

    print_step(1, "Seed source records")
    seed(store, datetime.now(timezone.utc))
    print(f"  Services: {len(store.services)}")
    print(f"  Purchases: {len(store.purchases)}")
    print(f"  Fines: {len(store.fines)}")

    print_step(2, "Advance request and approval")
    advance = await workflow.submit("ana", Decimal("10000"), reason="Transport")
    advance = await workflow.approve(advance.id, "admin")
    print(f"  Advance {advance.id}: {advance.status.value} (${advance.amount:,})")

    print_step(3, "Preview the batch")
    batch = await orchestrator.settle_all(["ana", "bea"])
    for settlement in batch.settlements:
        print(f"  {settlement.worker_id}:")
        print(f"    Subtotal:   ${settlement.subtotal:,}")
        print(f"    Deductions: ${settlement.deductions:,}")
        print(f"    Payable:    ${settlement.total_payable:,}")
    print(f"  Total payable: ${batch.total_payable:,}")
    print(f"  Workers with payable: {batch.workers_with_payable}")

    print_step(4, "Confirm ana's payout")
    breakdown = batch.get("ana")
    entry = await orchestrator.register_payout("ana", breakdown, "admin", "transfer")
    print(f"  Entry {entry.id}: ${entry.amount:,} at {entry.paid_at.isoformat()}")

    after = await orchestrator.preview("ana")
    print(f"  Next window starts at {after.window_start.isoformat()}")
    print(f"  Payable now: ${after.total_payable:,}")


def main() -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(description="Payout engine library demonstration")
    parser.add_argument("--verbose", action="store_true", help="Show engine logs")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    asyncio.run(run_demo())
    return 0


if __name__ == "__main__":
    sys.exit(main())
