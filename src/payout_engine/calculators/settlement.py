"""Settlement calculator.

Reduces the four source feeds of one worker to a SettlementBreakdown.
Pure: no I/O, no clock, no shared state. Calling it twice with the same
inputs yields equal breakdowns.

Pipeline (stable order):
1) Window every collection to (window_start, window_end]
2) Credit services (base + extended time), add-ons and in-service consumption
3) Deduct out-of-service purchases, active fines and approved advances
4) total_payable = max(0, subtotal - deductions)
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, TypeVar

from payout_engine.calculators.types import (
    ZERO,
    Advance,
    AdvanceStatus,
    DeductionLine,
    Fine,
    FineStatus,
    Purchase,
    ServiceRecord,
    SettlementBreakdown,
    ShareLine,
    to_utc,
)
from payout_engine.config import DEFAULT_SETTLEMENT_POLICY, SettlementPolicy
from payout_engine.exceptions import InconsistentState

T = TypeVar("T")


def in_window(
    timestamp: datetime | None,
    window_start: datetime | None,
    window_end: datetime | None = None,
) -> bool:
    """Window predicate shared by the calculator, the feeds and the advance queries.

    The window is (window_start, window_end]: a record stamped exactly at
    window_start belongs to the previous payout.
    """
    if timestamp is None:
        return False
    if window_start is not None and timestamp <= window_start:
        return False
    return window_end is None or timestamp <= window_end


def apply_rate(revenue: Decimal, rate: Decimal, minor_unit: Decimal) -> Decimal:
    """Apply a share rate, rounding half-up to the minor unit."""
    return (revenue * rate).quantize(minor_unit, rounding=ROUND_HALF_UP)


def _check_owner(worker_id: str, records: Iterable[T], source: str) -> list[T]:
    items = list(records)
    for record in items:
        owner = getattr(record, "worker_id")
        if owner != worker_id:
            raise InconsistentState(
                f"{source} feed returned a record for worker {owner!r} "
                f"while settling worker {worker_id!r}"
            )
    return items


def _share_line(count: int, revenue: Decimal, rate: Decimal, policy: SettlementPolicy) -> ShareLine:
    return ShareLine(
        count=count,
        revenue=revenue,
        rate=rate,
        share=apply_rate(revenue, rate, policy.minor_unit),
    )


def compute_settlement(
    worker_id: str,
    window_start: datetime | None,
    services: Iterable[ServiceRecord],
    purchases: Iterable[Purchase],
    fines: Iterable[Fine],
    approved_advances: Iterable[Advance],
    policy: SettlementPolicy = DEFAULT_SETTLEMENT_POLICY,
    window_end: datetime | None = None,
) -> SettlementBreakdown:
    """Compute the settlement breakdown for one worker.

    Args:
        worker_id: Worker being settled
        window_start: Time of the worker's last payout, or None for the
            first-ever settlement
        services: Completed services
        purchases: Store purchases (in-service and out-of-service)
        fines: Fines of any status; only active ones are deducted
        approved_advances: Advances; only approved ones are deducted
        policy: Share rates and rounding unit
        window_end: Inclusive upper bound (the payout instant when
            confirming); None means "now", i.e. no bound

    Returns:
        SettlementBreakdown with per-category counts and amounts

    Raises:
        InconsistentState: a record belongs to another worker, or the
            computed totals are structurally impossible
    """
    window_start = to_utc(window_start, "window_start")
    window_end = to_utc(window_end, "window_end")

    # 1) Window
    windowed_services = [
        s
        for s in _check_owner(worker_id, services, "services")
        if in_window(s.completed_at, window_start, window_end)
    ]
    windowed_purchases = [
        p
        for p in _check_owner(worker_id, purchases, "purchases")
        if in_window(p.occurred_at, window_start, window_end)
    ]
    active_fines = [
        f
        for f in _check_owner(worker_id, fines, "fines")
        if f.status == FineStatus.ACTIVE and in_window(f.created_at, window_start, window_end)
    ]
    advances = [
        a
        for a in _check_owner(worker_id, approved_advances, "advances")
        if a.status == AdvanceStatus.APPROVED and in_window(a.resolved_at, window_start, window_end)
    ]

    # 2) Revenue shares. Consumption comes from in-service purchases only;
    # the service record's own consumption field is not counted.
    service_revenue = sum(
        (s.base_amount + s.extended_time_amount for s in windowed_services), ZERO
    )
    add_on_revenue = sum((s.add_on_amount for s in windowed_services), ZERO)
    add_on_count = sum(1 for s in windowed_services if s.add_on_amount > 0)

    in_service = [p for p in windowed_purchases if p.during_service]
    out_of_service = [p for p in windowed_purchases if not p.during_service]
    consumption_revenue = sum((p.total_amount for p in in_service), ZERO)

    services_line = _share_line(len(windowed_services), service_revenue, policy.service_rate, policy)
    add_ons_line = _share_line(add_on_count, add_on_revenue, policy.add_on_rate, policy)
    consumption_line = _share_line(len(in_service), consumption_revenue, policy.consumption_rate, policy)

    # 3) Deductions, in full
    purchases_line = DeductionLine(
        count=len(out_of_service),
        amount=sum((p.total_amount for p in out_of_service), ZERO),
    )
    fines_line = DeductionLine(
        count=len(active_fines),
        amount=sum((f.amount for f in active_fines), ZERO),
    )
    advances_line = DeductionLine(
        count=len(advances),
        amount=sum((a.amount for a in advances), ZERO),
    )

    # 4) Totals. Excess deductions are forgiven, never carried forward.
    subtotal = services_line.share + add_ons_line.share + consumption_line.share
    deductions = purchases_line.amount + fines_line.amount + advances_line.amount
    if subtotal < 0 or deductions < 0:
        raise InconsistentState(
            f"negative totals for worker {worker_id!r}: "
            f"subtotal={subtotal} deductions={deductions}"
        )
    total_payable = max(ZERO, subtotal - deductions)

    return SettlementBreakdown(
        worker_id=worker_id,
        window_start=window_start,
        services=services_line,
        add_ons=add_ons_line,
        consumption=consumption_line,
        out_of_service_purchases=purchases_line,
        fines=fines_line,
        advances=advances_line,
        subtotal=subtotal,
        deductions=deductions,
        total_payable=total_payable,
    )
