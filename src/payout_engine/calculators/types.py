"""Type definitions for the settlement pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable
from uuid import UUID, uuid4

from payout_engine.exceptions import ValidationError

ZERO = Decimal("0")


class FineStatus(str, Enum):
    """Fine status values."""

    ACTIVE = "active"
    PAID = "paid"
    CANCELLED = "cancelled"


class AdvanceStatus(str, Enum):
    """Cash advance status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def to_money(value: Any, field_name: str = "amount") -> Decimal:
    """Coerce a money value to Decimal.

    Floats are refused outright: binary rounding has no place in totals
    that are compared and persisted.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{field_name} must be a Decimal, int or numeric string, got {type(value).__name__}",
            field=field_name,
        )
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise ValidationError(f"{field_name} is not a valid amount: {value!r}", field=field_name) from e
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {amount}", field=field_name)
    return amount


def to_utc(value: datetime | None, field_name: str) -> datetime | None:
    """Normalise an aware datetime to UTC. Naive datetimes are rejected."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(f"{field_name} must be a datetime", field=field_name)
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{field_name} must be timezone-aware", field=field_name)
    return value.astimezone(timezone.utc)


def _require_worker(worker_id: str) -> None:
    if not isinstance(worker_id, str) or not worker_id.strip():
        raise ValidationError("worker_id is required", field="worker_id")


def _set_money(obj: Any, *names: str) -> None:
    for name in names:
        amount = to_money(getattr(obj, name), name)
        if amount < 0:
            raise ValidationError(f"{name} cannot be negative, got {amount}", field=name)
        object.__setattr__(obj, name, amount)


def _set_instant(obj: Any, name: str, required: bool = True) -> None:
    value = getattr(obj, name)
    if value is None and required:
        raise ValidationError(f"{name} is required", field=name)
    object.__setattr__(obj, name, to_utc(value, name))


# =============================================================================
# Source records (read-only snapshots from external feeds)
# =============================================================================


@dataclass(frozen=True)
class ServiceRecord:
    """One completed service."""

    worker_id: str
    base_amount: Decimal
    add_on_amount: Decimal
    in_service_consumption_amount: Decimal
    extended_time_amount: Decimal
    completed_at: datetime
    service_id: str | None = None

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_money(
            self,
            "base_amount",
            "add_on_amount",
            "in_service_consumption_amount",
            "extended_time_amount",
        )
        _set_instant(self, "completed_at")

    @classmethod
    def from_extensions(
        cls,
        *,
        worker_id: str,
        base_amount: Decimal,
        completed_at: datetime,
        extension_costs: Iterable[Decimal] = (),
        add_on_amount: Decimal = ZERO,
        in_service_consumption_amount: Decimal = ZERO,
        service_id: str | None = None,
    ) -> ServiceRecord:
        """Build a record from individual time-extension line items."""
        extended = sum((to_money(c, "extension_cost") for c in extension_costs), ZERO)
        return cls(
            worker_id=worker_id,
            base_amount=base_amount,
            add_on_amount=add_on_amount,
            in_service_consumption_amount=in_service_consumption_amount,
            extended_time_amount=extended,
            completed_at=completed_at,
            service_id=service_id,
        )


@dataclass(frozen=True)
class Purchase:
    """A store purchase made by or for a worker."""

    worker_id: str
    total_amount: Decimal
    during_service: bool
    occurred_at: datetime
    purchase_id: str | None = None

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_money(self, "total_amount")
        _set_instant(self, "occurred_at")


@dataclass(frozen=True)
class Fine:
    """A monetary penalty. Only active fines are deductible."""

    worker_id: str
    amount: Decimal
    status: FineStatus
    created_at: datetime
    fine_id: str | None = None
    concept: str | None = None

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_money(self, "amount")
        _set_instant(self, "created_at")
        object.__setattr__(self, "status", FineStatus(self.status))


@dataclass(frozen=True)
class Advance:
    """A cash-advance request.

    Created pending; resolved exactly once to approved or rejected.
    """

    worker_id: str
    amount: Decimal
    requested_at: datetime
    status: AdvanceStatus = AdvanceStatus.PENDING
    id: UUID = field(default_factory=uuid4)
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    reason: str | None = None
    resolution_note: str | None = None

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_money(self, "amount")
        _set_instant(self, "requested_at")
        _set_instant(self, "resolved_at", required=False)
        object.__setattr__(self, "status", AdvanceStatus(self.status))

    @property
    def is_resolved(self) -> bool:
        return self.status != AdvanceStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "worker_id": self.worker_id,
            "amount": str(self.amount),
            "requested_at": self.requested_at.isoformat(),
            "status": self.status.value,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "reason": self.reason,
            "resolution_note": self.resolution_note,
        }


# =============================================================================
# Settlement breakdown
# =============================================================================


@dataclass(frozen=True)
class ShareLine:
    """A revenue category credited to the worker at a fixed rate."""

    count: int
    revenue: Decimal
    rate: Decimal
    share: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "revenue": str(self.revenue),
            "rate": str(self.rate),
            "share": str(self.share),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShareLine:
        return cls(
            count=int(data["count"]),
            revenue=Decimal(data["revenue"]),
            rate=Decimal(data["rate"]),
            share=Decimal(data["share"]),
        )


@dataclass(frozen=True)
class DeductionLine:
    """A category deducted in full."""

    count: int
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeductionLine:
        return cls(count=int(data["count"]), amount=Decimal(data["amount"]))


@dataclass(frozen=True)
class SettlementBreakdown:
    """Structured result of a settlement computation.

    Carries every category so downstream consumers can reconstruct and
    verify the payable amount.
    """

    worker_id: str
    window_start: datetime | None
    services: ShareLine
    add_ons: ShareLine
    consumption: ShareLine
    out_of_service_purchases: DeductionLine
    fines: DeductionLine
    advances: DeductionLine
    subtotal: Decimal
    deductions: Decimal
    total_payable: Decimal

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_instant(self, "window_start", required=False)

    def verify(self) -> list[str]:
        """Check internal consistency, returning any error messages."""
        errors: list[str] = []
        expected_subtotal = self.services.share + self.add_ons.share + self.consumption.share
        if self.subtotal != expected_subtotal:
            errors.append(f"subtotal {self.subtotal} != sum of shares {expected_subtotal}")
        expected_deductions = (
            self.out_of_service_purchases.amount + self.fines.amount + self.advances.amount
        )
        if self.deductions != expected_deductions:
            errors.append(f"deductions {self.deductions} != sum of deductions {expected_deductions}")
        if self.subtotal < 0:
            errors.append(f"negative subtotal {self.subtotal}")
        if self.deductions < 0:
            errors.append(f"negative deductions {self.deductions}")
        expected_payable = max(ZERO, self.subtotal - self.deductions)
        if self.total_payable != expected_payable:
            errors.append(f"total_payable {self.total_payable} != {expected_payable}")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Return canonical dict (deterministic, JSON-safe)."""
        return {
            "worker_id": self.worker_id,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "services": self.services.to_dict(),
            "add_ons": self.add_ons.to_dict(),
            "consumption": self.consumption.to_dict(),
            "out_of_service_purchases": self.out_of_service_purchases.to_dict(),
            "fines": self.fines.to_dict(),
            "advances": self.advances.to_dict(),
            "subtotal": str(self.subtotal),
            "deductions": str(self.deductions),
            "total_payable": str(self.total_payable),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SettlementBreakdown:
        window_start = data.get("window_start")
        return cls(
            worker_id=data["worker_id"],
            window_start=datetime.fromisoformat(window_start) if window_start else None,
            services=ShareLine.from_dict(data["services"]),
            add_ons=ShareLine.from_dict(data["add_ons"]),
            consumption=ShareLine.from_dict(data["consumption"]),
            out_of_service_purchases=DeductionLine.from_dict(data["out_of_service_purchases"]),
            fines=DeductionLine.from_dict(data["fines"]),
            advances=DeductionLine.from_dict(data["advances"]),
            subtotal=Decimal(data["subtotal"]),
            deductions=Decimal(data["deductions"]),
            total_payable=Decimal(data["total_payable"]),
        )

    def fingerprint(self) -> str:
        """Deterministic hash of the breakdown for audit comparison."""
        json_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


@dataclass(frozen=True)
class PayoutLedgerEntry:
    """One executed payout. Never mutated once written."""

    worker_id: str
    paid_at: datetime
    amount: Decimal
    breakdown: SettlementBreakdown
    method: str
    performed_by: str
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _require_worker(self.worker_id)
        _set_money(self, "amount")
        _set_instant(self, "paid_at")

    @property
    def period_start(self) -> datetime | None:
        """Start of the settled window (exclusive)."""
        return self.breakdown.window_start

    @property
    def period_end(self) -> datetime:
        """End of the settled window (inclusive)."""
        return self.paid_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "worker_id": self.worker_id,
            "paid_at": self.paid_at.isoformat(),
            "amount": str(self.amount),
            "method": self.method,
            "performed_by": self.performed_by,
            "notes": self.notes,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat(),
            "breakdown": self.breakdown.to_dict(),
        }
