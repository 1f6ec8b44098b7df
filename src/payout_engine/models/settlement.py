"""Source records, cash advances and payout ledger models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.calculators.types import (
    Advance,
    Fine,
    PayoutLedgerEntry,
    Purchase,
    ServiceRecord,
    SettlementBreakdown,
)
from payout_engine.models.base import Base, JSONDocument, TimestampMixin, UTCDateTime


# ===== Source feeds =====


class CompletedService(Base, TimestampMixin):
    """A completed service and its revenue components."""

    __tablename__ = "completed_service"

    service_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    add_on_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    in_service_consumption_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    extended_time_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    completed_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(
            "base_amount >= 0 AND add_on_amount >= 0 "
            "AND in_service_consumption_amount >= 0 AND extended_time_amount >= 0",
            name="completed_service_amounts_check",
        ),
        Index("completed_service_worker_time_idx", "worker_id", "completed_at"),
    )

    def to_record(self) -> ServiceRecord:
        return ServiceRecord(
            worker_id=self.worker_id,
            base_amount=self.base_amount,
            add_on_amount=self.add_on_amount,
            in_service_consumption_amount=self.in_service_consumption_amount,
            extended_time_amount=self.extended_time_amount,
            completed_at=self.completed_at,
            service_id=str(self.service_id),
        )


class StorePurchase(Base, TimestampMixin):
    """A store purchase, made during a service or outside one."""

    __tablename__ = "store_purchase"

    purchase_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    during_service: Mapped[bool] = mapped_column(Boolean, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="store_purchase_amount_check"),
        Index("store_purchase_worker_time_idx", "worker_id", "occurred_at"),
    )

    def to_record(self) -> Purchase:
        return Purchase(
            worker_id=self.worker_id,
            total_amount=self.total_amount,
            during_service=self.during_service,
            occurred_at=self.occurred_at,
            purchase_id=str(self.purchase_id),
        )


class WorkerFine(Base, TimestampMixin):
    """A fine issued to a worker."""

    __tablename__ = "worker_fine"

    fine_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    concept: Mapped[str | None] = mapped_column(Text)
    issued_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="worker_fine_amount_check"),
        CheckConstraint(
            "status IN ('active', 'paid', 'cancelled')",
            name="worker_fine_status_check",
        ),
        Index("worker_fine_worker_time_idx", "worker_id", "issued_at"),
    )

    def to_record(self) -> Fine:
        return Fine(
            worker_id=self.worker_id,
            amount=self.amount,
            status=self.status,
            created_at=self.issued_at,
            fine_id=str(self.fine_id),
            concept=self.concept,
        )


# ===== Cash advances =====


class CashAdvance(Base):
    """A cash-advance request and its resolution."""

    __tablename__ = "cash_advance"

    advance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    reason: Mapped[str | None] = mapped_column(Text)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    resolved_by: Mapped[str | None] = mapped_column(String)
    resolution_note: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("amount > 0", name="cash_advance_amount_check"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="cash_advance_status_check",
        ),
        CheckConstraint(
            "(status = 'pending') = (resolved_at IS NULL)",
            name="cash_advance_resolution_check",
        ),
        Index("cash_advance_worker_idx", "worker_id", "requested_at"),
        Index("cash_advance_status_idx", "status", "requested_at"),
    )

    @classmethod
    def from_record(cls, advance: Advance) -> CashAdvance:
        row = cls(advance_id=advance.id)
        row.update_from(advance)
        return row

    def update_from(self, advance: Advance) -> None:
        self.worker_id = advance.worker_id
        self.amount = advance.amount
        self.status = advance.status.value
        self.reason = advance.reason
        self.requested_at = advance.requested_at
        self.resolved_at = advance.resolved_at
        self.resolved_by = advance.resolved_by
        self.resolution_note = advance.resolution_note

    def to_record(self) -> Advance:
        return Advance(
            id=self.advance_id,
            worker_id=self.worker_id,
            amount=self.amount,
            status=self.status,
            requested_at=self.requested_at,
            resolved_at=self.resolved_at,
            resolved_by=self.resolved_by,
            reason=self.reason,
            resolution_note=self.resolution_note,
        )


# ===== Payout ledger =====


class PayoutEntry(Base, TimestampMixin):
    """One executed payout.

    Append-only: rows are inserted once and never updated or deleted. The
    breakdown column is the settlement snapshot confirmed at payout time.
    """

    __tablename__ = "payout_entry"

    payout_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[str] = mapped_column(String, nullable=False)
    paid_at: Mapped[datetime] = mapped_column(nullable=False)
    period_start: Mapped[datetime | None] = mapped_column(UTCDateTime())
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String, nullable=False)
    performed_by: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    breakdown_json: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="payout_entry_amount_check"),
        CheckConstraint(
            "period_start IS NULL OR period_start < paid_at",
            name="payout_entry_period_check",
        ),
        Index("payout_entry_worker_paid_idx", "worker_id", "paid_at"),
        # One payout per window, enforced across processes.
        UniqueConstraint("worker_id", "period_start", name="payout_entry_worker_period_unique"),
        Index(
            "payout_entry_worker_first_unique",
            "worker_id",
            unique=True,
            postgresql_where=text("period_start IS NULL"),
            sqlite_where=text("period_start IS NULL"),
        ),
    )

    @classmethod
    def from_record(cls, entry: PayoutLedgerEntry) -> PayoutEntry:
        return cls(
            payout_entry_id=entry.id,
            worker_id=entry.worker_id,
            paid_at=entry.paid_at,
            period_start=entry.period_start,
            amount=entry.amount,
            method=entry.method,
            performed_by=entry.performed_by,
            notes=entry.notes,
            breakdown_json=entry.breakdown.to_dict(),
        )

    def to_record(self) -> PayoutLedgerEntry:
        return PayoutLedgerEntry(
            id=self.payout_entry_id,
            worker_id=self.worker_id,
            paid_at=self.paid_at,
            amount=self.amount,
            breakdown=SettlementBreakdown.from_dict(self.breakdown_json),
            method=self.method,
            performed_by=self.performed_by,
            notes=self.notes,
        )
