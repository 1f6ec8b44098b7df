"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payout_engine.calculators.types import (
    AdvanceStatus,
    DeductionLine,
    SettlementBreakdown,
    ShareLine,
)


# ============================================================================
# Advance schemas
# ============================================================================


class AdvanceCreate(BaseModel):
    """Schema for submitting an advance request."""

    worker_id: str = Field(min_length=1)
    amount: Decimal
    reason: str | None = None


class AdvanceResolution(BaseModel):
    """Schema for approving or rejecting an advance."""

    approver_id: str = Field(min_length=1)
    note: str | None = None


class AdvanceResponse(BaseModel):
    """Schema for advance response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: str
    amount: Decimal
    status: AdvanceStatus
    requested_at: datetime
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    reason: str | None = None
    resolution_note: str | None = None


# ============================================================================
# Settlement schemas
# ============================================================================


class ShareLineSchema(BaseModel):
    """A revenue category credited at a fixed rate."""

    model_config = ConfigDict(from_attributes=True)

    count: int
    revenue: Decimal
    rate: Decimal
    share: Decimal


class DeductionLineSchema(BaseModel):
    """A category deducted in full."""

    model_config = ConfigDict(from_attributes=True)

    count: int
    amount: Decimal


class SettlementBreakdownSchema(BaseModel):
    """Settlement breakdown as previewed and as confirmed."""

    model_config = ConfigDict(from_attributes=True)

    worker_id: str
    window_start: datetime | None
    services: ShareLineSchema
    add_ons: ShareLineSchema
    consumption: ShareLineSchema
    out_of_service_purchases: DeductionLineSchema
    fines: DeductionLineSchema
    advances: DeductionLineSchema
    subtotal: Decimal
    deductions: Decimal
    total_payable: Decimal

    def to_domain(self) -> SettlementBreakdown:
        """Rebuild the engine's breakdown from the submitted document."""
        return SettlementBreakdown(
            worker_id=self.worker_id,
            window_start=self.window_start,
            services=ShareLine(**self.services.model_dump()),
            add_ons=ShareLine(**self.add_ons.model_dump()),
            consumption=ShareLine(**self.consumption.model_dump()),
            out_of_service_purchases=DeductionLine(**self.out_of_service_purchases.model_dump()),
            fines=DeductionLine(**self.fines.model_dump()),
            advances=DeductionLine(**self.advances.model_dump()),
            subtotal=self.subtotal,
            deductions=self.deductions,
            total_payable=self.total_payable,
        )


class SettlementResponse(SettlementBreakdownSchema):
    """Settlement preview with its audit fingerprint."""

    fingerprint: str

    @classmethod
    def from_breakdown(cls, breakdown: SettlementBreakdown) -> "SettlementResponse":
        data = SettlementBreakdownSchema.model_validate(breakdown).model_dump()
        return cls(**data, fingerprint=breakdown.fingerprint())


class SettlementFailure(BaseModel):
    """A worker excluded from a batch and why."""

    worker_id: str
    code: str
    reason: str


class BatchSettlementResponse(BaseModel):
    """Schema for batch settlement preview."""

    settlements: list[SettlementResponse]
    failures: list[SettlementFailure]
    total_payable: Decimal
    workers_with_payable: int
    largest_payable: Decimal


# ============================================================================
# Payout schemas
# ============================================================================


class PayoutCreate(BaseModel):
    """Schema for confirming a payout."""

    breakdown: SettlementBreakdownSchema
    performed_by: str = Field(min_length=1)
    method: str = Field(min_length=1)
    notes: str | None = None


class PayoutEntryResponse(BaseModel):
    """Schema for a payout ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: str
    paid_at: datetime
    amount: Decimal
    method: str
    performed_by: str
    notes: str | None = None
    period_start: datetime | None = None
    period_end: datetime
    breakdown: SettlementBreakdownSchema


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    error: str
    code: str
    detail: str
