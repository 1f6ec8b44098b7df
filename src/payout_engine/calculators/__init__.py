"""Settlement calculation engine."""

from payout_engine.calculators.settlement import apply_rate, compute_settlement, in_window
from payout_engine.calculators.types import (
    Advance,
    AdvanceStatus,
    DeductionLine,
    Fine,
    FineStatus,
    PayoutLedgerEntry,
    Purchase,
    ServiceRecord,
    SettlementBreakdown,
    ShareLine,
)

__all__ = [
    "compute_settlement",
    "apply_rate",
    "in_window",
    "Advance",
    "AdvanceStatus",
    "DeductionLine",
    "Fine",
    "FineStatus",
    "PayoutLedgerEntry",
    "Purchase",
    "ServiceRecord",
    "SettlementBreakdown",
    "ShareLine",
]
