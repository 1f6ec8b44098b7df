"""Payout engine services."""

from payout_engine.services.advance_service import AdvanceWorkflow
from payout_engine.services.ledger_service import PayoutLedger
from payout_engine.services.locking_service import WorkerLockRegistry
from payout_engine.services.settlement_service import BatchSettlement, SettlementOrchestrator
from payout_engine.services.state_machine import AdvanceStateMachine

__all__ = [
    "AdvanceStateMachine",
    "AdvanceWorkflow",
    "BatchSettlement",
    "PayoutLedger",
    "SettlementOrchestrator",
    "WorkerLockRegistry",
]
