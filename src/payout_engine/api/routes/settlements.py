"""Settlement preview and payout API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from payout_engine.api.dependencies import Orchestrator
from payout_engine.api.schemas import (
    BatchSettlementResponse,
    ErrorResponse,
    PayoutCreate,
    PayoutEntryResponse,
    SettlementFailure,
    SettlementResponse,
)

router = APIRouter(tags=["settlements"])


@router.get(
    "/settlements",
    response_model=BatchSettlementResponse,
    responses={500: {"model": ErrorResponse}},
)
async def preview_batch(
    orchestrator: Orchestrator,
    worker_ids: Annotated[list[str], Query(alias="worker_id", min_length=1)],
) -> BatchSettlementResponse:
    """Preview settlements for several workers.

    Workers whose data could not be fetched or was inconsistent are listed
    in ``failures``.
    """
    batch = await orchestrator.settle_all(worker_ids)
    return BatchSettlementResponse(
        settlements=[SettlementResponse.from_breakdown(s) for s in batch.settlements],
        failures=[
            SettlementFailure(worker_id=worker_id, code=error.code, reason=error.message)
            for worker_id, error in batch.failures.items()
        ],
        total_payable=batch.total_payable,
        workers_with_payable=batch.workers_with_payable,
        largest_payable=batch.largest_payable,
    )


@router.get(
    "/workers/{worker_id}/settlement",
    response_model=SettlementResponse,
    responses={503: {"model": ErrorResponse}},
)
async def preview_settlement(
    orchestrator: Orchestrator,
    worker_id: Annotated[str, Path()],
) -> SettlementResponse:
    """Preview a worker's settlement since their last payout. Read-only."""
    breakdown = await orchestrator.preview(worker_id)
    return SettlementResponse.from_breakdown(breakdown)


@router.post(
    "/workers/{worker_id}/payouts",
    response_model=PayoutEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def register_payout(
    orchestrator: Orchestrator,
    worker_id: Annotated[str, Path()],
    payload: PayoutCreate,
) -> PayoutEntryResponse:
    """Confirm a previewed settlement as paid."""
    entry = await orchestrator.register_payout(
        worker_id,
        payload.breakdown.to_domain(),
        performed_by=payload.performed_by,
        method=payload.method,
        notes=payload.notes,
    )
    return PayoutEntryResponse.model_validate(entry)


@router.get("/workers/{worker_id}/payouts", response_model=list[PayoutEntryResponse])
async def payout_history(
    orchestrator: Orchestrator,
    worker_id: Annotated[str, Path()],
) -> list[PayoutEntryResponse]:
    """A worker's payouts, newest first."""
    entries = await orchestrator.payout_history(worker_id)
    return [PayoutEntryResponse.model_validate(e) for e in entries]
