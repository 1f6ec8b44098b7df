"""Cash-advance API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from payout_engine.api.dependencies import Advances
from payout_engine.api.schemas import (
    AdvanceCreate,
    AdvanceResolution,
    AdvanceResponse,
    ErrorResponse,
)

router = APIRouter(tags=["advances"])


@router.post(
    "/advances",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def submit_advance(workflow: Advances, payload: AdvanceCreate) -> AdvanceResponse:
    """Submit an advance request in pending status."""
    advance = await workflow.submit(payload.worker_id, payload.amount, payload.reason)
    return AdvanceResponse.model_validate(advance)


@router.get("/advances/pending", response_model=list[AdvanceResponse])
async def list_pending_advances(workflow: Advances) -> list[AdvanceResponse]:
    """Pending advances awaiting review, oldest first."""
    advances = await workflow.list_pending()
    return [AdvanceResponse.model_validate(a) for a in advances]


@router.get("/workers/{worker_id}/advances", response_model=list[AdvanceResponse])
async def list_worker_advances(
    workflow: Advances,
    worker_id: Annotated[str, Path()],
) -> list[AdvanceResponse]:
    """All advances of a worker, newest first."""
    advances = await workflow.advances_for_worker(worker_id)
    return [AdvanceResponse.model_validate(a) for a in advances]


@router.get(
    "/advances/{advance_id}",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_advance(
    workflow: Advances,
    advance_id: Annotated[UUID, Path()],
) -> AdvanceResponse:
    """Get a single advance."""
    return AdvanceResponse.model_validate(await workflow.get(advance_id))


@router.post(
    "/advances/{advance_id}/approve",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_advance(
    workflow: Advances,
    advance_id: Annotated[UUID, Path()],
    payload: AdvanceResolution,
) -> AdvanceResponse:
    """Approve a pending advance. It is deducted from the next payout."""
    advance = await workflow.approve(advance_id, payload.approver_id)
    return AdvanceResponse.model_validate(advance)


@router.post(
    "/advances/{advance_id}/reject",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_advance(
    workflow: Advances,
    advance_id: Annotated[UUID, Path()],
    payload: AdvanceResolution,
) -> AdvanceResponse:
    """Reject a pending advance."""
    advance = await workflow.reject(advance_id, payload.approver_id, payload.note)
    return AdvanceResponse.model_validate(advance)
