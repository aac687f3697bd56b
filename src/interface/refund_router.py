"""Refund review queue and admin refund actions."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.agents.base import Deps
from src.domain.refund import RefundRequest, RefundRequestStatus
from src.interface.dependencies import get_deps
from src.services import refund_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/refunds", tags=["refunds"])


class CreateRefundRequest(BaseModel):
    milestone_id: str
    user_id: str
    custom_amount: int | None = Field(default=None, gt=0)


class AdminAction(BaseModel):
    admin_id: str
    admin_notes: str | None = None


class LedgerResponse(BaseModel):
    user_id: str
    total_refund_earned: int


@router.get("")
async def list_refunds(
    status: RefundRequestStatus | None = None,
    user_id: str | None = None,
    deps: Deps = Depends(get_deps),
) -> list[RefundRequest]:
    """Refund requests, newest first, optionally filtered by status or user."""
    requests = await refund_service.list_refund_requests(deps=deps, status=status, user_id=user_id)
    return [RefundRequest.model_validate(r) for r in requests]


@router.post("", status_code=201)
async def create_refund(body: CreateRefundRequest, deps: Deps = Depends(get_deps)) -> RefundRequest:
    """Claim the refund for a milestone that passed validation.

    Submissions open the claim themselves; this covers a claim declined at
    submit time or a custom amount.
    """
    request = await refund_service.create_refund_request(
        deps=deps,
        milestone_id=body.milestone_id,
        user_id=body.user_id,
        custom_amount=body.custom_amount,
    )
    return RefundRequest.model_validate(request)


@router.post("/{request_id}/approve")
async def approve_refund(request_id: str, body: AdminAction, deps: Deps = Depends(get_deps)) -> RefundRequest:
    updated = await refund_service.approve_refund(
        deps=deps, request_id=request_id, admin_id=body.admin_id, admin_notes=body.admin_notes
    )
    return RefundRequest.model_validate(updated)


@router.post("/{request_id}/reject")
async def reject_refund(request_id: str, body: AdminAction, deps: Deps = Depends(get_deps)) -> RefundRequest:
    updated = await refund_service.reject_refund(
        deps=deps, request_id=request_id, admin_id=body.admin_id, admin_notes=body.admin_notes
    )
    return RefundRequest.model_validate(updated)


@router.post("/{request_id}/complete")
async def complete_refund(request_id: str, body: AdminAction, deps: Deps = Depends(get_deps)) -> RefundRequest:
    """Mark an approved refund as paid."""
    updated = await refund_service.complete_refund(
        deps=deps, request_id=request_id, admin_id=body.admin_id, admin_notes=body.admin_notes
    )
    return RefundRequest.model_validate(updated)


@router.get("/ledger/{user_id}")
async def get_ledger(user_id: str, deps: Deps = Depends(get_deps)) -> LedgerResponse:
    """Total refunds credited to a user."""
    balance = await refund_service.get_ledger_balance(deps=deps, user_id=user_id)
    return LedgerResponse(user_id=user_id, total_refund_earned=balance)
