"""Refund request and ledger domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field


class RefundRequestStatus(StrEnum):
    """Refund request lifecycle status."""

    AWAITING_REVIEW = "awaiting_review"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"


OPEN_REFUND_STATUSES = frozenset({RefundRequestStatus.AWAITING_REVIEW, RefundRequestStatus.APPROVED})


class RefundRequest(BaseModel):
    """Claim for the refund of one milestone's share of the deposit."""

    id: str = Field(..., description="Unique refund request ID from database")
    created: str
    updated: str
    task_id: str
    milestone_id: str
    user_id: str
    amount: int = Field(..., gt=0)
    status: RefundRequestStatus = RefundRequestStatus.AWAITING_REVIEW
    admin_notes: str | None = None
    processed_by: str | None = None
    processed_at: str | None = None


class RefundLedger(BaseModel):
    """Cumulative refunds credited to a user."""

    id: str
    created: str
    updated: str
    user_id: str
    total_refund_earned: int = 0
