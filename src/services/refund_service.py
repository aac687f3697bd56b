"""Refund requests for validated milestones and the user refund ledger."""

import logging
from typing import Any

from src.agents.base import Deps
from src.core.db_client import sanitize_param
from src.core.errors import (
    DuplicateRecordError,
    DuplicateRefundRequestError,
    InvalidStateTransitionError,
    RefundNotEligibleError,
)
from src.core.logging import span
from src.domain.create_models import RefundRequestCreate
from src.domain.milestone import EvaluationStatus, MilestoneRefundStatus
from src.domain.refund import RefundRequestStatus
from src.services.refund_state_machine import ensure_transition


logger = logging.getLogger(__name__)

COLLECTION = "refund_requests"


async def get_open_request(*, deps: Deps, milestone_id: str) -> dict[str, Any] | None:
    """Return the awaiting_review or approved request for a milestone, if any."""
    return await deps.db.get_first_record(
        collection=COLLECTION,
        filter_query=(
            f'milestone_id = "{sanitize_param(milestone_id)}" && '
            f'(status = "{RefundRequestStatus.AWAITING_REVIEW.value}" || '
            f'status = "{RefundRequestStatus.APPROVED.value}")'
        ),
    )


async def create_refund_request(
    *,
    deps: Deps,
    milestone_id: str,
    user_id: str,
    custom_amount: int | None = None,
) -> dict[str, Any]:
    """Open a refund claim for a milestone whose submission passed every stage.

    Args:
        deps: Injected collaborators
        milestone_id: Milestone being claimed
        user_id: Claiming user (must own the milestone)
        custom_amount: Amount to claim instead of the milestone's daily share

    Raises:
        RecordNotFoundError: If the milestone does not exist
        RefundNotEligibleError: If the submission did not pass validation
        DuplicateRefundRequestError: If a claim is already outstanding
        ValueError: If the custom amount is not positive
    """
    with span("refund_service.create_refund_request"):
        milestone = await deps.db.get_record(collection="daily_milestones", record_id=milestone_id)

        if milestone["user_id"] != user_id:
            msg = f"Milestone {milestone_id} does not belong to user {user_id}"
            raise RefundNotEligibleError(msg)
        if milestone["evaluation_status"] != EvaluationStatus.TARGET_MET:
            msg = f"Milestone {milestone_id} has not met its target (evaluation: {milestone['evaluation_status']})"
            raise RefundNotEligibleError(msg)
        if not milestone.get("validation_passed"):
            msg = f"Milestone {milestone_id} was not closed by a submission that passed every validation stage"
            raise RefundNotEligibleError(msg)

        if custom_amount is not None and custom_amount <= 0:
            msg = f"Refund amount must be positive, got {custom_amount}"
            raise ValueError(msg)
        amount = custom_amount if custom_amount is not None else milestone["refund_amount"]
        if amount <= 0:
            msg = f"Milestone {milestone_id} has no refundable amount"
            raise RefundNotEligibleError(msg)

        if await get_open_request(deps=deps, milestone_id=milestone_id) is not None:
            msg = f"Milestone {milestone_id} already has an outstanding refund request"
            raise DuplicateRefundRequestError(msg)

        payload = RefundRequestCreate(
            task_id=milestone["task_id"],
            milestone_id=milestone_id,
            user_id=user_id,
            amount=amount,
        )
        try:
            request = await deps.db.create_record(collection=COLLECTION, data=payload.model_dump())
        except DuplicateRecordError as e:
            # Lost a race with a concurrent submit; the unique index decided
            msg = f"Milestone {milestone_id} already has an outstanding refund request"
            raise DuplicateRefundRequestError(msg) from e

        logger.info(
            "refund_request_created",
            extra={"request_id": request["id"], "milestone_id": milestone_id, "amount": amount},
        )
        return request


async def _process(
    *,
    deps: Deps,
    request_id: str,
    target: RefundRequestStatus,
    admin_id: str,
    admin_notes: str | None,
) -> dict[str, Any]:
    request = await deps.db.get_record(collection=COLLECTION, record_id=request_id)
    ensure_transition(request_id=request_id, current=request["status"], target=target)

    data: dict[str, Any] = {
        "status": target.value,
        "processed_by": admin_id,
        "processed_at": deps.now().isoformat(),
    }
    if admin_notes is not None:
        data["admin_notes"] = admin_notes
    return await deps.db.update_record(collection=COLLECTION, record_id=request_id, data=data)


async def approve_refund(
    *,
    deps: Deps,
    request_id: str,
    admin_id: str,
    admin_notes: str | None = None,
) -> dict[str, Any]:
    """Approve a request awaiting review."""
    with span("refund_service.approve_refund"):
        updated = await _process(
            deps=deps,
            request_id=request_id,
            target=RefundRequestStatus.APPROVED,
            admin_id=admin_id,
            admin_notes=admin_notes,
        )
        await deps.db.update_record(
            collection="daily_milestones",
            record_id=updated["milestone_id"],
            data={"refund_status": MilestoneRefundStatus.APPROVED.value},
        )
        logger.info("refund_request_approved", extra={"request_id": request_id, "admin_id": admin_id})
        return updated


async def reject_refund(
    *,
    deps: Deps,
    request_id: str,
    admin_id: str,
    admin_notes: str | None = None,
) -> dict[str, Any]:
    """Reject a request awaiting review. The milestone may be claimed again."""
    with span("refund_service.reject_refund"):
        updated = await _process(
            deps=deps,
            request_id=request_id,
            target=RefundRequestStatus.REJECTED,
            admin_id=admin_id,
            admin_notes=admin_notes,
        )
        await deps.db.update_record(
            collection="daily_milestones",
            record_id=updated["milestone_id"],
            data={"refund_status": MilestoneRefundStatus.ELIGIBLE.value},
        )
        logger.info("refund_request_rejected", extra={"request_id": request_id, "admin_id": admin_id})
        return updated


async def _credit_ledger(*, deps: Deps, user_id: str, amount: int) -> dict[str, Any]:
    ledger = await deps.db.get_first_record(
        collection="refund_ledgers",
        filter_query=f'user_id = "{sanitize_param(user_id)}"',
    )
    if ledger is None:
        return await deps.db.create_record(
            collection="refund_ledgers",
            data={"user_id": user_id, "total_refund_earned": amount},
        )
    return await deps.db.update_record(
        collection="refund_ledgers",
        record_id=ledger["id"],
        data={"total_refund_earned": ledger["total_refund_earned"] + amount},
    )


async def complete_refund(
    *,
    deps: Deps,
    request_id: str,
    admin_id: str,
    admin_notes: str | None = None,
) -> dict[str, Any]:
    """Mark an approved refund as paid and credit the user's ledger exactly once.

    The history row is written first; its unique index on the request id is
    what makes a second completion fail instead of crediting twice.

    Raises:
        RecordNotFoundError: If the request does not exist
        InvalidStateTransitionError: If the request is not approved or was already completed
    """
    with span("refund_service.complete_refund"):
        request = await deps.db.get_record(collection=COLLECTION, record_id=request_id)
        ensure_transition(request_id=request_id, current=request["status"], target=RefundRequestStatus.COMPLETED)

        milestone = await deps.db.get_record(collection="daily_milestones", record_id=request["milestone_id"])
        try:
            await deps.db.create_record(
                collection="refund_history",
                data={
                    "refund_request_id": request_id,
                    "user_id": request["user_id"],
                    "task_id": request["task_id"],
                    "milestone_id": request["milestone_id"],
                    "day_number": milestone["day_number"],
                    "amount": request["amount"],
                    "processed_by": admin_id,
                },
            )
        except DuplicateRecordError as e:
            msg = f"Refund request {request_id} was already completed"
            raise InvalidStateTransitionError(msg) from e

        updated = await _process(
            deps=deps,
            request_id=request_id,
            target=RefundRequestStatus.COMPLETED,
            admin_id=admin_id,
            admin_notes=admin_notes,
        )
        await deps.db.update_record(
            collection="daily_milestones",
            record_id=request["milestone_id"],
            data={"refund_status": MilestoneRefundStatus.COMPLETED.value},
        )
        ledger = await _credit_ledger(deps=deps, user_id=request["user_id"], amount=request["amount"])

        logger.info(
            "refund_request_completed",
            extra={
                "request_id": request_id,
                "amount": request["amount"],
                "ledger_total": ledger["total_refund_earned"],
            },
        )
        return updated


async def list_refund_requests(
    *,
    deps: Deps,
    status: RefundRequestStatus | None = None,
    user_id: str | None = None,
) -> list[dict[str, Any]]:
    """Refund requests for the admin review queue, newest first."""
    conditions = []
    if status is not None:
        conditions.append(f'status = "{status.value}"')
    if user_id is not None:
        conditions.append(f'user_id = "{sanitize_param(user_id)}"')

    return await deps.db.list_records(
        collection=COLLECTION,
        filter_query=" && ".join(conditions),
        sort="-created",
        per_page=500,
    )


async def get_ledger_balance(*, deps: Deps, user_id: str) -> int:
    """Total refunds credited to a user so far."""
    ledger = await deps.db.get_first_record(
        collection="refund_ledgers",
        filter_query=f'user_id = "{sanitize_param(user_id)}"',
    )
    return ledger["total_refund_earned"] if ledger else 0
