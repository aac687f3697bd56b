"""Daily targets and deficit carry-forward.

Every day has the same base quota, ``ceil(total_words / duration_days)``.
A day's effective target is its base quota plus the deficit carried in from
the day before. Missed words are never forgiven, only deferred, and there is
no cap on how far the deficit can grow.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from src.agents.base import Deps
from src.core.db_client import sanitize_param
from src.core.errors import InvalidStateTransitionError, RecordNotFoundError
from src.core.logging import span
from src.domain.milestone import EvaluationStatus, MilestoneRefundStatus, MilestoneStatus
from src.domain.task import TaskStatus


logger = logging.getLogger(__name__)

COLLECTION = "daily_milestones"


@dataclass(frozen=True)
class DayResult:
    """Outcome of closing one day."""

    words_deficit: int
    next_day_target: int
    completed: bool


def base_quota(*, total_words: int, duration_days: int) -> int:
    """Words required every day before any carry-forward."""
    if total_words <= 0 or duration_days <= 0:
        msg = f"Invalid plan: {total_words} words over {duration_days} days"
        raise ValueError(msg)
    return math.ceil(total_words / duration_days)


def daily_refund_amount(*, deposit_amount: int, duration_days: int) -> int:
    """Share of the deposit refundable per completed day."""
    return deposit_amount // duration_days


def compute_day_result(*, required_words: int, words_carried_forward: int, words_written: int, quota: int) -> DayResult:
    """Apply the carry-forward rule to one day's writing."""
    effective_target = required_words + words_carried_forward
    words_deficit = max(0, effective_target - words_written)
    return DayResult(
        words_deficit=words_deficit,
        next_day_target=quota + words_deficit,
        completed=words_written >= effective_target,
    )


def build_milestone_plan(*, task: dict[str, Any], start_date: date) -> list[dict[str, Any]]:
    """Milestone records for days 1..duration of an activated task."""
    duration_days = task["duration_days"]
    quota = base_quota(total_words=task["word_count"], duration_days=duration_days)
    refund_amount = daily_refund_amount(deposit_amount=task["deposit_amount"], duration_days=duration_days)

    return [
        {
            "task_id": task["id"],
            "user_id": task["user_id"],
            "day_number": day_number,
            "target_date": (start_date + timedelta(days=day_number - 1)).isoformat(),
            "required_words": quota,
            "words_carried_forward": 0,
            "words_written": 0,
            "status": MilestoneStatus.PENDING.value,
            "evaluation_status": EvaluationStatus.PENDING.value,
            "words_deficit": 0,
            "next_day_target": quota,
            "flagged_for_review": False,
            "refund_amount": refund_amount,
            "refund_status": MilestoneRefundStatus.PENDING.value,
            "is_closed": False,
            "validation_passed": False,
        }
        for day_number in range(1, duration_days + 1)
    ]


def effective_target(milestone: dict[str, Any]) -> int:
    """Words the user must write on this day."""
    return milestone["required_words"] + milestone["words_carried_forward"]


async def generate_milestones(*, deps: Deps, task: dict[str, Any], start_date: date) -> list[dict[str, Any]]:
    """Create the whole schedule for a task in one batch."""
    with span("milestone_scheduler.generate_milestones"):
        plan = build_milestone_plan(task=task, start_date=start_date)
        milestones = await deps.db.create_records(collection=COLLECTION, items=plan)

        logger.info(
            "milestones_generated",
            extra={"task_id": task["id"], "count": len(milestones), "base_quota": plan[0]["required_words"]},
        )
        return milestones


async def get_milestone(*, deps: Deps, task_id: str, day_number: int) -> dict[str, Any]:
    """Fetch the milestone for one day of a task.

    Raises:
        RecordNotFoundError: If the task has no such day
    """
    milestone = await deps.db.get_first_record(
        collection=COLLECTION,
        filter_query=f'task_id = "{sanitize_param(task_id)}" && day_number = "{int(day_number)}"',
    )
    if milestone is None:
        msg = f"Milestone not found for task {task_id} day {day_number}"
        raise RecordNotFoundError(msg)
    return milestone


async def list_milestones(*, deps: Deps, task_id: str) -> list[dict[str, Any]]:
    """All milestones of a task in day order."""
    return await deps.db.list_records(
        collection=COLLECTION,
        filter_query=f'task_id = "{sanitize_param(task_id)}"',
        sort="day_number",
        per_page=1000,
    )


async def ensure_previous_day_closed(*, deps: Deps, milestone: dict[str, Any]) -> None:
    """Days close in order, so the previous day must be closed before this one.

    Raises:
        InvalidStateTransitionError: If the previous day is still open
    """
    day_number = int(milestone["day_number"])
    if day_number == 1:
        return

    previous = await get_milestone(deps=deps, task_id=milestone["task_id"], day_number=day_number - 1)
    if not previous["is_closed"]:
        msg = f"Cannot close day {day_number} of task {milestone['task_id']}: day {day_number - 1} is still open"
        raise InvalidStateTransitionError(msg)


async def _complete_task_if_done(*, deps: Deps, task_id: str) -> None:
    milestones = await list_milestones(deps=deps, task_id=task_id)
    if milestones and all(m["status"] == MilestoneStatus.COMPLETED for m in milestones):
        await deps.db.update_record(collection="tasks", record_id=task_id, data={"status": TaskStatus.COMPLETED.value})
        logger.info("task_completed", extra={"task_id": task_id})


async def record_day(
    *, deps: Deps, milestone_id: str, words_written: int, validation_passed: bool = False
) -> dict[str, Any]:
    """Close a day: store words written, compute the deficit and roll it forward.

    The following day's ``words_carried_forward`` is set to this day's
    deficit. A day can only be closed once, and only after the day before it.
    ``validation_passed`` records that the day's text cleared every
    validation stage, which refund claims require.

    Raises:
        RecordNotFoundError: If the milestone does not exist
        InvalidStateTransitionError: If the day was already closed or the previous day is open
        ValueError: If words_written is negative
    """
    with span("milestone_scheduler.record_day"):
        if words_written < 0:
            msg = f"words_written must not be negative, got {words_written}"
            raise ValueError(msg)

        milestone = await deps.db.get_record(collection=COLLECTION, record_id=milestone_id)
        if milestone["is_closed"]:
            msg = f"Cannot record day: milestone {milestone_id} is already closed"
            raise InvalidStateTransitionError(msg)
        await ensure_previous_day_closed(deps=deps, milestone=milestone)

        task = await deps.db.get_record(collection="tasks", record_id=milestone["task_id"])
        quota = base_quota(total_words=task["word_count"], duration_days=task["duration_days"])
        result = compute_day_result(
            required_words=milestone["required_words"],
            words_carried_forward=milestone["words_carried_forward"],
            words_written=words_written,
            quota=quota,
        )

        data = {
            "words_written": words_written,
            "words_deficit": result.words_deficit,
            "next_day_target": result.next_day_target,
            "status": (MilestoneStatus.COMPLETED if result.completed else MilestoneStatus.PENDING).value,
            "is_closed": True,
            "validation_passed": validation_passed,
        }
        # A target_met verdict alone leaves nothing to claim
        if not validation_passed and milestone["refund_status"] == MilestoneRefundStatus.ELIGIBLE:
            data["refund_status"] = MilestoneRefundStatus.PENDING.value
        updated = await deps.db.update_record(collection=COLLECTION, record_id=milestone_id, data=data)

        next_milestone = await deps.db.get_first_record(
            collection=COLLECTION,
            filter_query=(
                f'task_id = "{sanitize_param(milestone["task_id"])}" && '
                f'day_number = "{int(milestone["day_number"]) + 1}"'
            ),
        )
        if next_milestone is not None:
            await deps.db.update_record(
                collection=COLLECTION,
                record_id=next_milestone["id"],
                data={"words_carried_forward": result.words_deficit},
            )

        logger.info(
            "day_recorded",
            extra={
                "task_id": milestone["task_id"],
                "day_number": milestone["day_number"],
                "words_written": words_written,
                "words_deficit": result.words_deficit,
                "next_day_target": result.next_day_target,
                "completed": result.completed,
            },
        )

        if result.completed:
            await _complete_task_if_done(deps=deps, task_id=milestone["task_id"])

        return updated
