"""Full-document submission pipeline and the daily close-out.

A submission runs word validation, repetition detection and quality
evaluation in that order and stops at the first stage that fails. Only a
submission that clears all three closes the day and opens a refund claim.
"""

import logging
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from src.agents.base import Deps
from src.core.errors import DataIntegrityError, InvalidStateTransitionError, RecordNotFoundError
from src.core.logging import span
from src.core.text import strip_markup
from src.domain.evaluation import Violation
from src.domain.task import TaskStatus
from src.services import (
    evaluation_service,
    milestone_scheduler,
    refund_service,
    repetition_detector,
    task_service,
    word_validator,
)
from src.services.evaluation_service import QualityEvaluation
from src.services.repetition_detector import RepetitionReport
from src.services.word_validator import WordValidationResult


logger = logging.getLogger(__name__)


class SubmissionStage(StrEnum):
    """Stage a submission stopped at (``complete`` when everything passed)."""

    DICTIONARY = "dictionary"
    REPETITION = "repetition"
    QUALITY = "quality"
    COMPLETE = "complete"


class SubmissionResult(BaseModel):
    """Outcome of a full-document submission."""

    passed: bool
    stage: SubmissionStage
    message: str
    violations: list[Violation] = Field(default_factory=list)
    word_results: list[WordValidationResult] = Field(default_factory=list)
    repetition: RepetitionReport | None = None
    quality: QualityEvaluation | None = None
    milestone: dict[str, Any] | None = None
    refund_request: dict[str, Any] | None = None


async def _load_submission(
    *,
    deps: Deps,
    task_id: str,
    user_id: str,
    day_number: int,
    content: str | None,
) -> tuple[dict[str, Any], dict[str, Any], str]:
    task = await task_service.get_task(deps=deps, task_id=task_id)
    if task["user_id"] != user_id:
        msg = f"Task {task_id} not found for user {user_id}"
        raise RecordNotFoundError(msg)
    if task["status"] != TaskStatus.ACTIVE:
        msg = f"Cannot submit: task {task_id} is {task['status']}"
        raise InvalidStateTransitionError(msg)

    milestone = await milestone_scheduler.get_milestone(deps=deps, task_id=task_id, day_number=day_number)
    if milestone["is_closed"]:
        msg = f"Cannot submit: day {day_number} of task {task_id} is already closed"
        raise InvalidStateTransitionError(msg)
    await milestone_scheduler.ensure_previous_day_closed(deps=deps, milestone=milestone)

    if content is not None:
        await task_service.save_daily_content(
            deps=deps, task_id=task_id, user_id=user_id, day_number=day_number, content=content
        )
        return task, milestone, content

    saved = await task_service.get_daily_content(deps=deps, task_id=task_id, day_number=day_number)
    if saved is None:
        msg = f"No content saved for task {task_id} day {day_number}"
        raise RecordNotFoundError(msg)
    return task, milestone, saved["content"]


async def _run_stages(
    *,
    deps: Deps,
    task: dict[str, Any],
    milestone: dict[str, Any],
    user_id: str,
    raw_content: str,
) -> SubmissionResult:
    """Run dictionary, repetition and quality checks, stopping at the first failure."""
    task_id = task["id"]
    milestone_id = milestone["id"]
    clean_content = strip_markup(raw_content)

    word_results = await word_validator.validate_words(
        deps=deps,
        words=clean_content.split(),
        task_id=task_id,
        user_id=user_id,
        milestone_id=milestone_id,
    )
    invalid = word_validator.invalid_word_violations(word_results)
    if invalid:
        words = ", ".join(dict.fromkeys(v.word for v in invalid))
        logger.info("submission_rejected", extra={"task_id": task_id, "stage": "dictionary"})
        return SubmissionResult(
            passed=False,
            stage=SubmissionStage.DICTIONARY,
            message=f"Invalid words found: {words}",
            violations=invalid,
            word_results=word_results,
        )

    prior_content = strip_markup(
        await task_service.get_prior_content(deps=deps, task_id=task_id, before_day=milestone["day_number"])
    )
    repetition = await repetition_detector.detect_repetition(
        deps=deps,
        content=clean_content,
        existing_content=prior_content,
        task_id=task_id,
        user_id=user_id,
        milestone_id=milestone_id,
    )
    if not repetition.is_valid:
        logger.info("submission_rejected", extra={"task_id": task_id, "stage": "repetition"})
        return SubmissionResult(
            passed=False,
            stage=SubmissionStage.REPETITION,
            message=repetition.message,
            violations=repetition.violations,
            word_results=word_results,
            repetition=repetition,
        )

    quality = await evaluation_service.evaluate_quality(
        deps=deps,
        content=raw_content,
        title=task["title"],
        target_words=milestone_scheduler.effective_target(milestone),
        task_id=task_id,
        user_id=user_id,
        milestone_id=milestone_id,
        word_validity=[r.is_valid for r in word_results],
    )
    if not quality.passed:
        logger.info("submission_rejected", extra={"task_id": task_id, "stage": "quality"})
        return SubmissionResult(
            passed=False,
            stage=SubmissionStage.QUALITY,
            message=f"Target not met: {quality.reasoning}",
            violations=quality.violations,
            word_results=word_results,
            repetition=repetition,
            quality=quality,
        )

    return SubmissionResult(
        passed=True,
        stage=SubmissionStage.COMPLETE,
        message="Submission accepted",
        violations=quality.violations,
        word_results=word_results,
        repetition=repetition,
        quality=quality,
    )


async def submit_day(
    *,
    deps: Deps,
    task_id: str,
    user_id: str,
    day_number: int,
    content: str | None = None,
    request_refund: bool = True,
) -> SubmissionResult:
    """Validate a day's writing and, if it passes, close the day and claim the refund.

    Args:
        deps: Injected collaborators
        task_id: Task being written
        user_id: Owner of the task
        day_number: Day being submitted
        content: New text to save first; None submits the text already saved
        request_refund: Open a refund claim when the submission passes

    Returns:
        SubmissionResult naming the offending words, sentences or paragraphs on failure

    Raises:
        RecordNotFoundError: If the task, day or saved content does not exist
        InvalidStateTransitionError: If the task is not active, the day is closed
            or the previous day is still open
    """
    with span("submission_service.submit_day"):
        task, milestone, raw_content = await _load_submission(
            deps=deps, task_id=task_id, user_id=user_id, day_number=day_number, content=content
        )

        outcome = await _run_stages(deps=deps, task=task, milestone=milestone, user_id=user_id, raw_content=raw_content)
        if not outcome.passed:
            return outcome

        words_written = outcome.quality.actual_word_count
        closed = await milestone_scheduler.record_day(
            deps=deps, milestone_id=milestone["id"], words_written=words_written, validation_passed=True
        )

        refund_request = None
        if request_refund and closed["refund_amount"] > 0:
            refund_request = await refund_service.create_refund_request(
                deps=deps, milestone_id=milestone["id"], user_id=user_id
            )

        logger.info(
            "submission_accepted",
            extra={"task_id": task_id, "day_number": day_number, "words": words_written},
        )
        return outcome.model_copy(update={"milestone": closed, "refund_request": refund_request})


async def _close_milestone(*, deps: Deps, milestone: dict[str, Any]) -> bool:
    task = await task_service.get_task(deps=deps, task_id=milestone["task_id"])
    if task["status"] != TaskStatus.ACTIVE:
        return False

    saved = await task_service.get_daily_content(
        deps=deps, task_id=milestone["task_id"], day_number=milestone["day_number"]
    )
    words_written = saved["word_count"] if saved else 0

    # Saved text goes through the same stages as a submission before it can count
    validation_passed = False
    if saved:
        outcome = await _run_stages(
            deps=deps, task=task, milestone=milestone, user_id=milestone["user_id"], raw_content=saved["content"]
        )
        validation_passed = outcome.passed

    await milestone_scheduler.record_day(
        deps=deps, milestone_id=milestone["id"], words_written=words_written, validation_passed=validation_passed
    )
    return True


async def close_overdue_days(*, deps: Deps, today: date | None = None) -> int:
    """Close every open day whose date has passed so deficits roll forward.

    Days are closed in day order so each one sees the deficit carried in from
    the day before. When a day cannot be closed, the later days of that task
    are left open for the next run. Returns the number of days closed.

    Raises:
        DatabaseError: If the store fails; the remaining days are not attempted
    """
    with span("submission_service.close_overdue_days"):
        cutoff = (today or deps.now().date()).isoformat()
        overdue = await deps.db.list_records(
            collection="daily_milestones",
            filter_query=f'is_closed = "false" && target_date < "{cutoff}"',
            sort="day_number",
            per_page=1000,
        )

        closed_count = 0
        blocked_tasks: set[str] = set()
        for stale in overdue:
            if stale["task_id"] in blocked_tasks:
                logger.info("close_out_skipped", extra={"milestone_id": stale["id"], "task_id": stale["task_id"]})
                continue
            try:
                # Re-read: closing the previous day updated words_carried_forward
                milestone = await deps.db.get_record(collection="daily_milestones", record_id=stale["id"])
                if await _close_milestone(deps=deps, milestone=milestone):
                    closed_count += 1
            except DataIntegrityError:
                logger.exception("close_out_failed", extra={"milestone_id": stale["id"], "task_id": stale["task_id"]})
                blocked_tasks.add(stale["task_id"])

        logger.info(
            "close_out_complete",
            extra={"closed": closed_count, "candidates": len(overdue), "blocked_tasks": len(blocked_tasks)},
        )
        return closed_count
