"""Writing tasks and their daily content."""

import logging
from datetime import date
from typing import Any

from src.agents.base import Deps
from src.core.db_client import sanitize_param
from src.core.errors import InvalidStateTransitionError
from src.core.logging import span
from src.core.text import count_words
from src.domain.create_models import DailyContentCreate, TaskCreate
from src.domain.task import TaskStatus
from src.services import milestone_scheduler


logger = logging.getLogger(__name__)


async def create_task(
    *,
    deps: Deps,
    user_id: str,
    title: str,
    word_count: int,
    duration_days: int,
    deposit_amount: int,
) -> dict[str, Any]:
    """Create a pending task. The schedule is generated on activation.

    Raises:
        pydantic.ValidationError: If the plan values are not positive
    """
    with span("task_service.create_task"):
        payload = TaskCreate(
            user_id=user_id,
            title=title,
            word_count=word_count,
            duration_days=duration_days,
            deposit_amount=deposit_amount,
        )
        task = await deps.db.create_record(collection="tasks", data=payload.model_dump(mode="json"))
        logger.info("task_created", extra={"task_id": task["id"], "user_id": user_id})
        return task


async def get_task(*, deps: Deps, task_id: str) -> dict[str, Any]:
    """Fetch a task, raising RecordNotFoundError if missing."""
    return await deps.db.get_record(collection="tasks", record_id=task_id)


async def activate_task(*, deps: Deps, task_id: str, start_date: date | None = None) -> list[dict[str, Any]]:
    """Activate a pending task and generate its milestones.

    Args:
        deps: Injected collaborators
        task_id: Task to activate
        start_date: Date of day 1 (defaults to today)

    Returns:
        The generated milestones in day order

    Raises:
        RecordNotFoundError: If the task does not exist
        InvalidStateTransitionError: If the task is not pending
    """
    with span("task_service.activate_task"):
        task = await get_task(deps=deps, task_id=task_id)
        if task["status"] != TaskStatus.PENDING:
            msg = f"Cannot activate: task {task_id} is {task['status']}"
            raise InvalidStateTransitionError(msg)

        day_one = start_date or deps.now().date()
        milestones = await milestone_scheduler.generate_milestones(deps=deps, task=task, start_date=day_one)
        await deps.db.update_record(
            collection="tasks",
            record_id=task_id,
            data={"status": TaskStatus.ACTIVE.value, "start_date": day_one.isoformat()},
        )

        logger.info("task_activated", extra={"task_id": task_id, "start_date": day_one.isoformat()})
        return milestones


async def cancel_task(*, deps: Deps, task_id: str) -> dict[str, Any]:
    """Cancel a task that has not been completed."""
    with span("task_service.cancel_task"):
        task = await get_task(deps=deps, task_id=task_id)
        if task["status"] not in (TaskStatus.PENDING, TaskStatus.ACTIVE):
            msg = f"Cannot cancel: task {task_id} is {task['status']}"
            raise InvalidStateTransitionError(msg)
        return await deps.db.update_record(
            collection="tasks",
            record_id=task_id,
            data={"status": TaskStatus.CANCELLED.value},
        )


def _content_filter(task_id: str, day_number: int) -> str:
    return f'task_id = "{sanitize_param(task_id)}" && day_number = "{int(day_number)}"'


async def get_daily_content(*, deps: Deps, task_id: str, day_number: int) -> dict[str, Any] | None:
    """The saved text for one day, or None if nothing was saved."""
    return await deps.db.get_first_record(collection="daily_contents", filter_query=_content_filter(task_id, day_number))


async def save_daily_content(
    *,
    deps: Deps,
    task_id: str,
    user_id: str,
    day_number: int,
    content: str,
) -> dict[str, Any]:
    """Save a day's text, overwriting whatever was saved before."""
    with span("task_service.save_daily_content"):
        word_count = count_words(content)
        existing = await get_daily_content(deps=deps, task_id=task_id, day_number=day_number)
        if existing is not None:
            return await deps.db.update_record(
                collection="daily_contents",
                record_id=existing["id"],
                data={"content": content, "word_count": word_count},
            )

        payload = DailyContentCreate(
            task_id=task_id,
            user_id=user_id,
            day_number=day_number,
            content=content,
            word_count=word_count,
        )
        return await deps.db.create_record(collection="daily_contents", data=payload.model_dump())


async def get_prior_content(*, deps: Deps, task_id: str, before_day: int) -> str:
    """All text saved for earlier days of the task, joined as separate paragraphs."""
    records = await deps.db.list_records(
        collection="daily_contents",
        filter_query=f'task_id = "{sanitize_param(task_id)}" && day_number < "{int(before_day)}"',
        sort="day_number",
        per_page=1000,
    )
    return "\n\n".join(r["content"] for r in records)
