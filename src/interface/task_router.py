"""Task, daily content and submission endpoints."""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.agents.base import Deps
from src.domain.milestone import DailyMilestone
from src.domain.task import DailyContent, Task
from src.interface.dependencies import get_deps
from src.services import evaluation_log, milestone_scheduler, submission_service, task_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class CreateTaskRequest(BaseModel):
    user_id: str
    title: str
    word_count: int = Field(..., gt=0)
    duration_days: int = Field(..., gt=0)
    deposit_amount: int = Field(..., ge=0)


class ActivateTaskRequest(BaseModel):
    start_date: date | None = None


class SaveContentRequest(BaseModel):
    user_id: str
    content: str


class SubmitDayRequest(BaseModel):
    user_id: str
    content: str | None = Field(default=None, description="New text; omit to submit the saved text")
    request_refund: bool = True


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(body: CreateTaskRequest, deps: Deps = Depends(get_deps)) -> Task:
    """Create a pending writing pledge."""
    record = await task_service.create_task(
        deps=deps,
        user_id=body.user_id,
        title=body.title,
        word_count=body.word_count,
        duration_days=body.duration_days,
        deposit_amount=body.deposit_amount,
    )
    return Task.model_validate(record)


@router.get("/{task_id}")
async def get_task(task_id: str, deps: Deps = Depends(get_deps)) -> Task:
    """Fetch a task."""
    return Task.model_validate(await task_service.get_task(deps=deps, task_id=task_id))


@router.post("/{task_id}/activate")
async def activate_task(
    task_id: str,
    body: ActivateTaskRequest | None = None,
    deps: Deps = Depends(get_deps),
) -> list[DailyMilestone]:
    """Start the pledge and generate one milestone per day."""
    start_date = body.start_date if body else None
    milestones = await task_service.activate_task(deps=deps, task_id=task_id, start_date=start_date)
    return [DailyMilestone.model_validate(m) for m in milestones]


@router.post("/{task_id}/cancel")
async def cancel_task(task_id: str, deps: Deps = Depends(get_deps)) -> Task:
    """Cancel a pending or active task."""
    return Task.model_validate(await task_service.cancel_task(deps=deps, task_id=task_id))


@router.get("/{task_id}/milestones")
async def list_milestones(task_id: str, deps: Deps = Depends(get_deps)) -> list[DailyMilestone]:
    """All days of a task in order."""
    milestones = await milestone_scheduler.list_milestones(deps=deps, task_id=task_id)
    return [DailyMilestone.model_validate(m) for m in milestones]


@router.put("/{task_id}/days/{day_number}/content")
async def save_content(
    task_id: str,
    day_number: int,
    body: SaveContentRequest,
    deps: Deps = Depends(get_deps),
) -> DailyContent:
    """Save the day's draft without validating it."""
    await milestone_scheduler.get_milestone(deps=deps, task_id=task_id, day_number=day_number)
    record = await task_service.save_daily_content(
        deps=deps,
        task_id=task_id,
        user_id=body.user_id,
        day_number=day_number,
        content=body.content,
    )
    return DailyContent.model_validate(record)


@router.post("/{task_id}/days/{day_number}/submit")
async def submit_day(
    task_id: str,
    day_number: int,
    body: SubmitDayRequest,
    deps: Deps = Depends(get_deps),
) -> dict[str, Any]:
    """Run the full validation pipeline for one day."""
    result = await submission_service.submit_day(
        deps=deps,
        task_id=task_id,
        user_id=body.user_id,
        day_number=day_number,
        content=body.content,
        request_refund=body.request_refund,
    )
    return result.model_dump(mode="json", by_alias=True)


@router.get("/{task_id}/evaluations")
async def list_evaluations(
    task_id: str,
    milestone_id: str | None = None,
    deps: Deps = Depends(get_deps),
) -> list[dict[str, Any]]:
    """Audit trail of every validation attempt for the task."""
    records = await evaluation_log.list_evaluations(deps=deps, task_id=task_id, milestone_id=milestone_id)
    return [r.model_dump(mode="json") for r in records]
