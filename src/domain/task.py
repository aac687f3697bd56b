"""Writing task domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskStatus(StrEnum):
    """Task lifecycle status."""

    PENDING = "pending"  # Deposit made, schedule not generated yet
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Task(BaseModel):
    """Writing pledge data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    user_id: str = Field(..., description="Owner of the pledge")
    title: str = Field(..., description="Task title the writing must be relevant to")
    word_count: int = Field(..., gt=0, description="Total words pledged over the whole task")
    duration_days: int = Field(..., gt=0, description="Number of daily milestones")
    deposit_amount: int = Field(..., ge=0, description="Amount deposited against the pledge")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle status")
    start_date: str | None = Field(default=None, description="Date of day 1 (ISO format), set on activation")


class DailyContent(BaseModel):
    """Text written for one day of a task."""

    id: str
    created: str
    updated: str
    task_id: str
    user_id: str
    day_number: int
    content: str
    word_count: int = 0
