"""Pydantic models for creating records in database."""

from pydantic import BaseModel, Field, field_validator

from src.domain.task import TaskStatus


class TaskCreate(BaseModel):
    """Pydantic model for creating a writing task record."""

    user_id: str = Field(..., description="Owner of the pledge")
    title: str = Field(..., description="Task title")
    word_count: int = Field(..., gt=0, description="Total words pledged")
    duration_days: int = Field(..., gt=0, description="Number of days")
    deposit_amount: int = Field(..., ge=0, description="Deposit held against the pledge")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Initial status")

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        """Reject empty titles; the quality oracle judges relevance against it."""
        if not v.strip():
            msg = "Title must not be empty"
            raise ValueError(msg)
        return v.strip()


class DailyContentCreate(BaseModel):
    """Pydantic model for creating a daily content record."""

    task_id: str
    user_id: str
    day_number: int = Field(..., gt=0)
    content: str
    word_count: int = Field(default=0, ge=0)


class RefundRequestCreate(BaseModel):
    """Pydantic model for creating a refund request record."""

    task_id: str
    milestone_id: str
    user_id: str
    amount: int = Field(..., gt=0)
    status: str = "awaiting_review"
