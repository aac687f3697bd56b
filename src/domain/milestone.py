"""Daily milestone domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class MilestoneStatus(StrEnum):
    """Whether the day's effective target has been written."""

    PENDING = "pending"
    COMPLETED = "completed"


class EvaluationStatus(StrEnum):
    """Outcome of the quality evaluation for a day."""

    PENDING = "pending"
    TARGET_MET = "target_met"
    TARGET_NOT_MET = "target_not_met"


class MilestoneRefundStatus(StrEnum):
    """Refund progress tracked on the milestone itself."""

    PENDING = "pending"
    ELIGIBLE = "eligible"
    APPROVED = "approved"
    COMPLETED = "completed"


class DailyMilestone(BaseModel):
    """One day of a writing task."""

    id: str = Field(..., description="Unique milestone ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    task_id: str
    user_id: str
    day_number: int = Field(..., gt=0)
    target_date: str = Field(..., description="Calendar date of this day (ISO format)")
    required_words: int = Field(..., description="Base daily quota")
    words_carried_forward: int = Field(default=0, description="Deficit rolled in from the previous day")
    words_written: int = 0
    status: MilestoneStatus = MilestoneStatus.PENDING
    evaluation_status: EvaluationStatus = EvaluationStatus.PENDING
    content_quality_score: int | None = Field(default=None, ge=0, le=100)
    ai_feedback: str | None = None
    rule_compliance: dict[str, Any] | None = None
    words_deficit: int = 0
    next_day_target: int = 0
    flagged_for_review: bool = False
    refund_amount: int = 0
    refund_status: MilestoneRefundStatus = MilestoneRefundStatus.PENDING
    is_closed: bool = Field(default=False, description="Day result recorded and deficit rolled forward")
    validation_passed: bool = Field(
        default=False, description="Closed with text that cleared dictionary, repetition and quality checks"
    )
    evaluated_at: str | None = None

    @property
    def effective_target(self) -> int:
        """Words required today: the base quota plus any carried deficit."""
        return self.required_words + self.words_carried_forward
