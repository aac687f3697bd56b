"""Domain models and DTOs."""

from src.domain.create_models import DailyContentCreate, RefundRequestCreate, TaskCreate
from src.domain.evaluation import (
    EvaluationRecord,
    EvaluationRecordCreate,
    EvaluationVerdict,
    OracleParseFailure,
    ParagraphRepetition,
    SentenceRepetition,
    Violation,
    ViolationType,
    WordInvalid,
    WordRepetition,
)
from src.domain.milestone import DailyMilestone, EvaluationStatus, MilestoneRefundStatus, MilestoneStatus
from src.domain.refund import OPEN_REFUND_STATUSES, RefundLedger, RefundRequest, RefundRequestStatus
from src.domain.task import DailyContent, Task, TaskStatus


__all__ = [
    "OPEN_REFUND_STATUSES",
    "DailyContent",
    "DailyContentCreate",
    "DailyMilestone",
    "EvaluationRecord",
    "EvaluationRecordCreate",
    "EvaluationStatus",
    "EvaluationVerdict",
    "MilestoneRefundStatus",
    "MilestoneStatus",
    "OracleParseFailure",
    "ParagraphRepetition",
    "RefundLedger",
    "RefundRequest",
    "RefundRequestCreate",
    "RefundRequestStatus",
    "SentenceRepetition",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "Violation",
    "ViolationType",
    "WordInvalid",
    "WordRepetition",
]
