"""Append-only audit log of validation attempts."""

import logging
from typing import Any

from src.agents.base import Deps
from src.core.db_client import sanitize_param
from src.core.logging import span
from src.domain.evaluation import (
    EvaluationRecord,
    EvaluationRecordCreate,
    EvaluationVerdict,
    Violation,
    WordInvalid,
    dump_violations,
)


logger = logging.getLogger(__name__)

COLLECTION = "evaluation_records"


async def record_evaluation(*, deps: Deps, record: EvaluationRecordCreate) -> dict[str, Any]:
    """Insert one audit entry. Entries are never updated afterwards."""
    with span("evaluation_log.record_evaluation"):
        data = record.model_dump(mode="json", exclude={"violations"})
        data["violations"] = dump_violations(record.violations)

        created = await deps.db.create_record(collection=COLLECTION, data=data)

        logger.info(
            "evaluation_recorded",
            extra={
                "evaluation_id": created["id"],
                "task_id": record.task_id,
                "verdict": record.verdict.value,
                "violation_count": len(record.violations),
            },
        )
        return created


async def record_dictionary_violation(
    *,
    deps: Deps,
    task_id: str,
    user_id: str,
    milestone_id: str | None,
    invalid_words: list[WordInvalid],
    total_words: int,
) -> dict[str, Any]:
    """Log an attempt to use words the validator rejected."""
    words = ", ".join(v.word for v in invalid_words)
    return await record_evaluation(
        deps=deps,
        record=EvaluationRecordCreate(
            task_id=task_id,
            user_id=user_id,
            milestone_id=milestone_id,
            evaluation_date=deps.today_iso(),
            content_analyzed=f"Invalid words attempted: {words}",
            word_count_actual=total_words,
            violations=list(invalid_words),
            verdict=EvaluationVerdict.DICTIONARY_VIOLATION,
            reasoning=f"User attempted to use {len(invalid_words)} invalid words: {words}",
        ),
    )


async def record_repetition_violation(
    *,
    deps: Deps,
    task_id: str,
    user_id: str,
    milestone_id: str | None,
    content: str,
    violations: list[Violation],
) -> dict[str, Any]:
    """Log a batch of repetition violations with the content that caused them."""
    kinds = ", ".join(dict.fromkeys(v.type for v in violations))
    return await record_evaluation(
        deps=deps,
        record=EvaluationRecordCreate(
            task_id=task_id,
            user_id=user_id,
            milestone_id=milestone_id,
            evaluation_date=deps.today_iso(),
            content_analyzed=content,
            word_count_actual=len(content.split()),
            violations=violations,
            verdict=EvaluationVerdict.REPETITION_VIOLATION,
            reasoning=f"Repetition detected: {kinds}",
        ),
    )


async def list_evaluations(
    *,
    deps: Deps,
    task_id: str,
    milestone_id: str | None = None,
) -> list[EvaluationRecord]:
    """Return the audit trail for a task (optionally one milestone), oldest first."""
    with span("evaluation_log.list_evaluations"):
        filter_query = f'task_id = "{sanitize_param(task_id)}"'
        if milestone_id is not None:
            filter_query += f' && milestone_id = "{sanitize_param(milestone_id)}"'

        records = await deps.db.list_records(
            collection=COLLECTION,
            filter_query=filter_query,
            sort="created",
            per_page=500,
        )
        return [EvaluationRecord.model_validate(r) for r in records]
