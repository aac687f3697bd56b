"""Content-quality evaluation through the external oracle.

The oracle's answer is parsed strictly into ``Parsed`` or ``Malformed``.
A malformed answer, or an oracle that cannot be reached, never fails the
pipeline: the verdict then falls back to word-count compliance alone and the
submission is flagged for manual review.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from src.agents.base import Deps
from src.agents.quality_oracle import OracleRequest
from src.core.config import constants
from src.core.errors import OracleUnavailableError
from src.core.logging import span
from src.core.text import count_words, strip_markup
from src.domain.evaluation import EvaluationRecordCreate, EvaluationVerdict, OracleParseFailure, Violation
from src.domain.milestone import EvaluationStatus, MilestoneRefundStatus
from src.services import evaluation_log
from src.services.content_metrics import ContentMetrics, measure_content


logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_RAW_EXCERPT_LENGTH = 500

PARSE_FAILURE_VIOLATION = "AI response parsing failed"
PARSE_FAILURE_ISSUE = "AI evaluation failed - requires manual review"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QualityChecks(_CamelModel):
    """Boolean checks reported by the oracle."""

    has_spam: bool
    has_repetition: bool
    is_relevant: bool
    is_original: bool


class OracleEvaluation(_CamelModel):
    """The oracle's answer. Every field is required."""

    verdict: Literal["target_met", "target_not_met"]
    word_count_compliant: bool
    quality_score: int = Field(..., ge=0, le=100)
    rule_violations: list[str]
    quality_checks: QualityChecks
    reasoning: str
    flagged_issues: list[str]
    recommendations: str

    @field_validator("quality_score", mode="before")
    @classmethod
    def round_fractional_score(cls, v: Any) -> Any:
        """Accept scores like 72.5 by rounding; anything else is validated as-is."""
        if isinstance(v, float):
            return round(v)
        return v


@dataclass(frozen=True)
class Parsed:
    """The oracle answered with a usable evaluation."""

    evaluation: OracleEvaluation


@dataclass(frozen=True)
class Malformed:
    """The oracle's answer could not be used."""

    raw_text: str
    error: str


ParseResult = Parsed | Malformed


class QualityEvaluation(_CamelModel):
    """Verdict produced for one submission."""

    verdict: EvaluationStatus
    word_count_compliant: bool
    quality_score: int
    rule_violations: list[str]
    quality_checks: QualityChecks
    reasoning: str
    flagged_issues: list[str]
    recommendations: str
    flagged_for_review: bool
    used_fallback: bool
    actual_word_count: int
    target_words: int
    violations: list[Violation] = Field(default_factory=list)
    content_metrics: ContentMetrics | None = None

    @property
    def passed(self) -> bool:
        return self.verdict == EvaluationStatus.TARGET_MET

    def to_response(self) -> dict[str, Any]:
        """Serialize in the oracle's camelCase schema for API consumers."""
        return self.model_dump(mode="json", by_alias=True)


def parse_oracle_response(raw_text: str) -> ParseResult:
    """Parse the oracle's text strictly; never raises."""
    text = raw_text.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except ValueError as e:
        return Malformed(raw_text=raw_text, error=f"invalid JSON: {e}")

    if not isinstance(payload, dict):
        return Malformed(raw_text=raw_text, error=f"expected a JSON object, got {type(payload).__name__}")

    try:
        return Parsed(evaluation=OracleEvaluation.model_validate(payload))
    except ValidationError as e:
        return Malformed(raw_text=raw_text, error=f"schema mismatch: {e.error_count()} errors")


def should_flag(*, flagged_issues: list[str], quality_score: int, rule_violations: list[str]) -> bool:
    """Submissions that need a human look regardless of verdict."""
    return (
        bool(flagged_issues)
        or quality_score < constants.LOW_QUALITY_SCORE
        or len(rule_violations) > constants.MAX_RULE_VIOLATIONS
    )


def fallback_evaluation(*, actual_word_count: int, target_words: int, malformed: Malformed) -> QualityEvaluation:
    """Deterministic verdict from word-count compliance alone."""
    compliant = actual_word_count >= target_words
    rule_violations = [PARSE_FAILURE_VIOLATION]
    flagged_issues = [PARSE_FAILURE_ISSUE]
    return QualityEvaluation(
        verdict=EvaluationStatus.TARGET_MET if compliant else EvaluationStatus.TARGET_NOT_MET,
        word_count_compliant=compliant,
        quality_score=constants.FALLBACK_QUALITY_SCORE,
        rule_violations=rule_violations,
        quality_checks=QualityChecks(has_spam=False, has_repetition=False, is_relevant=True, is_original=True),
        reasoning="Automated evaluation due to AI parsing error",
        flagged_issues=flagged_issues,
        recommendations="Manual review recommended",
        flagged_for_review=should_flag(
            flagged_issues=flagged_issues,
            quality_score=constants.FALLBACK_QUALITY_SCORE,
            rule_violations=rule_violations,
        ),
        used_fallback=True,
        actual_word_count=actual_word_count,
        target_words=target_words,
        violations=[
            OracleParseFailure(
                raw_response=malformed.raw_text[:_RAW_EXCERPT_LENGTH],
                message=f"Quality evaluation unavailable ({malformed.error}); verdict based on word count only",
            )
        ],
    )


def _from_oracle(*, evaluation: OracleEvaluation, actual_word_count: int, target_words: int) -> QualityEvaluation:
    return QualityEvaluation(
        verdict=EvaluationStatus(evaluation.verdict),
        word_count_compliant=evaluation.word_count_compliant,
        quality_score=evaluation.quality_score,
        rule_violations=evaluation.rule_violations,
        quality_checks=evaluation.quality_checks,
        reasoning=evaluation.reasoning,
        flagged_issues=evaluation.flagged_issues,
        recommendations=evaluation.recommendations,
        flagged_for_review=should_flag(
            flagged_issues=evaluation.flagged_issues,
            quality_score=evaluation.quality_score,
            rule_violations=evaluation.rule_violations,
        ),
        used_fallback=False,
        actual_word_count=actual_word_count,
        target_words=target_words,
    )


async def _ask_oracle(*, deps: Deps, request: OracleRequest) -> ParseResult:
    try:
        raw_text = await deps.oracle.evaluate(request)
    except OracleUnavailableError as e:
        return Malformed(raw_text="", error=str(e))
    return parse_oracle_response(raw_text)


async def _update_milestone(*, deps: Deps, milestone_id: str, evaluation: QualityEvaluation) -> dict[str, Any]:
    milestone = await deps.db.get_record(collection="daily_milestones", record_id=milestone_id)

    data: dict[str, Any] = {
        "evaluation_status": evaluation.verdict.value,
        "content_quality_score": evaluation.quality_score,
        "ai_feedback": evaluation.reasoning,
        "rule_compliance": evaluation.quality_checks.model_dump(by_alias=True),
        "flagged_for_review": evaluation.flagged_for_review,
        "evaluated_at": deps.now().isoformat(),
    }
    closed_unvalidated = milestone["is_closed"] and not milestone.get("validation_passed")
    if evaluation.passed and not closed_unvalidated and milestone["refund_status"] == MilestoneRefundStatus.PENDING:
        data["refund_status"] = MilestoneRefundStatus.ELIGIBLE.value
    elif not evaluation.passed and milestone["refund_status"] == MilestoneRefundStatus.ELIGIBLE:
        data["refund_status"] = MilestoneRefundStatus.PENDING.value

    return await deps.db.update_record(collection="daily_milestones", record_id=milestone_id, data=data)


async def evaluate_quality(
    *,
    deps: Deps,
    content: str,
    title: str,
    target_words: int,
    task_id: str | None = None,
    user_id: str | None = None,
    milestone_id: str | None = None,
    actual_word_count: int | None = None,
    word_validity: list[bool] | None = None,
) -> QualityEvaluation:
    """Score a submission with the oracle, falling back on any oracle problem.

    For a tracked submission the full input and output are written to the
    evaluation log, and the milestone (if given) receives the verdict.
    ``actual_word_count`` defaults to the count of the markup-free content.
    Title relevance and spelling figures are always measured; dictionary
    compliance only when ``word_validity`` (one flag per validated token) is
    given.

    Raises:
        RecordNotFoundError: If ``milestone_id`` does not exist
        DatabaseError: If persistence fails
    """
    with span("evaluation_service.evaluate_quality"):
        clean_content = strip_markup(content)
        if actual_word_count is None:
            actual_word_count = count_words(clean_content)
        request = OracleRequest(
            content=clean_content,
            title=title,
            target_words=target_words,
            actual_word_count=actual_word_count,
        )

        result = await _ask_oracle(deps=deps, request=request)
        match result:
            case Parsed(evaluation=oracle_evaluation):
                evaluation = _from_oracle(
                    evaluation=oracle_evaluation,
                    actual_word_count=actual_word_count,
                    target_words=target_words,
                )
            case Malformed() as malformed:
                logger.warning(
                    "quality_oracle_fallback",
                    extra={"task_id": task_id, "milestone_id": milestone_id, "error": malformed.error},
                )
                evaluation = fallback_evaluation(
                    actual_word_count=actual_word_count,
                    target_words=target_words,
                    malformed=malformed,
                )

        evaluation.content_metrics = measure_content(title=title, content=clean_content, valid_flags=word_validity)

        if task_id and user_id:
            await evaluation_log.record_evaluation(
                deps=deps,
                record=EvaluationRecordCreate(
                    task_id=task_id,
                    user_id=user_id,
                    milestone_id=milestone_id,
                    evaluation_date=deps.today_iso(),
                    content_analyzed=clean_content,
                    word_count_actual=actual_word_count,
                    word_count_target=target_words,
                    violations=evaluation.violations,
                    rule_violations=evaluation.rule_violations,
                    quality_checks=evaluation.quality_checks.model_dump(by_alias=True),
                    verdict=EvaluationVerdict(evaluation.verdict.value),
                    reasoning=evaluation.reasoning,
                    flagged_issues=evaluation.flagged_issues,
                    quality_score=evaluation.quality_score,
                    flagged_for_review=evaluation.flagged_for_review,
                    used_fallback=evaluation.used_fallback,
                    content_metrics=evaluation.content_metrics.model_dump(),
                ),
            )

        if milestone_id:
            await _update_milestone(deps=deps, milestone_id=milestone_id, evaluation=evaluation)

        logger.info(
            "quality_evaluated",
            extra={
                "task_id": task_id,
                "milestone_id": milestone_id,
                "verdict": evaluation.verdict.value,
                "quality_score": evaluation.quality_score,
                "flagged": evaluation.flagged_for_review,
                "used_fallback": evaluation.used_fallback,
                "metric_concerns": len(evaluation.content_metrics.concerns),
            },
        )
        return evaluation
