"""Stand-alone validation endpoints used by the editor."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.agents.base import Deps
from src.interface.dependencies import get_deps
from src.services import evaluation_service, repetition_detector, word_validator
from src.services.repetition_detector import CheckType
from src.services.word_validator import WordValidationResult


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/validation", tags=["validation"])


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WordValidationRequest(_CamelRequest):
    words: list[str]
    task_id: str | None = None
    user_id: str | None = None
    milestone_id: str | None = None


class WordValidationResponse(BaseModel):
    results: list[WordValidationResult]


class RepetitionRequest(_CamelRequest):
    content: str
    existing_content: str = ""
    check_type: CheckType = CheckType.ALL
    task_id: str | None = None
    user_id: str | None = None
    milestone_id: str | None = None


class QualityRequest(_CamelRequest):
    content: str
    title: str
    target_words: int = Field(..., gt=0)
    actual_word_count: int | None = Field(default=None, ge=0)
    task_id: str | None = None
    user_id: str | None = None
    milestone_id: str | None = None


@router.post("/words")
async def validate_words(body: WordValidationRequest, deps: Deps = Depends(get_deps)) -> WordValidationResponse:
    """Validate each token against the dictionary (or the heuristic fallback)."""
    results = await word_validator.validate_words(
        deps=deps,
        words=body.words,
        task_id=body.task_id,
        user_id=body.user_id,
        milestone_id=body.milestone_id,
    )
    return WordValidationResponse(results=results)


@router.post("/repetition")
async def check_repetition(body: RepetitionRequest, deps: Deps = Depends(get_deps)) -> dict[str, Any]:
    """Check content for repeated words, sentences and paragraphs."""
    report = await repetition_detector.detect_repetition(
        deps=deps,
        content=body.content,
        existing_content=body.existing_content,
        check_type=body.check_type,
        task_id=body.task_id,
        user_id=body.user_id,
        milestone_id=body.milestone_id,
    )
    return report.model_dump(mode="json", by_alias=True)


@router.post("/quality")
async def evaluate_quality(body: QualityRequest, deps: Deps = Depends(get_deps)) -> dict[str, Any]:
    """Score content with the quality oracle."""
    evaluation = await evaluation_service.evaluate_quality(
        deps=deps,
        content=body.content,
        title=body.title,
        target_words=body.target_words,
        task_id=body.task_id,
        user_id=body.user_id,
        milestone_id=body.milestone_id,
        actual_word_count=body.actual_word_count,
    )
    return evaluation.to_response()
