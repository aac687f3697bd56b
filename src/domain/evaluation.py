"""Validation violations and the evaluation audit record."""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter


class ViolationType(StrEnum):
    """Discriminator for the closed set of violation variants."""

    WORD_INVALID = "invalid_dictionary_word"
    WORD_REPETITION = "word_repetition"
    SENTENCE_REPETITION = "sentence_repetition"
    PARAGRAPH_REPETITION = "paragraph_repetition"
    ORACLE_PARSE_FAILURE = "oracle_parse_failure"


class WordInvalid(BaseModel):
    """A token rejected by the word validator."""

    type: Literal["invalid_dictionary_word"] = "invalid_dictionary_word"
    word: str
    reason: str
    message: str


class WordRepetition(BaseModel):
    """A word used more often than the frequency limit allows."""

    type: Literal["word_repetition"] = "word_repetition"
    word: str
    count: int
    threshold: int
    message: str


class SentenceRepetition(BaseModel):
    """A new sentence that nearly duplicates earlier content."""

    type: Literal["sentence_repetition"] = "sentence_repetition"
    sentence: str = Field(..., description="Excerpt of the offending sentence")
    similarity: float
    message: str


class ParagraphRepetition(BaseModel):
    """A new paragraph that nearly duplicates earlier content."""

    type: Literal["paragraph_repetition"] = "paragraph_repetition"
    paragraph: str = Field(..., description="Excerpt of the offending paragraph")
    similarity: float
    message: str


class OracleParseFailure(BaseModel):
    """The quality oracle's answer could not be used."""

    type: Literal["oracle_parse_failure"] = "oracle_parse_failure"
    raw_response: str = Field(default="", description="Excerpt of what the oracle returned")
    message: str


Violation = Annotated[
    WordInvalid | WordRepetition | SentenceRepetition | ParagraphRepetition | OracleParseFailure,
    Field(discriminator="type"),
]

violation_list_adapter: TypeAdapter[list[Violation]] = TypeAdapter(list[Violation])


def dump_violations(violations: list[Any]) -> list[dict[str, Any]]:
    """Serialize violations for storage or an HTTP response."""
    return violation_list_adapter.dump_python(violations, mode="json")


class EvaluationVerdict(StrEnum):
    """Verdicts written to the audit log."""

    TARGET_MET = "target_met"
    TARGET_NOT_MET = "target_not_met"
    DICTIONARY_VIOLATION = "dictionary_violation"
    REPETITION_VIOLATION = "repetition_violation"


class EvaluationRecordCreate(BaseModel):
    """Payload for one append-only audit entry."""

    task_id: str
    user_id: str
    milestone_id: str | None = None
    evaluation_date: str = Field(..., description="Date of the attempt (ISO format)")
    content_analyzed: str = Field(..., description="Snapshot of what was checked")
    word_count_actual: int
    word_count_target: int = 0
    violations: list[Violation] = Field(default_factory=list)
    rule_violations: list[str] = Field(default_factory=list, description="Rule violations reported by the oracle")
    quality_checks: dict[str, bool] | None = None
    verdict: EvaluationVerdict
    reasoning: str
    flagged_issues: list[str] = Field(default_factory=list)
    quality_score: int | None = None
    flagged_for_review: bool = False
    used_fallback: bool = False
    content_metrics: dict[str, Any] | None = Field(default=None, description="Relevance, compliance and spelling figures")


class EvaluationRecord(EvaluationRecordCreate):
    """Stored audit entry."""

    id: str
    created: str
    updated: str
