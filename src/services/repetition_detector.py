"""Repetition detection at word, sentence and paragraph granularity.

Word frequency is checked within the new content alone. Sentences and
paragraphs are compared against the task's previously submitted content
using Jaccard similarity over whitespace-delimited tokens.
"""

import logging
import re
from collections import Counter
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.agents.base import Deps
from src.core.config import constants
from src.core.logging import span
from src.domain.evaluation import ParagraphRepetition, SentenceRepetition, Violation, WordRepetition
from src.services import evaluation_log


logger = logging.getLogger(__name__)

_SENTENCE_TERMINATORS = re.compile(r"[.!?]+")
_BLANK_LINE = re.compile(r"\n\s*\n")
_NON_WORD = re.compile(r"[^\w]")


class CheckType(StrEnum):
    """Which checks to run."""

    WORD = "word"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    ALL = "all"


class RepetitionReport(BaseModel):
    """Ordered violations plus a summary message; empty violations means pass."""

    model_config = ConfigDict(populate_by_name=True)

    violations: list[Violation] = Field(default_factory=list)
    is_valid: bool = Field(..., alias="isValid")
    message: str


def jaccard_similarity(first: str, second: str) -> float:
    """Set-overlap similarity of the whitespace tokens of two strings.

    Symmetric and bounded in [0, 1]. Identical non-empty strings score 1.0;
    two strings without any tokens score 0.0.
    """
    first_tokens = set(first.split())
    second_tokens = set(second.split())
    union = first_tokens | second_tokens
    if not union:
        return 0.0
    return len(first_tokens & second_tokens) / len(union)


def split_sentences(text: str) -> list[str]:
    """Lower-cased, trimmed sentences longer than the short-fragment cutoff."""
    fragments = (s.strip().lower() for s in _SENTENCE_TERMINATORS.split(text))
    return [s for s in fragments if len(s) > constants.SHORT_SENTENCE_LENGTH]


def split_paragraphs(text: str) -> list[str]:
    """Lower-cased, trimmed paragraphs longer than the short-fragment cutoff."""
    fragments = (p.strip().lower() for p in _BLANK_LINE.split(text))
    return [p for p in fragments if len(p) > constants.SHORT_PARAGRAPH_LENGTH]


def word_repetition_threshold(total_tokens: int) -> int:
    """Most times one word may appear: 3, or 5% of the text if that is larger."""
    return max(
        constants.WORD_REPETITION_MIN_LIMIT,
        total_tokens // constants.WORD_REPETITION_RATIO_DIVISOR,
    )


def _excerpt(text: str) -> str:
    if len(text) <= constants.EXCERPT_LENGTH:
        return text
    return text[: constants.EXCERPT_LENGTH] + "..."


def check_word_repetition(content: str) -> list[WordRepetition]:
    """Report every meaningful word used more often than the threshold allows."""
    tokens = content.lower().split()
    threshold = word_repetition_threshold(len(tokens))

    counts: Counter[str] = Counter()
    for token in tokens:
        word = _NON_WORD.sub("", token)
        if len(word) > constants.SHORT_WORD_LENGTH:
            counts[word] += 1

    return [
        WordRepetition(
            word=word,
            count=count,
            threshold=threshold,
            message=f'Word "{word}" repeated {count} times (limit: {threshold})',
        )
        for word, count in counts.items()
        if count > threshold
    ]


def check_sentence_repetition(content: str, existing_content: str = "") -> list[SentenceRepetition]:
    """Flag new sentences that nearly duplicate a prior sentence (first match wins)."""
    existing_sentences = split_sentences(existing_content)
    violations = []

    for sentence in split_sentences(content):
        for existing in existing_sentences:
            similarity = jaccard_similarity(sentence, existing)
            if similarity >= constants.SENTENCE_SIMILARITY_THRESHOLD:
                violations.append(
                    SentenceRepetition(
                        sentence=_excerpt(sentence),
                        similarity=similarity,
                        message=(
                            f'Sentence "{_excerpt(sentence)}" is {round(similarity * 100)}% '
                            "similar to previous content"
                        ),
                    )
                )
                break

    return violations


def check_paragraph_repetition(content: str, existing_content: str = "") -> list[ParagraphRepetition]:
    """Flag new paragraphs that nearly duplicate a prior paragraph (first match wins)."""
    existing_paragraphs = split_paragraphs(existing_content)
    violations = []

    for paragraph in split_paragraphs(content):
        for existing in existing_paragraphs:
            similarity = jaccard_similarity(paragraph, existing)
            if similarity >= constants.PARAGRAPH_SIMILARITY_THRESHOLD:
                violations.append(
                    ParagraphRepetition(
                        paragraph=_excerpt(paragraph),
                        similarity=similarity,
                        message=(
                            f'Paragraph "{_excerpt(paragraph)}" is {round(similarity * 100)}% '
                            "similar to previous content"
                        ),
                    )
                )
                break

    return violations


def find_repetition(content: str, existing_content: str = "", check_type: CheckType = CheckType.ALL) -> list[Violation]:
    """Run the requested checks in word, sentence, paragraph order."""
    violations: list[Violation] = []
    if check_type in (CheckType.WORD, CheckType.ALL):
        violations.extend(check_word_repetition(content))
    if check_type in (CheckType.SENTENCE, CheckType.ALL):
        violations.extend(check_sentence_repetition(content, existing_content))
    if check_type in (CheckType.PARAGRAPH, CheckType.ALL):
        violations.extend(check_paragraph_repetition(content, existing_content))
    return violations


async def detect_repetition(
    *,
    deps: Deps,
    content: str,
    existing_content: str = "",
    check_type: CheckType = CheckType.ALL,
    task_id: str | None = None,
    user_id: str | None = None,
    milestone_id: str | None = None,
) -> RepetitionReport:
    """Check content for repetition and log any violations for a tracked task."""
    with span("repetition_detector.detect_repetition"):
        violations = find_repetition(content, existing_content, check_type)

        if violations and task_id and user_id:
            await evaluation_log.record_repetition_violation(
                deps=deps,
                task_id=task_id,
                user_id=user_id,
                milestone_id=milestone_id,
                content=content,
                violations=violations,
            )

        if violations:
            logger.info(
                "repetition_detected",
                extra={"task_id": task_id, "check_type": check_type.value, "violation_count": len(violations)},
            )
            message = f"Repetition detected: {violations[0].message}"
        else:
            message = "Content passed repetition checks"

        return RepetitionReport(violations=violations, is_valid=not violations, message=message)
