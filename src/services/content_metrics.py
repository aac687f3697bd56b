"""Deterministic content metrics recorded alongside every quality evaluation.

These are audit figures for reviewers, not gates: the dictionary and
repetition stages already reject what they measure, and relevance is judged
by the oracle. Figures outside the review thresholds are listed as concerns.
"""

import re

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.config import constants
from src.core.text import tokenize


# Shapes that suggest a misspelling once surrounding punctuation is removed
_SUSPICIOUS_SPELLINGS = [
    re.compile(r"\d+[a-z]+", re.IGNORECASE),
    re.compile(r"[a-z]{20,}", re.IGNORECASE),
    re.compile(r"([a-z])\1{3,}", re.IGNORECASE),
    re.compile(r"[^a-z\-']", re.IGNORECASE),
]
_EDGE_PUNCTUATION = "\"'.,;:!?()[]{}«»“”‘’…*_/\\"


class ContentMetrics(BaseModel):
    """Keyword relevance, dictionary compliance and spelling figures for one text."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title_relevance_score: int = Field(..., ge=0, le=100)
    dictionary_compliance: float | None = Field(
        default=None, description="Percentage of tokens the word validator accepted, when it ran"
    )
    spelling_error_rate: float = Field(..., ge=0, le=100)
    suspected_misspellings: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


def title_relevance_score(title: str, content: str) -> int:
    """Share of the title's keywords (longer than three letters) found in the content.

    Scored as a 20 point base plus the matched share, capped at 100. A title
    with no keywords scores a neutral 50.
    """
    keywords = [w for w in title.lower().split() if len(w) > constants.TITLE_KEYWORD_MIN_LENGTH]
    if not keywords:
        return constants.NEUTRAL_RELEVANCE_SCORE

    lowered = content.lower()
    matches = sum(1 for keyword in keywords if keyword in lowered)
    return round(min(100.0, matches / len(keywords) * 100 + constants.RELEVANCE_BASE_SCORE))


def dictionary_compliance(valid_flags: list[bool]) -> float:
    """Percentage of validated tokens that were accepted (100 for no tokens)."""
    if not valid_flags:
        return 100.0
    return sum(valid_flags) / len(valid_flags) * 100


def find_suspected_misspellings(content: str) -> tuple[list[str], int]:
    """Tokens with misspelling shapes, and how many tokens were checked."""
    tokens = tokenize(content)
    suspects = []
    for token in tokens:
        word = token.strip(_EDGE_PUNCTUATION)
        if word and any(pattern.search(word) for pattern in _SUSPICIOUS_SPELLINGS):
            suspects.append(word)
    return suspects, len(tokens)


def measure_content(*, title: str, content: str, valid_flags: list[bool] | None = None) -> ContentMetrics:
    """Compute every metric for a markup-free text."""
    relevance = title_relevance_score(title, content)
    compliance = dictionary_compliance(valid_flags) if valid_flags is not None else None
    suspects, token_count = find_suspected_misspellings(content)
    error_rate = len(suspects) / token_count * 100 if token_count else 0.0

    concerns = []
    if relevance < constants.MIN_TITLE_RELEVANCE_SCORE:
        concerns.append(f"Title relevance {relevance} is below {constants.MIN_TITLE_RELEVANCE_SCORE}")
    if compliance is not None and compliance < constants.MIN_DICTIONARY_COMPLIANCE:
        concerns.append(f"Dictionary compliance {compliance:.1f}% is below {constants.MIN_DICTIONARY_COMPLIANCE}%")
    if error_rate > constants.MAX_SPELLING_ERROR_RATE:
        concerns.append(f"Spelling error rate {error_rate:.1f}% is above {constants.MAX_SPELLING_ERROR_RATE}%")

    return ContentMetrics(
        title_relevance_score=relevance,
        dictionary_compliance=compliance,
        spelling_error_rate=round(error_rate, 1),
        suspected_misspellings=suspects[: constants.MAX_REPORTED_MISSPELLINGS],
        concerns=concerns,
    )
