"""Lexical validation of individual words.

Each token is classified as valid or not. The primary dictionary is
authoritative when it answers; if it cannot answer (no key configured,
network error, timeout, quota, unexpected status) the deterministic
heuristic in ``word_heuristics`` decides instead.
"""

import logging
import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.agents.base import Deps
from src.core.errors import LookupUnavailableError
from src.core.logging import span
from src.domain.evaluation import WordInvalid
from src.services import evaluation_log
from src.services.word_heuristics import passes_basic_wordlist


logger = logging.getLogger(__name__)

_DIGITS_ONLY = re.compile(r"\d+")
_PUNCTUATION_ONLY = re.compile(r"[^\w]+")
# Punctuation that may wrap a word in running text
_SURROUNDING_PUNCTUATION = "\"'.,;:!?()[]{}<>«»“”‘’…-–—*_/\\"


class ValidationReason(StrEnum):
    """Fixed reasons; dictionary reasons are built from the source name."""

    SKIPPED = "skipped"
    BASIC_WORDLIST = "basic_wordlist"
    NOT_IN_BASIC_WORDLIST = "not_in_basic_wordlist"
    VALIDATION_FAILED = "validation_failed"


class WordValidationResult(BaseModel):
    """Verdict for one token, in the ``{word, isValid, reason}`` wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    word: str
    is_valid: bool = Field(..., alias="isValid")
    reason: str


def normalize_word(token: str) -> str:
    """Lower-case a token and strip punctuation wrapped around it."""
    return token.strip().lower().strip(_SURROUNDING_PUNCTUATION)


def _is_skippable(token: str) -> bool:
    cleaned = token.strip().lower()
    return not cleaned or bool(_DIGITS_ONLY.fullmatch(cleaned) or _PUNCTUATION_ONLY.fullmatch(cleaned))


def _heuristic_result(token: str, word: str) -> WordValidationResult:
    is_valid = passes_basic_wordlist(word)
    reason = ValidationReason.BASIC_WORDLIST if is_valid else ValidationReason.NOT_IN_BASIC_WORDLIST
    return WordValidationResult(word=token, is_valid=is_valid, reason=reason)


async def check_word(*, deps: Deps, token: str) -> WordValidationResult:
    """Classify a single token."""
    if _is_skippable(token):
        return WordValidationResult(word=token, is_valid=True, reason=ValidationReason.SKIPPED)

    word = normalize_word(token)
    if not word:
        return WordValidationResult(word=token, is_valid=True, reason=ValidationReason.SKIPPED)

    if deps.dictionary is None:
        return _heuristic_result(token, word)

    try:
        found = await deps.dictionary.contains(word)
    except LookupUnavailableError as e:
        logger.info("dictionary_fallback", extra={"word": word, "error": str(e)})
        return _heuristic_result(token, word)

    source = deps.dictionary.source
    if found:
        return WordValidationResult(word=token, is_valid=True, reason=f"{source}_dictionary")
    # A definitive "not found" is authoritative; only failures get the heuristic
    return WordValidationResult(word=token, is_valid=False, reason=f"not_in_{source}_dictionary")


def invalid_word_violations(results: list[WordValidationResult]) -> list[WordInvalid]:
    """Turn rejected tokens into violation records naming each word."""
    return [
        WordInvalid(word=r.word, reason=r.reason, message=f'"{r.word}" is not a valid dictionary word')
        for r in results
        if not r.is_valid
    ]


async def validate_words(
    *,
    deps: Deps,
    words: list[str],
    task_id: str | None = None,
    user_id: str | None = None,
    milestone_id: str | None = None,
) -> list[WordValidationResult]:
    """Validate tokens in order, returning one result per token.

    When ``task_id`` and ``user_id`` identify a tracked submission, any
    rejected tokens are also written to the evaluation log.
    """
    with span("word_validator.validate_words"):
        cache: dict[str, WordValidationResult] = {}
        results = []
        for token in words:
            key = normalize_word(token) or token
            if key not in cache:
                cache[key] = await check_word(deps=deps, token=token)
            cached = cache[key]
            results.append(WordValidationResult(word=token, is_valid=cached.is_valid, reason=cached.reason))

        invalid = invalid_word_violations(results)
        if invalid and task_id and user_id:
            await evaluation_log.record_dictionary_violation(
                deps=deps,
                task_id=task_id,
                user_id=user_id,
                milestone_id=milestone_id,
                invalid_words=invalid,
                total_words=len(words),
            )

        logger.info(
            "words_validated",
            extra={"task_id": task_id, "word_count": len(words), "invalid_count": len(invalid)},
        )
        return results
