"""Live validation while a user types, and the one-at-a-time submit guard."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from pydantic import BaseModel, Field

from src.agents.base import Deps
from src.core.config import constants
from src.core.errors import SubmissionInProgressError
from src.core.text import tokenize
from src.services import repetition_detector, submission_service, word_validator
from src.services.repetition_detector import CheckType, RepetitionReport
from src.services.submission_service import SubmissionResult
from src.services.word_validator import ValidationReason, WordValidationResult


logger = logging.getLogger(__name__)


class WindowStatus(StrEnum):
    """State of the most recently checked window of text."""

    VALID = "valid"
    INVALID = "invalid"
    VALIDATION_FAILED = "validation_failed"


class LiveFeedback(BaseModel):
    """What the editor shows after a debounced check."""

    status: WindowStatus
    word_count: int
    word_results: list[WordValidationResult] = Field(default_factory=list)
    repetition: RepetitionReport | None = None


FeedbackCallback = Callable[[LiveFeedback], Awaitable[None]]


class EditorSession:
    """Per-user editing session for one day of a task.

    Every change restarts the debounce timer; only the last change within the
    window is validated. Validation covers the trailing few words plus a
    whole-text word repetition check. Submissions are serialized: a second
    submit while one is running raises SubmissionInProgressError.
    """

    def __init__(
        self,
        *,
        deps: Deps,
        task_id: str,
        user_id: str,
        day_number: int,
        debounce_seconds: float | None = None,
        on_feedback: FeedbackCallback | None = None,
    ) -> None:
        self.deps = deps
        self.task_id = task_id
        self.user_id = user_id
        self.day_number = day_number
        self.debounce_seconds = constants.EDITOR_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.on_feedback = on_feedback
        self.latest_feedback: LiveFeedback | None = None
        self._pending: asyncio.Task[LiveFeedback] | None = None
        self._submitting = False

    @property
    def submitting(self) -> bool:
        return self._submitting

    def on_change(self, text: str) -> asyncio.Task[LiveFeedback]:
        """Schedule validation of ``text``, cancelling any check still waiting."""
        self._cancel_pending()
        self._pending = asyncio.create_task(self._debounced(text))
        return self._pending

    async def _debounced(self, text: str) -> LiveFeedback:
        await asyncio.sleep(self.debounce_seconds)
        feedback = await self.validate_now(text)
        self.latest_feedback = feedback
        if self.on_feedback is not None:
            await self.on_feedback(feedback)
        return feedback

    async def validate_now(self, text: str) -> LiveFeedback:
        """Check the trailing window and whole-text word repetition immediately."""
        tokens = tokenize(text)
        window = tokens[-constants.EDITOR_TRAILING_WINDOW :]

        try:
            word_results = await word_validator.validate_words(deps=self.deps, words=window)
            repetition = await repetition_detector.detect_repetition(
                deps=self.deps, content=" ".join(tokens), check_type=CheckType.WORD
            )
        except Exception as e:
            # The user keeps typing; the full check runs again on submit
            logger.warning(
                "live_validation_failed",
                extra={"task_id": self.task_id, "day_number": self.day_number, "error": str(e)},
            )
            return LiveFeedback(
                status=WindowStatus.VALIDATION_FAILED,
                word_count=len(tokens),
                word_results=[
                    WordValidationResult(word=token, is_valid=True, reason=ValidationReason.VALIDATION_FAILED)
                    for token in window
                ],
            )

        valid = all(r.is_valid for r in word_results) and repetition.is_valid
        return LiveFeedback(
            status=WindowStatus.VALID if valid else WindowStatus.INVALID,
            word_count=len(tokens),
            word_results=word_results,
            repetition=repetition,
        )

    async def submit(self, content: str | None = None) -> SubmissionResult:
        """Run the full submission pipeline for this day.

        Raises:
            SubmissionInProgressError: If a submission from this session is still running
        """
        if self._submitting:
            msg = f"A submission for task {self.task_id} day {self.day_number} is already in progress"
            raise SubmissionInProgressError(msg)

        self._submitting = True
        self._cancel_pending()
        try:
            return await submission_service.submit_day(
                deps=self.deps,
                task_id=self.task_id,
                user_id=self.user_id,
                day_number=self.day_number,
                content=content,
            )
        finally:
            self._submitting = False

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def close(self) -> None:
        """Cancel any pending check and wait for it to unwind."""
        pending = self._pending
        self._cancel_pending()
        if pending is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await pending
