"""Unit tests for EditorSession live validation and the submit guard."""

import asyncio
import contextlib

import pytest

from src.core.errors import SubmissionInProgressError
from src.services import submission_service, word_validator
from src.services.editor_session import EditorSession, WindowStatus
from src.services.submission_service import SubmissionStage
from src.services.word_validator import ValidationReason


@pytest.fixture
def session(deps, active_task):
    """Editor session for day 1 of the active task with a short debounce."""
    return EditorSession(
        deps=deps, task_id=active_task["id"], user_id="user1", day_number=1, debounce_seconds=0.01
    )


@pytest.mark.unit
class TestLiveValidation:
    """Tests for debounced and immediate validation."""

    async def test_only_last_change_validated(self, session, fake_dictionary):
        received = []

        async def on_feedback(feedback):
            received.append(feedback)

        session.on_feedback = on_feedback

        first = session.on_change("The garden")
        second = session.on_change("The garden grows")
        feedback = await second

        assert first.cancelled()
        assert received == [feedback]
        assert session.latest_feedback == feedback
        assert feedback.word_count == 3
        assert fake_dictionary.lookups == ["the", "garden", "grows"]

    async def test_valid_window(self, session):
        feedback = await session.validate_now("The rain falls on quiet roofs")

        assert feedback.status == WindowStatus.VALID
        assert [r.word for r in feedback.word_results] == ["rain", "falls", "on", "quiet", "roofs"]
        assert feedback.repetition.is_valid

    async def test_only_trailing_words_checked(self, session):
        feedback = await session.validate_now("blorbington the garden grows slowly in")

        assert feedback.status == WindowStatus.VALID
        assert [r.word for r in feedback.word_results] == ["the", "garden", "grows", "slowly", "in"]
        assert feedback.word_count == 6

    async def test_invalid_word_in_window(self, session):
        feedback = await session.validate_now("The garden blorbington")

        assert feedback.status == WindowStatus.INVALID
        assert [r.is_valid for r in feedback.word_results] == [True, True, False]

    async def test_whole_text_word_repetition(self, session):
        feedback = await session.validate_now("garden rain garden rain garden rain garden")

        assert feedback.status == WindowStatus.INVALID
        assert not feedback.repetition.is_valid
        assert all(r.is_valid for r in feedback.word_results)

    async def test_markup_ignored(self, session):
        feedback = await session.validate_now("<p>The <b>garden</b></p>")

        assert feedback.status == WindowStatus.VALID
        assert [r.word for r in feedback.word_results] == ["The", "garden"]

    async def test_failure_marks_window_validation_failed(self, session, monkeypatch):
        async def broken(**kwargs):
            raise RuntimeError("lookup pool exhausted")

        monkeypatch.setattr(word_validator, "validate_words", broken)

        feedback = await session.validate_now("The garden grows")

        assert feedback.status == WindowStatus.VALIDATION_FAILED
        assert feedback.repetition is None
        assert all(r.is_valid for r in feedback.word_results)
        assert {r.reason for r in feedback.word_results} == {ValidationReason.VALIDATION_FAILED}

    async def test_close_cancels_pending_check(self, session):
        pending = session.on_change("The garden")

        await session.close()

        assert pending.cancelled()
        assert session.latest_feedback is None


@pytest.mark.unit
class TestSubmit:
    """Tests for EditorSession.submit."""

    async def test_second_submit_while_running_rejected(self, session, monkeypatch):
        release = asyncio.Event()

        async def slow_submit_day(**kwargs):
            await release.wait()
            return "done"

        monkeypatch.setattr(submission_service, "submit_day", slow_submit_day)

        first = asyncio.create_task(session.submit("The garden grows"))
        await asyncio.sleep(0)
        assert session.submitting

        with pytest.raises(SubmissionInProgressError):
            await session.submit("The garden grows")

        release.set()
        assert await first == "done"
        assert not session.submitting

    async def test_flag_cleared_after_failure(self, session, monkeypatch):
        async def failing_submit_day(**kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(submission_service, "submit_day", failing_submit_day)

        with pytest.raises(RuntimeError):
            await session.submit("The garden grows")

        assert not session.submitting

    async def test_submit_cancels_pending_check(self, session, monkeypatch):
        async def fake_submit_day(**kwargs):
            return kwargs

        monkeypatch.setattr(submission_service, "submit_day", fake_submit_day)

        pending = session.on_change("The garden")
        forwarded = await session.submit("The garden grows")
        with contextlib.suppress(asyncio.CancelledError):
            await pending

        assert pending.cancelled()
        assert forwarded["content"] == "The garden grows"
        assert forwarded["day_number"] == 1

    async def test_runs_full_pipeline(self, session):
        result = await session.submit("The garden grows slowly in spring.")

        assert not result.passed
        assert result.stage == SubmissionStage.QUALITY
