"""Unit tests for task_service."""

from datetime import date

import pytest
from pydantic import ValidationError

from src.core.errors import InvalidStateTransitionError, RecordNotFoundError
from src.domain.task import TaskStatus
from src.services import task_service


async def _create(deps, **overrides):
    values = {
        "user_id": "user1",
        "title": "  Letters to the garden  ",
        "word_count": 700,
        "duration_days": 7,
        "deposit_amount": 70,
    }
    values.update(overrides)
    return await task_service.create_task(deps=deps, **values)


@pytest.mark.unit
class TestTaskLifecycle:
    """Tests for create, activate and cancel."""

    async def test_created_pending_with_trimmed_title(self, deps):
        task = await _create(deps)

        assert task["status"] == TaskStatus.PENDING
        assert task["title"] == "Letters to the garden"
        assert await deps.db.list_records(collection="daily_milestones") == []

    @pytest.mark.parametrize(
        "overrides",
        [{"word_count": 0}, {"duration_days": 0}, {"deposit_amount": -1}, {"title": "   "}],
    )
    async def test_invalid_plans_rejected(self, deps, overrides):
        with pytest.raises(ValidationError):
            await _create(deps, **overrides)

    async def test_activation_generates_schedule(self, deps):
        task = await _create(deps)

        milestones = await task_service.activate_task(deps=deps, task_id=task["id"], start_date=date(2026, 3, 30))

        assert len(milestones) == 7
        assert milestones[-1]["target_date"] == "2026-04-05"
        activated = await task_service.get_task(deps=deps, task_id=task["id"])
        assert activated["status"] == TaskStatus.ACTIVE
        assert activated["start_date"] == "2026-03-30"

    async def test_activation_defaults_to_today(self, deps):
        task = await _create(deps)

        milestones = await task_service.activate_task(deps=deps, task_id=task["id"])

        assert milestones[0]["target_date"] == "2026-03-10"

    async def test_activate_twice_rejected(self, deps, active_task):
        with pytest.raises(InvalidStateTransitionError, match="Cannot activate"):
            await task_service.activate_task(deps=deps, task_id=active_task["id"])

        milestones = await deps.db.list_records(collection="daily_milestones")
        assert len(milestones) == 3

    async def test_cancel(self, deps, active_task):
        cancelled = await task_service.cancel_task(deps=deps, task_id=active_task["id"])

        assert cancelled["status"] == TaskStatus.CANCELLED
        with pytest.raises(InvalidStateTransitionError, match="Cannot cancel"):
            await task_service.cancel_task(deps=deps, task_id=active_task["id"])

    async def test_missing_task(self, deps):
        with pytest.raises(RecordNotFoundError):
            await task_service.get_task(deps=deps, task_id="missing")


@pytest.mark.unit
class TestDailyContent:
    """Tests for saving and reading daily text."""

    async def test_save_overwrites(self, deps, active_task):
        first = await task_service.save_daily_content(
            deps=deps, task_id=active_task["id"], user_id="user1", day_number=1, content="Rain falls."
        )
        second = await task_service.save_daily_content(
            deps=deps, task_id=active_task["id"], user_id="user1", day_number=1, content="<p>Rain falls on roofs.</p>"
        )

        assert second["id"] == first["id"]
        assert second["word_count"] == 4
        assert len(await deps.db.list_records(collection="daily_contents")) == 1

    async def test_nothing_saved(self, deps, active_task):
        assert await task_service.get_daily_content(deps=deps, task_id=active_task["id"], day_number=2) is None

    async def test_prior_content_joins_earlier_days_in_order(self, deps, active_task):
        for day_number, text in ((2, "Second day."), (1, "First day."), (3, "Third day.")):
            await task_service.save_daily_content(
                deps=deps, task_id=active_task["id"], user_id="user1", day_number=day_number, content=text
            )

        prior = await task_service.get_prior_content(deps=deps, task_id=active_task["id"], before_day=3)

        assert prior == "First day.\n\nSecond day."
        assert await task_service.get_prior_content(deps=deps, task_id=active_task["id"], before_day=1) == ""
