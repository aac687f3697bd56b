"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, date, datetime

import pytest

from src.agents.base import Deps
from src.services import task_service
from tests.unit.mocks import FakeDictionary, FakeOracle, InMemoryDBClient


FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def fake_dictionary():
    """Dictionary that knows a small everyday vocabulary."""
    return FakeDictionary(
        {
            "the",
            "a",
            "garden",
            "grows",
            "slowly",
            "in",
            "spring",
            "rain",
            "falls",
            "on",
            "quiet",
            "roofs",
            "writing",
            "every",
            "day",
            "helps",
        }
    )


@pytest.fixture
def fake_oracle():
    """Oracle that judges by word count alone."""
    return FakeOracle()


@pytest.fixture
def deps(in_memory_db, fake_oracle, fake_dictionary):
    """Deps wired to in-memory collaborators and a fixed clock."""
    return Deps(db=in_memory_db, oracle=fake_oracle, dictionary=fake_dictionary, clock=lambda: FIXED_NOW)


@pytest.fixture
def heuristic_deps(in_memory_db, fake_oracle):
    """Deps with no dictionary configured, so only the heuristic applies."""
    return Deps(db=in_memory_db, oracle=fake_oracle, dictionary=None, clock=lambda: FIXED_NOW)


@pytest.fixture
async def active_task(deps):
    """A 300 word, 3 day pledge with a 90 deposit, started on 2026-03-10."""
    task = await task_service.create_task(
        deps=deps,
        user_id="user1",
        title="Spring garden journal",
        word_count=300,
        duration_days=3,
        deposit_amount=90,
    )
    await task_service.activate_task(deps=deps, task_id=task["id"], start_date=date(2026, 3, 10))
    return await task_service.get_task(deps=deps, task_id=task["id"])
