"""Pytest configuration and fixtures for integration tests.

Integration tests run the real SQLite client against a file in ``tmp_path``,
the real dictionary client against an ``httpx.MockTransport`` and the real
Pydantic AI oracle against a ``FunctionModel``.
"""

import json
import re
from datetime import UTC, datetime

import httpx
import pytest
from pydantic_ai import Agent
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from src.agents.base import Deps
from src.agents.quality_oracle import PydanticAIQualityOracle
from src.core.db_client import SQLiteDBClient
from src.main import create_app
from src.services.dictionary_client import OxfordDictionaryClient


FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)

VOCABULARY = frozenset(
    {
        "a",
        "and",
        "at",
        "dawn",
        "day",
        "every",
        "falls",
        "garden",
        "grow",
        "grows",
        "helps",
        "in",
        "light",
        "morning",
        "on",
        "quiet",
        "rain",
        "roofs",
        "seeds",
        "slowly",
        "spring",
        "the",
        "we",
        "writing",
    }
)

_COUNTS = re.compile(r"Target Word Count: (\d+)\nActual Word Count: (\d+)")


def dictionary_handler(request: httpx.Request) -> httpx.Response:
    """Answer like the entries API: 200 for known words, 404 otherwise."""
    word = request.url.path.rsplit("/", 1)[-1]
    if word in VOCABULARY:
        return httpx.Response(200, json={"id": word, "results": [{"id": word}]})
    return httpx.Response(404, json={"error": f"No entry found matching supplied source_lang, word {word}"})


def judge_by_word_count(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
    """Model that meets the target exactly when the prompt's actual count reaches it."""
    prompt = messages[-1].parts[-1].content
    target, actual = (int(n) for n in _COUNTS.search(prompt).groups())
    met = actual >= target
    answer = {
        "verdict": "target_met" if met else "target_not_met",
        "wordCountCompliant": met,
        "qualityScore": 78 if met else 41,
        "ruleViolations": [] if met else ["Word count below target"],
        "qualityChecks": {"hasSpam": False, "hasRepetition": False, "isRelevant": True, "isOriginal": True},
        "reasoning": "Relevant and long enough." if met else "Too short for today's target.",
        "flaggedIssues": [],
        "recommendations": "Keep going.",
    }
    return ModelResponse(parts=[TextPart(json.dumps(answer))])


@pytest.fixture
async def sqlite_db(test_settings):
    """SQLite client on a fresh database file with the schema applied."""
    db = SQLiteDBClient(test_settings.sqlite_db_path)
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
async def dictionary():
    """Dictionary client talking to the mocked entries API."""
    client = OxfordDictionaryClient(
        base_url="https://dictionary.test/api/v2",
        app_id="test-app",
        app_key="test-key",
        http_client=httpx.AsyncClient(
            base_url="https://dictionary.test/api/v2", transport=httpx.MockTransport(dictionary_handler)
        ),
    )
    yield client
    await client.aclose()


@pytest.fixture
def oracle() -> PydanticAIQualityOracle:
    """Quality oracle backed by a deterministic function model."""
    return PydanticAIQualityOracle(Agent(FunctionModel(judge_by_word_count), output_type=str))


@pytest.fixture
def deps(sqlite_db, dictionary, oracle) -> Deps:
    """Production collaborators with a fixed clock."""
    return Deps(db=sqlite_db, oracle=oracle, dictionary=dictionary, clock=lambda: FIXED_NOW)


@pytest.fixture
async def api(deps):
    """HTTP client for the app, served in-process over the ASGI transport."""
    app = create_app(deps)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://norush.test") as client:
        yield client
