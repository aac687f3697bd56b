"""Unit tests for the Pydantic AI quality oracle."""

import json

import pytest
from pydantic_ai import Agent
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from src.agents import quality_oracle
from src.agents.quality_oracle import OracleRequest, PydanticAIQualityOracle, build_evaluation_prompt
from src.core.errors import OracleUnavailableError
from tests.unit.mocks import oracle_payload


REQUEST = OracleRequest(
    content="Rain falls on quiet roofs.", title="Spring garden journal", target_words=160, actual_word_count=5
)


@pytest.mark.unit
class TestBuildEvaluationPrompt:
    """Tests for build_evaluation_prompt."""

    def test_includes_submission_details(self):
        prompt = build_evaluation_prompt(REQUEST)

        assert 'Task Title: "Spring garden journal"' in prompt
        assert "Target Word Count: 160" in prompt
        assert "Actual Word Count: 5" in prompt
        assert 'Content: "Rain falls on quiet roofs."' in prompt

    def test_states_tolerance_and_format(self):
        prompt = build_evaluation_prompt(REQUEST)

        assert "more than 10% below target" in prompt
        assert '"qualityChecks"' in prompt
        assert "Respond with ONLY a JSON object" in prompt


@pytest.mark.unit
class TestPydanticAIQualityOracle:
    """Tests for PydanticAIQualityOracle.evaluate."""

    async def test_returns_raw_model_text(self):
        prompts = []
        answer = json.dumps(oracle_payload())

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            prompts.append(messages[-1].parts[-1].content)
            return ModelResponse(parts=[TextPart(answer)])

        oracle = PydanticAIQualityOracle(Agent(FunctionModel(respond), output_type=str))

        assert await oracle.evaluate(REQUEST) == answer
        assert "Target Word Count: 160" in prompts[0]

    async def test_non_json_answer_passed_through(self):
        """Parsing is the caller's job; the oracle never judges its own output."""

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            return ModelResponse(parts=[TextPart("Looks lovely to me!")])

        oracle = PydanticAIQualityOracle(Agent(FunctionModel(respond), output_type=str))

        assert await oracle.evaluate(REQUEST) == "Looks lovely to me!"

    async def test_model_failure_wrapped(self):
        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            raise ConnectionError("503 Service Unavailable")

        oracle = PydanticAIQualityOracle(Agent(FunctionModel(respond), output_type=str))

        with pytest.raises(OracleUnavailableError, match="Quality oracle call failed") as exc_info:
            await oracle.evaluate(REQUEST)

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_agent_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(quality_oracle._AgentState, "instance", None)
        monkeypatch.setattr(quality_oracle.settings, "openrouter_api_key", None)

        with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
            quality_oracle.get_agent()

    async def test_missing_key_is_an_unavailable_oracle(self, monkeypatch):
        """Without a key the oracle reports itself unavailable so callers fall back."""
        monkeypatch.setattr(quality_oracle._AgentState, "instance", None)
        monkeypatch.setattr(quality_oracle.settings, "openrouter_api_key", None)

        with pytest.raises(OracleUnavailableError, match="OPENROUTER_API_KEY") as exc_info:
            await PydanticAIQualityOracle().evaluate(REQUEST)

        assert isinstance(exc_info.value.__cause__, ValueError)
