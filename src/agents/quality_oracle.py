"""External content-quality oracle backed by a Pydantic AI agent on OpenRouter.

The oracle is untrusted: it returns raw text, which the evaluation service
parses against a strict schema. This module only knows how to ask.
"""

import logging
from typing import Protocol

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models.openrouter import OpenRouterModel, OpenRouterModelSettings
from pydantic_ai.providers.openrouter import OpenRouterProvider

from src.core.config import constants, settings
from src.core.errors import OracleUnavailableError, classify_external_error


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "You are a strict content evaluator that ensures writing quality and compliance with rules."


class OracleRequest(BaseModel):
    """What the oracle is told about a submission."""

    content: str
    title: str
    target_words: int
    actual_word_count: int


class QualityOracle(Protocol):
    """Anything that can score a submission and answer with raw text."""

    async def evaluate(self, request: OracleRequest) -> str: ...


def build_evaluation_prompt(request: OracleRequest) -> str:
    """Render the evaluation instructions for one submission."""
    tolerance_pct = round(constants.WORD_COUNT_TOLERANCE * 100)
    return f"""You are an AI content evaluator for a writing task monitoring system. \
Analyze the following text submission and provide a comprehensive evaluation.

Task Title: "{request.title}"
Target Word Count: {request.target_words}
Actual Word Count: {request.actual_word_count}
Content: "{request.content}"

Evaluate based on these criteria:
1. WORD COUNT COMPLIANCE: Does it meet the target word count (including any carried-over deficit)?
2. CONTENT QUALITY: Is the content meaningful, relevant, and well-written?
3. SPAM/FILLER DETECTION: Does it contain repetitive sentences, meaningless filler, or copy-pasted content?
4. RELEVANCE: Is the content relevant to the task title?
5. ORIGINALITY: Does it appear to be original writing (not obviously copied)?

Respond with ONLY a JSON object in this exact format:
{{
  "verdict": "target_met" or "target_not_met",
  "wordCountCompliant": true/false,
  "qualityScore": 0-100,
  "ruleViolations": ["list of specific violations"],
  "qualityChecks": {{
    "hasSpam": true/false,
    "hasRepetition": true/false,
    "isRelevant": true/false,
    "isOriginal": true/false
  }},
  "reasoning": "Detailed explanation of your evaluation",
  "flaggedIssues": ["list of serious issues requiring admin review"],
  "recommendations": "Suggestions for improvement"
}}

Be conservative. Mark as "target_not_met" if:
- Word count is more than {tolerance_pct}% below target
- Content contains spam, filler, or repetition
- Content is not relevant to the task title
- Content appears to be copied or is not original"""


class _AgentState:
    """Singleton state for the oracle agent."""

    instance: Agent[None, str] | None = None


def _create_agent() -> Agent[None, str]:
    """Create the oracle agent (called once, on first use)."""
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)

    model_settings = OpenRouterModelSettings(temperature=0.1, max_tokens=1500)
    if settings.model_provider:
        model_settings["openrouter_provider"] = {"only": [settings.model_provider]}

    model = OpenRouterModel(
        model_name=settings.model_id,
        provider=provider,
        settings=model_settings,
    )

    # No retries: a failed evaluation falls back instead of blocking the user
    return Agent(model=model, output_type=str, system_prompt=SYSTEM_PROMPT, retries=0)


def get_agent() -> Agent[None, str]:
    """Get or create the oracle agent."""
    if _AgentState.instance is None:
        _AgentState.instance = _create_agent()
    return _AgentState.instance


class PydanticAIQualityOracle:
    """``QualityOracle`` that asks an LLM through Pydantic AI."""

    def __init__(self, agent: Agent[None, str] | None = None) -> None:
        self._agent = agent

    async def evaluate(self, request: OracleRequest) -> str:
        """Run the agent and return its raw text answer."""
        try:
            agent = self._agent or get_agent()
            result = await agent.run(build_evaluation_prompt(request))
        except Exception as e:
            category = classify_external_error(e)
            logger.warning(
                "quality_oracle_failed",
                extra={"error": str(e), "error_type": type(e).__name__, "category": category.value},
            )
            msg = f"Quality oracle call failed: {e}"
            raise OracleUnavailableError(msg) from e

        return result.output
