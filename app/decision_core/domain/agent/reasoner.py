"""
External reasoners.

A Reasoner takes a state prompt and answers with raw text (expected to be
an AgentRecommendation JSON object) plus token usage. The coordinator only
depends on the protocol; LLMReasoner is the production implementation on
the OpenAI Agents SDK.
"""
from dataclasses import dataclass
from typing import Protocol

import openai
from agents import Agent, ModelSettings, Runner

from decision_core.config import Settings
from decision_core.domain.agent.prompts import PERSONAS
from decision_core.domain.agent.tools import REASONER_TOOLS
from decision_core.exceptions import ConfigError, ReasonerError
from decision_core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReasonerResponse:
    """Raw reasoner answer."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class Reasoner(Protocol):
    """Anything the coordinator can query."""

    name: str
    model: str

    async def query(self, prompt: str) -> ReasonerResponse:
        """
        Raises:
            ReasonerError: transport failure or non-2xx response
            TimeoutError: the request timed out on the client side
        """
        ...


class LLMReasoner:
    """Reasoner backed by an OpenAI Agents SDK agent."""

    def __init__(self, name: str, instructions: str, settings: Settings):
        self.name = name
        self.model = settings.model_name

        model_settings_kwargs = {"temperature": settings.temperature}
        if settings.reasoning_effort:
            model_settings_kwargs["reasoning"] = {"effort": settings.reasoning_effort}

        self._agent = Agent(
            name=f"Reasoner_{name}",
            instructions=instructions,
            tools=list(REASONER_TOOLS),
            model=settings.model_name,
            model_settings=ModelSettings(**model_settings_kwargs),
        )
        logger.info(f"Created reasoner {name} (model={self.model})")

    async def query(self, prompt: str) -> ReasonerResponse:
        try:
            result = await Runner.run(self._agent, prompt)
        except openai.APITimeoutError as e:
            raise TimeoutError(f"{self.name}: request timed out") from e
        except openai.APIStatusError as e:
            raise ReasonerError(f"{self.name}: HTTP {e.status_code}", status=e.status_code) from e
        except openai.APIConnectionError as e:
            raise ReasonerError(f"{self.name}: connection failed: {e}") from e

        usage = result.context_wrapper.usage
        return ReasonerResponse(
            text=str(result.final_output),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )


def build_reasoners(settings: Settings, names: list[str]) -> list[LLMReasoner]:
    """Create one LLMReasoner per configured persona name."""
    unknown = [n for n in names if n not in PERSONAS]
    if unknown:
        raise ConfigError("unknown_persona", f"Unknown reasoner personas: {unknown}")
    return [LLMReasoner(name, PERSONAS[name], settings) for name in names]
