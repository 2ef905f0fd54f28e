"""
Model gateway: the text-generation capability the orchestrator consumes.

ModelGateway is the seam (tests plug in a scripted fake). PydanticAIGateway is the
production implementation on a plain-text pydantic-ai Agent.
"""
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from pydantic_ai import Agent
from pydantic_ai.exceptions import UserError
from pydantic_ai.messages import PartDeltaEvent, PartStartEvent, TextPart, TextPartDelta
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from tripplanner.config import settings
from tripplanner.core.errors import ModelCallFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.5
    max_tokens: int = 16384


class StreamingUnavailable(Exception):
    """Raised by generate_stream before the first chunk when the backend cannot stream."""


# What pydantic-ai raises when the model has no streamed-request support
STREAMING_UNSUPPORTED = (UserError, NotImplementedError, AssertionError)


class ModelGateway(Protocol):
    model_name: str

    async def generate(self, prompt: str, config: GenerationConfig) -> str: ...

    def generate_stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]: ...


def default_config(temperature: float | None = None) -> GenerationConfig:
    return GenerationConfig(
        temperature=settings.ai_temperature if temperature is None else temperature,
        max_tokens=settings.ai_max_tokens,
    )


async def generate_text(gateway: ModelGateway, prompt: str, config: GenerationConfig) -> str:
    """
    Full response text for a prompt: concatenated stream chunks, or the non-streaming
    call when the gateway cannot stream.
    """
    chunks: list[str] = []
    try:
        async for chunk in gateway.generate_stream(prompt, config):
            chunks.append(chunk)
    except StreamingUnavailable:
        logger.info("Streaming unavailable for %s; using non-streaming call", gateway.model_name)
        return await gateway.generate(prompt, config)
    return "".join(chunks)


def _single_cause(exc: Exception) -> BaseException:
    """Unwrap one-member exception groups raised out of the agent's task group."""
    inner = getattr(exc, "exceptions", None)
    while inner and len(inner) == 1:
        exc = inner[0]
        inner = getattr(exc, "exceptions", None)
    return exc


def _event_text(event) -> str:
    if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
        return event.part.content
    if isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
        return event.delta.content_delta
    return ""


class PydanticAIGateway:
    """Plain-text Agent with no tools and no instructions; the prompt carries everything."""

    def __init__(self, model: str | Model | None = None) -> None:
        model = model or settings.ai_model
        self.model_name = model if isinstance(model, str) else model.model_name
        self._model = model
        self._agent: Agent | None = None

    def _get_agent(self) -> Agent:
        if self._agent is None:
            # Model check deferred so importing/constructing does not need an API key
            self._agent = Agent(model=self._model, defer_model_check=True, retries=0)
        return self._agent

    @staticmethod
    def _settings(config: GenerationConfig) -> ModelSettings:
        return ModelSettings(temperature=config.temperature, max_tokens=config.max_tokens)

    async def generate(self, prompt: str, config: GenerationConfig) -> str:
        try:
            result = await self._get_agent().run(prompt, model_settings=self._settings(config))
        except Exception as e:
            raise ModelCallFailed(str(e)) from e
        return result.output if isinstance(result.output, str) else str(result.output)

    async def generate_stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        started = False
        try:
            async with self._get_agent().run_stream_events(
                prompt, model_settings=self._settings(config)
            ) as events:
                async for event in events:
                    text = _event_text(event)
                    if text:
                        started = True
                        yield text
        except Exception as e:
            if not started and isinstance(_single_cause(e), STREAMING_UNSUPPORTED):
                raise StreamingUnavailable(str(e)) from e
            raise ModelCallFailed(str(e)) from e


_gateway: PydanticAIGateway | None = None


def get_gateway() -> ModelGateway:
    """Process-wide gateway (FastAPI dependency; overridden in tests)."""
    global _gateway
    if _gateway is None:
        _gateway = PydanticAIGateway()
    return _gateway
