"""
LLM client used by the quality scorer.

A thin wrapper over ``anthropic.AsyncAnthropic`` that sends one system
prompt plus one user message and returns the text with token usage.
Provider errors are re-raised as ``QualityScoringError`` so callers only
deal with one exception type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import anthropic

from .config import Settings
from .errors import QualityScoringError
from .logger import get_logger

logger = get_logger(__name__)


@dataclass
class LLMResponse:
    content: str
    usage: Dict[str, int] = field(default_factory=dict)
    model: Optional[str] = None


class AnthropicClient:
    """
    Claude chat client.

    Any object with the same ``chat`` coroutine can stand in for it
    (the quality scorer accepts one at construction).
    """

    def __init__(self, api_key: str, model: str, max_retries: int = 2):
        self.model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=max_retries)

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """
        Send a single-turn request.

        Args:
            system_prompt: System instructions.
            user_prompt: The user message.
            max_tokens: Completion token limit.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with the concatenated text blocks.

        Raises:
            QualityScoringError: On any provider error.
        """
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            logger.warning("Anthropic request failed: %s", e)
            raise QualityScoringError(f"LLM request failed: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        return LLMResponse(content=text, usage=usage, model=response.model)


def create_llm_client(settings: Settings) -> Any:
    """
    Build the client configured in ``settings``.

    Raises:
        QualityScoringError: If no API key is configured or the provider
            is not supported.
    """
    if settings.llm_provider != "anthropic":
        raise QualityScoringError(f"Unsupported LLM provider: {settings.llm_provider}")
    if not settings.api_key:
        raise QualityScoringError("No API key configured for quality scoring (set ANTHROPIC_API_KEY)")
    return AnthropicClient(api_key=settings.api_key, model=settings.llm_model)
