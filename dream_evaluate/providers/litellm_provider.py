"""LiteLLM catch-all provider adapter supporting 100+ LLM providers."""

from __future__ import annotations

import logging
from typing import Any

import litellm
import openai

from dream_evaluate.errors import ProviderCallError
from dream_evaluate.providers.base import Provider, ProviderRegistry, ProviderResponse, split_system
from dream_evaluate.providers.openai_provider import _normalize

logger = logging.getLogger(__name__)


@ProviderRegistry.register("litellm")
class LiteLLMProvider(Provider):
    """Adapter for LiteLLM's unified completion interface.

    Model identifiers use LiteLLM format
    (e.g. ``"bedrock/anthropic.claude-3-5-sonnet-20241022-v2:0"``).

    Parameters
    ----------
    timeout : float
        Per-request timeout in seconds.
    **extra
        Forwarded to every ``litellm.completion`` call (e.g. ``api_base``).
    """

    name = "litellm"

    def __init__(self, timeout: float = 60.0, **extra: Any) -> None:
        self._timeout = timeout
        self._extra = extra

    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
        system: str | None = None,
    ) -> ProviderResponse:
        system_text, chat = split_system(messages, system)
        if system_text:
            chat = [{"role": "system", "content": system_text}, *chat]

        logger.debug("LiteLLM request model=%s messages=%d", model, len(chat))
        try:
            response = litellm.completion(
                model=model,
                messages=chat,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self._timeout,
                **self._extra,
            )
        except openai.OpenAIError as exc:
            # litellm maps provider errors onto the OpenAI exception hierarchy
            raise ProviderCallError(self.name, model, str(exc)) from exc

        return _normalize(response)
