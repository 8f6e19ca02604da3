"""Anthropic (Claude) provider adapter."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from dream_evaluate.errors import ProviderCallError
from dream_evaluate.providers.base import Provider, ProviderRegistry, ProviderResponse, split_system

logger = logging.getLogger(__name__)


@ProviderRegistry.register("anthropic")
class AnthropicProvider(Provider):
    """Adapter for the Anthropic Messages API.

    System text travels in the top-level ``system`` field, content is the
    concatenation of text blocks, and usage is the sum of the separate input
    and output token counts.

    Parameters
    ----------
    api_key : str | None
        Anthropic API key.  Falls back to ``ANTHROPIC_API_KEY`` env var.
    timeout : float
        Per-request timeout in seconds.
    """

    name = "anthropic"

    def __init__(self, api_key: str | None = None, timeout: float = 60.0) -> None:
        self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

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

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": chat,
        }
        if system_text:
            kwargs["system"] = system_text

        logger.debug("Anthropic request model=%s messages=%d", model, len(chat))
        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            raise ProviderCallError(self.name, model, str(exc)) from exc

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        usage = response.usage
        return ProviderResponse(text=text, tokens_used=int(usage.input_tokens + usage.output_tokens))
