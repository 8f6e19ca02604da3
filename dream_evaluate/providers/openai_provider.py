"""OpenAI / Azure OpenAI provider adapter."""

from __future__ import annotations

import logging
from typing import Any

import openai

from dream_evaluate.errors import ProviderCallError
from dream_evaluate.providers.base import Provider, ProviderRegistry, ProviderResponse, split_system

logger = logging.getLogger(__name__)


@ProviderRegistry.register("openai")
class OpenAIProvider(Provider):
    """Adapter for the OpenAI Chat Completions API.

    Content is read from ``choices[0].message.content`` and usage from the
    single ``usage.total_tokens`` figure.

    Parameters
    ----------
    api_key : str | None
        OpenAI API key.  Falls back to ``OPENAI_API_KEY`` env var.
    base_url : str | None
        Custom base URL (for Azure OpenAI or compatible APIs).
    timeout : float
        Per-request timeout in seconds.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        kwargs: dict[str, Any] = {"timeout": timeout, "max_retries": 0}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        self._client = openai.OpenAI(**kwargs)

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

        logger.debug("OpenAI request model=%s messages=%d", model, len(chat))
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=chat,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as exc:
            raise ProviderCallError(self.name, model, str(exc)) from exc

        return _normalize(response)


def _normalize(response: Any) -> ProviderResponse:
    """Read the chat-completions shape shared by OpenAI-compatible APIs."""
    text = ""
    if response.choices:
        text = response.choices[0].message.content or ""
    usage = getattr(response, "usage", None)
    tokens = getattr(usage, "total_tokens", 0) or 0
    return ProviderResponse(text=text, tokens_used=int(tokens))
