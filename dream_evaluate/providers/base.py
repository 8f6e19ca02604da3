"""Abstract provider adapter and registry for generative AI providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProviderResponse:
    """Normalized provider output.

    Parameters
    ----------
    text : str
        The assistant's text completion.
    tokens_used : int
        Total tokens consumed by the call (prompt plus completion).
    """

    text: str
    tokens_used: int = 0


class Provider(ABC):
    """Adapter that hides one provider's wire shape behind ``generate``.

    Subclasses must set ``name`` and implement ``generate``. Any failure of
    the underlying call, including timeouts, is raised as
    :class:`~dream_evaluate.errors.ProviderCallError`.
    """

    name: str = ""

    @abstractmethod
    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
        system: str | None = None,
    ) -> ProviderResponse:
        """Return the normalized completion for *messages*.

        Parameters
        ----------
        messages : list[dict[str, str]]
            Ordered chat messages (``role`` / ``content`` dicts).
        model : str
            Model identifier for this call.
        temperature : float
            Sampling temperature.
        max_tokens : int
            Maximum tokens in the response.
        system : str | None
            Optional system text, merged with any ``system`` messages.

        Returns
        -------
        ProviderResponse
        """


class ProviderRegistry:
    """Discover and instantiate registered provider adapters."""

    _providers: dict[str, type[Provider]] = {}

    @classmethod
    def register(cls, name: str):
        """Class decorator that registers an adapter under *name*.

        Parameters
        ----------
        name : str
            Lookup key used in configuration files.

        Returns
        -------
        Callable
            The original class, unmodified.
        """

        def decorator(klass: type[Provider]) -> type[Provider]:
            cls._providers[name] = klass
            return klass

        return decorator

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> Provider:
        """Instantiate a registered adapter.

        Parameters
        ----------
        name : str
            Registered adapter name.
        **kwargs
            Forwarded to the adapter constructor.

        Returns
        -------
        Provider

        Raises
        ------
        KeyError
            If *name* is not registered.
        """
        if name not in cls._providers:
            available = ", ".join(sorted(cls._providers)) or "(none)"
            msg = f"Unknown provider {name!r}. Available: {available}"
            raise KeyError(msg)
        return cls._providers[name](**kwargs)

    @classmethod
    def available(cls) -> list[str]:
        """Return sorted list of registered adapter names."""
        return sorted(cls._providers)


def split_system(messages: list[dict[str, str]], system: str | None = None) -> tuple[str, list[dict[str, str]]]:
    """Separate system text from the conversational messages.

    Returns
    -------
    tuple[str, list[dict[str, str]]]
        ``(system_text, chat_messages)``; explicit *system* text comes first.
    """
    parts = [system] if system else []
    parts.extend(m["content"] for m in messages if m["role"] == "system")
    chat = [m for m in messages if m["role"] != "system"]
    return "\n\n".join(parts), chat
