"""Provider adapters and registry."""

from dream_evaluate.providers import anthropic_provider, litellm_provider, openai_provider  # noqa: F401
from dream_evaluate.providers.base import Provider, ProviderRegistry, ProviderResponse

__all__ = ["Provider", "ProviderRegistry", "ProviderResponse", "build_providers"]


def build_providers(config) -> dict[str, Provider]:
    """Instantiate one adapter per configured provider.

    Parameters
    ----------
    config : EngineConfig
        Engine configuration; ``config.providers`` maps provider names to
        adapter settings.

    Returns
    -------
    dict[str, Provider]
    """
    return {
        name: ProviderRegistry.create(cfg.type, timeout=cfg.timeout, **cfg.extra)
        for name, cfg in config.providers.items()
    }
