"""Exception hierarchy for dream evaluation."""

from __future__ import annotations


class DreamEvaluateError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(DreamEvaluateError, ValueError):
    """Raised when configuration values are missing or out of range."""


class EvaluationError(DreamEvaluateError):
    """A single provider evaluation could not produce a scored result.

    Caught at the per-provider boundary inside the orchestrator and turned
    into a persisted failure record.
    """


class ProviderCallError(EvaluationError):
    """Network, timeout, or non-success response from a provider.

    Parameters
    ----------
    provider : str
        Registered provider name.
    model : str
        Model identifier used for the call.
    message : str
        Human-readable failure reason.
    """

    def __init__(self, provider: str, model: str, message: str) -> None:
        self.provider = provider
        self.model = model
        super().__init__(f"{provider}/{model}: {message}")


class ResponseParseError(EvaluationError):
    """No JSON object could be extracted from the provider text.

    Parameters
    ----------
    message : str
        Failure reason.
    raw_text : str
        The provider output, retained for diagnostics.
    """

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ResponseValidationError(EvaluationError):
    """Parsed JSON is missing a field or has a score outside [0, 100].

    Parameters
    ----------
    message : str
        Failure reason.
    errors : list[str]
        One entry per offending field.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message)
