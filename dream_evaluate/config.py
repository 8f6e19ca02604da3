"""Unified configuration for evaluation and scheduling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dream_evaluate.errors import ConfigError
from dream_evaluate.models import ModelTarget

DEFAULT_COST_PER_REQUEST = 0.05

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
PRIORITY_TIERS: tuple[str, ...] = (PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW)


@dataclass
class ProviderConfig:
    """Settings for one provider adapter.

    Parameters
    ----------
    type : str
        Registered adapter name (``"openai"``, ``"anthropic"``, ``"litellm"``).
    timeout : float
        Per-request timeout in seconds.
    extra : dict
        Additional kwargs forwarded to the adapter constructor
        (e.g. ``api_key``, ``base_url``).
    """

    type: str
    timeout: float = 60.0
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.type:
            msg = "provider type must be a non-empty string"
            raise ConfigError(msg)
        if self.timeout <= 0:
            msg = f"provider timeout must be > 0, got {self.timeout}"
            raise ConfigError(msg)


@dataclass
class EvaluationConfig:
    """Settings for the evaluation orchestrator.

    Parameters
    ----------
    models : list[ModelTarget]
        Configured (provider, model) pairs, in preference order.
    temperature : float
        Sampling temperature, kept low for reproducibility.
    max_tokens : int
        Maximum tokens per completion.
    max_workers : int
        Upper bound on concurrent provider calls for one dream.
    """

    models: list[ModelTarget] = field(
        default_factory=lambda: [
            ModelTarget("openai", "gpt-4o"),
            ModelTarget("anthropic", "claude-3-5-sonnet-20241022"),
        ]
    )
    temperature: float = 0.3
    max_tokens: int = 2000
    max_workers: int = 4

    def __post_init__(self) -> None:
        if not self.models:
            msg = "at least one evaluation model must be configured"
            raise ConfigError(msg)
        if self.temperature < 0:
            msg = f"temperature must be >= 0, got {self.temperature}"
            raise ConfigError(msg)
        if self.max_tokens <= 0:
            msg = f"max_tokens must be > 0, got {self.max_tokens}"
            raise ConfigError(msg)
        if self.max_workers < 1:
            msg = f"max_workers must be >= 1, got {self.max_workers}"
            raise ConfigError(msg)


@dataclass
class PriorityThresholds:
    """Impossibility-score cut-offs for the high and medium tiers."""

    high: float = 75.0
    medium: float = 50.0

    def __post_init__(self) -> None:
        if not (0 <= self.medium <= 100 and 0 <= self.high <= 100):
            msg = f"priority thresholds must be within 0-100, got high={self.high} medium={self.medium}"
            raise ConfigError(msg)
        if self.high <= self.medium:
            msg = f"priority threshold high ({self.high}) must be > medium ({self.medium})"
            raise ConfigError(msg)


@dataclass
class ModelLimit:
    """Daily request cap and flat per-request cost for one model.

    A ``max_requests_per_day`` of ``None`` means the model is not capped.
    """

    max_requests_per_day: int | None = None
    cost_per_request: float = DEFAULT_COST_PER_REQUEST

    def __post_init__(self) -> None:
        if self.max_requests_per_day is not None and self.max_requests_per_day < 0:
            msg = f"max_requests_per_day must be >= 0, got {self.max_requests_per_day}"
            raise ConfigError(msg)
        if self.cost_per_request < 0:
            msg = f"cost_per_request must be >= 0, got {self.cost_per_request}"
            raise ConfigError(msg)


def _default_model_limits() -> dict[str, ModelLimit]:
    return {
        "gpt-4o": ModelLimit(max_requests_per_day=20, cost_per_request=0.15),
        "gpt-4o-mini": ModelLimit(max_requests_per_day=100, cost_per_request=0.03),
        "claude-3-5-sonnet-20241022": ModelLimit(max_requests_per_day=25, cost_per_request=0.12),
        "claude-3-5-haiku-20241022": ModelLimit(max_requests_per_day=80, cost_per_request=0.04),
    }


def _default_tier_models() -> dict[str, list[ModelTarget]]:
    return {
        PRIORITY_HIGH: [
            ModelTarget("openai", "gpt-4o"),
            ModelTarget("anthropic", "claude-3-5-sonnet-20241022"),
        ],
        PRIORITY_MEDIUM: [ModelTarget("anthropic", "claude-3-5-sonnet-20241022")],
        PRIORITY_LOW: [ModelTarget("openai", "gpt-4o-mini")],
    }


@dataclass
class SchedulerConfig:
    """Settings for the budget-aware re-evaluation scheduler.

    Parameters
    ----------
    retest_interval_days : int
        Minimum age of the latest completed evaluation before a dream is
        eligible again.
    max_cost_per_day : float
        Hard daily spend ceiling.
    priority_thresholds : PriorityThresholds
        Tier cut-offs on the latest impossibility score.
    model_limits : dict[str, ModelLimit]
        Per-model daily request caps and flat costs.
    tier_models : dict[str, list[ModelTarget]]
        Models used for each priority tier.
    candidate_limit : int
        Maximum number of candidates considered per run.
    inter_call_delay : float
        Seconds to wait between candidates.
    default_cost_per_request : float
        Cost assumed for models without a configured limit.
    interval_hours : float
        Period of the automatic trigger.
    """

    retest_interval_days: int = 30
    max_cost_per_day: float = 10.0
    priority_thresholds: PriorityThresholds = field(default_factory=PriorityThresholds)
    model_limits: dict[str, ModelLimit] = field(default_factory=_default_model_limits)
    tier_models: dict[str, list[ModelTarget]] = field(default_factory=_default_tier_models)
    candidate_limit: int = 200
    inter_call_delay: float = 1.0
    default_cost_per_request: float = DEFAULT_COST_PER_REQUEST
    interval_hours: float = 24.0

    def __post_init__(self) -> None:
        if self.retest_interval_days <= 0:
            msg = f"retest_interval_days must be > 0, got {self.retest_interval_days}"
            raise ConfigError(msg)
        if self.max_cost_per_day <= 0:
            msg = f"max_cost_per_day must be > 0, got {self.max_cost_per_day}"
            raise ConfigError(msg)
        if self.candidate_limit < 1:
            msg = f"candidate_limit must be >= 1, got {self.candidate_limit}"
            raise ConfigError(msg)
        if self.inter_call_delay < 0:
            msg = f"inter_call_delay must be >= 0, got {self.inter_call_delay}"
            raise ConfigError(msg)
        if self.interval_hours <= 0:
            msg = f"interval_hours must be > 0, got {self.interval_hours}"
            raise ConfigError(msg)
        missing = [tier for tier in PRIORITY_TIERS if not self.tier_models.get(tier)]
        if missing:
            msg = f"tier_models missing models for: {', '.join(missing)}"
            raise ConfigError(msg)

    def cost_per_request(self, model: str) -> float:
        """Return the flat cost of one request to *model*."""
        limit = self.model_limits.get(model)
        return limit.cost_per_request if limit is not None else self.default_cost_per_request


@dataclass
class EngineConfig:
    """Top-level configuration.

    Parameters
    ----------
    providers : dict[str, ProviderConfig]
        Provider adapters keyed by the provider name used in model targets.
    evaluation : EvaluationConfig
        Orchestrator settings.
    scheduler : SchedulerConfig
        Scheduler and budget settings.
    """

    providers: dict[str, ProviderConfig] = field(
        default_factory=lambda: {
            "openai": ProviderConfig(type="openai"),
            "anthropic": ProviderConfig(type="anthropic"),
        }
    )
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def load_config(source: str | Path | dict[str, Any] | EngineConfig | None = None) -> EngineConfig:
    """Load an EngineConfig from a YAML file, dict, or environment variables.

    Parameters
    ----------
    source : str | Path | dict | EngineConfig | None
        A path to a YAML file, a raw dict, an existing config (returned
        unchanged), or ``None`` to use only environment variable overrides
        on defaults.

    Returns
    -------
    EngineConfig

    Raises
    ------
    ConfigError
        If any value is out of range.
    """
    if isinstance(source, EngineConfig):
        return source

    raw: dict[str, Any] = {}
    if isinstance(source, dict):
        raw = source
    elif source is not None:
        path = Path(source)
        if path.is_file():
            raw = _load_yaml(path)

    providers_raw = raw.get("providers")
    if providers_raw is None:
        providers = EngineConfig().providers
    else:
        providers = {name: _provider_config(name, cfg or {}) for name, cfg in providers_raw.items()}

    timeout_env = os.environ.get("DREAM_EVAL_TIMEOUT")
    if timeout_env is not None:
        for provider in providers.values():
            provider.timeout = float(timeout_env)

    eval_raw = raw.get("evaluation", {})
    eval_defaults = EvaluationConfig()
    evaluation = EvaluationConfig(
        models=_targets(eval_raw["models"]) if "models" in eval_raw else eval_defaults.models,
        temperature=float(os.environ.get("DREAM_EVAL_TEMPERATURE", eval_raw.get("temperature", 0.3))),
        max_tokens=int(eval_raw.get("max_tokens", 2000)),
        max_workers=int(eval_raw.get("max_workers", 4)),
    )

    sched_raw = raw.get("scheduler", {})
    sched_defaults = SchedulerConfig()
    thresholds_raw = sched_raw.get("priority_thresholds", {})
    limits_raw = sched_raw.get("model_limits")
    tiers_raw = sched_raw.get("tier_models")
    scheduler = SchedulerConfig(
        retest_interval_days=int(
            os.environ.get("DREAM_EVAL_RETEST_INTERVAL_DAYS", sched_raw.get("retest_interval_days", 30))
        ),
        max_cost_per_day=float(os.environ.get("DREAM_EVAL_MAX_COST_PER_DAY", sched_raw.get("max_cost_per_day", 10.0))),
        priority_thresholds=PriorityThresholds(
            high=float(thresholds_raw.get("high", 75.0)),
            medium=float(thresholds_raw.get("medium", 50.0)),
        ),
        model_limits=(
            {
                model: ModelLimit(
                    max_requests_per_day=_optional_int(cfg.get("max_requests_per_day")),
                    cost_per_request=float(cfg.get("cost_per_request", DEFAULT_COST_PER_REQUEST)),
                )
                for model, cfg in limits_raw.items()
            }
            if limits_raw is not None
            else sched_defaults.model_limits
        ),
        tier_models=(
            {**sched_defaults.tier_models, **{tier: _targets(items) for tier, items in tiers_raw.items()}}
            if tiers_raw is not None
            else sched_defaults.tier_models
        ),
        candidate_limit=int(sched_raw.get("candidate_limit", 200)),
        inter_call_delay=float(sched_raw.get("inter_call_delay", 1.0)),
        default_cost_per_request=float(sched_raw.get("default_cost_per_request", DEFAULT_COST_PER_REQUEST)),
        interval_hours=float(sched_raw.get("interval_hours", 24.0)),
    )

    return EngineConfig(providers=providers, evaluation=evaluation, scheduler=scheduler)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _provider_config(name: str, cfg: dict[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        type=cfg.get("type", name),
        timeout=float(cfg.get("timeout", 60.0)),
        extra={k: v for k, v in cfg.items() if k not in {"type", "timeout"}},
    )


def _targets(items: list[Any]) -> list[ModelTarget]:
    """Parse ``"provider/model"`` strings or ``{provider, model}`` mappings."""
    targets: list[ModelTarget] = []
    for item in items:
        if isinstance(item, str):
            provider, sep, model = item.partition("/")
            if not sep or not provider or not model:
                msg = f"model target must look like 'provider/model', got {item!r}"
                raise ConfigError(msg)
            targets.append(ModelTarget(provider, model))
        else:
            targets.append(ModelTarget(item["provider"], item["model"]))
    return targets


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file using PyYAML."""
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}
