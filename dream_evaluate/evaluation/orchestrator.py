"""EvaluationOrchestrator: scores one dream with one or more providers."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime

from dream_evaluate.config import EngineConfig, load_config
from dream_evaluate.errors import EvaluationError, ProviderCallError
from dream_evaluate.evaluation.consensus import consensus
from dream_evaluate.evaluation.parser import parse_score_response
from dream_evaluate.evaluation.prompts import PromptSpec, RenderedPrompt, load_prompt_spec, render
from dream_evaluate.models import (
    EvaluationMetadata,
    EvaluationRecord,
    EvaluationRequest,
    EvaluationResult,
    ModelTarget,
    new_id,
    utcnow,
)
from dream_evaluate.providers import Provider, build_providers
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)


class EvaluationOrchestrator:
    """Run the scoring rubric against every selected provider for a dream.

    Each provider call is isolated: any error raised while calling one
    provider or validating its reply becomes a persisted failure record and
    never prevents the others from running.

    Parameters
    ----------
    providers : dict[str, Provider]
        Adapters keyed by provider name.
    store : EvaluationStore
        Destination for success and failure records.
    config : EngineConfig | None
        Engine configuration; defaults apply when ``None``.
    prompt : PromptSpec | None
        Rubric prompt; the packaged template is used when ``None``.
    clock : Callable[[], datetime] | None
        Source of record timestamps.
    """

    def __init__(
        self,
        providers: dict[str, Provider],
        store: EvaluationStore,
        *,
        config: EngineConfig | None = None,
        prompt: PromptSpec | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._providers = providers
        self._store = store
        self._config = config or EngineConfig()
        self._prompt = prompt or load_prompt_spec()
        self._clock = clock or utcnow

    @classmethod
    def from_config(
        cls,
        store: EvaluationStore,
        config: EngineConfig | dict | str | None = None,
    ) -> EvaluationOrchestrator:
        """Construct an orchestrator with adapters built from configuration.

        Parameters
        ----------
        store : EvaluationStore
            Record destination.
        config : EngineConfig | dict | str | None
            An ``EngineConfig``, a dict, a YAML file path, or ``None`` for
            defaults.

        Returns
        -------
        EvaluationOrchestrator
        """
        config = load_config(config)
        return cls(build_providers(config), store, config=config)

    @property
    def store(self) -> EvaluationStore:
        return self._store

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    def select_targets(self, request: EvaluationRequest) -> list[ModelTarget]:
        """Return the configured models to use for *request*.

        With multi-model enabled every configured pair whose provider was
        requested is used. Otherwise exactly one pair is used: the first
        requested one, or the first configured one if none was requested.
        """
        configured = self._config.evaluation.models
        requested = [t for t in configured if t.provider in request.providers]
        if request.multi_model:
            return requested
        return [requested[0] if requested else configured[0]]

    def evaluate(
        self,
        request: EvaluationRequest,
        models: list[ModelTarget] | None = None,
        *,
        run_id: str | None = None,
    ) -> list[EvaluationResult]:
        """Evaluate a dream with each selected model.

        Parameters
        ----------
        request : EvaluationRequest
            Dream to evaluate.
        models : list[ModelTarget] | None
            Explicit targets (used by the scheduler's priority tiers).
            Defaults to :meth:`select_targets`.
        run_id : str | None
            Identifier shared by all records of this call.

        Returns
        -------
        list[EvaluationResult]
            Successful results in target order.  An empty list means every
            evaluation failed.
        """
        targets = models if models is not None else self.select_targets(request)
        run_id = run_id or new_id()
        prompt = render(self._prompt, request)

        if not targets:
            logger.warning("No models selected for dream=%s providers=%s", request.dream_id, request.providers)
            return []

        if len(targets) == 1:
            outcomes = [self._evaluate_one(request, targets[0], prompt, run_id)]
        else:
            workers = min(len(targets), self._config.evaluation.max_workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dream-eval") as pool:
                futures = [pool.submit(self._evaluate_one, request, t, prompt, run_id) for t in targets]
                outcomes = [f.result() for f in futures]

        results = [r for r in outcomes if r is not None]
        logger.info(
            "Evaluated dream=%s run=%s succeeded=%d failed=%d",
            request.dream_id,
            run_id,
            len(results),
            len(targets) - len(results),
        )
        return results

    def evaluate_with_consensus(
        self,
        request: EvaluationRequest,
        models: list[ModelTarget] | None = None,
    ) -> tuple[list[EvaluationResult], EvaluationResult | None]:
        """Evaluate and, when two or more models succeed, persist a consensus.

        Returns
        -------
        tuple[list[EvaluationResult], EvaluationResult | None]
            ``(results, consensus_result)``; the consensus is ``None`` when
            fewer than two evaluations succeeded.
        """
        run_id = new_id()
        results = self.evaluate(request, models, run_id=run_id)
        if len(results) < 2:
            return results, None

        combined = consensus(results)
        # member records already carry the cost
        record = EvaluationRecord.from_result(combined, request, run_id=run_id, created_at=self._clock())
        self._store.create(_without_cost(record))
        logger.info(
            "Consensus dream=%s models=%d impossibility=%.2f",
            request.dream_id,
            len(results),
            combined.impossibility_score,
        )
        return results, combined

    def _evaluate_one(
        self,
        request: EvaluationRequest,
        target: ModelTarget,
        prompt: RenderedPrompt,
        run_id: str,
    ) -> EvaluationResult | None:
        evaluation = self._config.evaluation
        parameters = {
            "temperature": evaluation.temperature,
            "max_tokens": evaluation.max_tokens,
            "prompt_name": self._prompt.name,
            "prompt_version": prompt.version,
        }
        started = time.perf_counter()
        try:
            provider = self._providers.get(target.provider)
            if provider is None:
                raise ProviderCallError(target.provider, target.model, "no adapter configured")

            response = provider.generate(
                prompt.messages,
                model=target.model,
                temperature=evaluation.temperature,
                max_tokens=evaluation.max_tokens,
            )
            parsed = parse_score_response(response.text)
        except EvaluationError as exc:
            logger.warning(
                "Evaluation failed dream=%s model=%s: %s", request.dream_id, target.label, exc
            )
            self._record_failure(request, target, exc, run_id, parameters, started)
            return None
        except Exception as exc:
            # sibling providers must still complete and be counted
            logger.exception("Unexpected error evaluating dream=%s model=%s", request.dream_id, target.label)
            self._record_failure(request, target, exc, run_id, parameters, started)
            return None

        duration_ms = int((time.perf_counter() - started) * 1000)
        result = EvaluationResult(
            scores=parsed.dimension_scores(),
            confidence=parsed.confidence,
            reasoning=parsed.reasoning,
            metadata=EvaluationMetadata(
                provider=target.provider,
                model=target.model,
                tokens_used=response.tokens_used,
                duration_ms=duration_ms,
                parameters=parameters,
                prompt_hash=prompt.content_hash,
                cost=self._config.scheduler.cost_per_request(target.model),
            ),
        )
        self._store.create(EvaluationRecord.from_result(result, request, run_id=run_id, created_at=self._clock()))
        logger.debug(
            "Scored dream=%s model=%s impossibility=%.2f tokens=%d",
            request.dream_id,
            target.label,
            result.impossibility_score,
            response.tokens_used,
        )
        return result

    def _record_failure(
        self,
        request: EvaluationRequest,
        target: ModelTarget,
        error: Exception,
        run_id: str,
        parameters: dict,
        started: float,
    ) -> None:
        self._store.create(
            EvaluationRecord.failure(
                request,
                target,
                error,
                run_id=run_id,
                parameters=parameters,
                duration_ms=int((time.perf_counter() - started) * 1000),
                created_at=self._clock(),
            )
        )


def _without_cost(record: EvaluationRecord) -> EvaluationRecord:
    return replace(record, cost=0.0, tokens_used=0)
