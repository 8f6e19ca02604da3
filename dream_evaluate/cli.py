"""Command line interface for the dream evaluation engine."""

from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import asdict
from datetime import timedelta
from typing import Any

from dream_evaluate.api import analyze_decay
from dream_evaluate.config import load_config
from dream_evaluate.costs import CostTracker
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.models import utcnow
from dream_evaluate.scheduler import DreamEvaluationScheduler, PeriodicTrigger, run_scheduled_evaluations
from dream_evaluate.storage.jsonl import JsonLinesEvaluationStore

logger = logging.getLogger(__name__)


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, default=str))


def _scheduler(args: argparse.Namespace) -> DreamEvaluationScheduler:
    config = load_config(args.config)
    store = JsonLinesEvaluationStore(args.data_dir)
    orchestrator = EvaluationOrchestrator.from_config(store, config)
    return DreamEvaluationScheduler(orchestrator, store)


def cmd_run(args: argparse.Namespace) -> int:
    summary = run_scheduled_evaluations(_scheduler(args))
    _print(asdict(summary))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    trigger = PeriodicTrigger(_scheduler(args), args.interval_hours)
    trigger.start()
    stop = threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        trigger.shutdown()
    return 0


def cmd_costs(args: argparse.Namespace) -> int:
    store = JsonLinesEvaluationStore(args.data_dir)
    end = utcnow()
    start = end - timedelta(days=args.days)
    _print(asdict(CostTracker(store).summarize(start, end, user_id=args.user)))
    return 0


def cmd_decay(args: argparse.Namespace) -> int:
    store = JsonLinesEvaluationStore(args.data_dir)
    try:
        analysis = analyze_decay(store, args.dream_id)
    except LookupError as exc:
        logger.error("%s", exc)
        return 1
    _print(asdict(analysis))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dream-evaluate", description="Score and re-evaluate dreams with LLMs.")
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--data-dir", default=".dream_evaluate", help="Directory of the JSON-lines record store")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run one scheduler pass and print its summary")
    run.set_defaults(func=cmd_run)

    serve = sub.add_parser("serve", help="Run scheduler passes periodically until interrupted")
    serve.add_argument("--interval-hours", type=float, default=None)
    serve.set_defaults(func=cmd_serve)

    costs = sub.add_parser("costs", help="Summarize spend over recent days")
    costs.add_argument("--days", type=int, default=30)
    costs.add_argument("--user", default=None)
    costs.set_defaults(func=cmd_costs)

    decay = sub.add_parser("decay", help="Show impossibility decay for one dream")
    decay.add_argument("dream_id")
    decay.set_defaults(func=cmd_decay)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
