"""Command-line entrypoint: run one goal through planner, solvers and judge."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from multi_agent_reasoning.config.providers import SUPPORTED_PROVIDERS
from multi_agent_reasoning.config.settings import Settings, validate_credentials
from multi_agent_reasoning.errors import ConfigurationError, PlanDeadlockError
from multi_agent_reasoning.models import RunRecord
from multi_agent_reasoning.orchestrator import Orchestrator
from multi_agent_reasoning.runtime import build_orchestrator, build_run_record, write_run_log


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="multi-agent-reasoning",
        description="Plan, solve and verify a goal with a multi-agent reasoning pipeline.",
    )
    parser.add_argument("goal", help="Question or task to solve.")
    parser.add_argument(
        "-m",
        "--provider",
        "--model",
        dest="provider",
        choices=SUPPORTED_PROVIDERS,
        default=None,
        help="Backend provider profile (default: REASONING_LLM_PROVIDER or openai).",
    )
    parser.add_argument("--search-mode", choices=("always", "never", "auto"), default=None)
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("--fanout", type=int, default=None, help="Proposals per subtask.")
    parser.add_argument(
        "--save-evidence",
        action="store_true",
        default=None,
        help="Write evidence-<timestamp>-<run id>.json with the full run record.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {
        "llm_provider": args.provider,
        "search_mode": args.search_mode,
        "max_retries": args.max_retries,
        "proposal_fanout": args.fanout,
        "save_evidence": args.save_evidence,
    }
    try:
        return Settings(**{key: value for key, value in overrides.items() if value is not None})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def print_report(record: RunRecord) -> None:
    artifact = record.final_artifact
    print("=== FINAL RESULT ===")
    print(artifact.text)
    if artifact.citations:
        print("")
        print("Sources:")
        for citation in artifact.citations:
            print(f"- {citation}")
    if artifact.failed:
        print("")
        print(f"Note: {artifact.note}")
    print("")
    print("=== PLAN ===")
    for subtask in record.plan.subtasks:
        deps = f" (after {', '.join(subtask.deps)})" if subtask.deps else ""
        print(f"- {subtask.id} [{subtask.kind}]{deps}: {subtask.prompt}")
    print("")
    print(f"Provider: {record.provider}  Rounds: {len(record.rounds)}  Elapsed: {record.elapsed_s:.2f}s")


def main(
    argv: Sequence[str] | None = None,
    *,
    orchestrator: Orchestrator | None = None,
) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        settings = settings_from_args(args)
        if orchestrator is None:
            validate_credentials(settings)
            orchestrator = build_orchestrator(settings)
        result = orchestrator.run(args.goal)
        record = build_run_record(args.goal, result, settings)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    except PlanDeadlockError as exc:
        print(f"Run failed: {exc}", file=sys.stderr)
        return 1

    print_report(record)
    if settings.save_evidence:
        path = write_run_log(record, settings.evidence_dir)
        print(f"Evidence saved to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
