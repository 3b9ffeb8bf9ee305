"""Wiring from Settings to a ready-to-run Orchestrator, plus run-record output."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from multi_agent_reasoning.config.settings import RunConfig, Settings
from multi_agent_reasoning.judge import Judge
from multi_agent_reasoning.llm import Backends, build_backends
from multi_agent_reasoning.models import RunRecord, RunResult
from multi_agent_reasoning.orchestrator import Orchestrator
from multi_agent_reasoning.planner import Planner
from multi_agent_reasoning.retrieval.retriever import Retriever
from multi_agent_reasoning.solver import Solver
from multi_agent_reasoning.tooling import SchemaTooling, Tooling

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    *,
    backends: Backends | None = None,
    tooling: Tooling | None = None,
) -> Orchestrator:
    """Build one orchestrator per run so the retrieval cache stays run-scoped."""
    config = RunConfig.from_settings(settings)
    backends = backends or build_backends(settings)
    retriever = Retriever(
        generator=backends.search,
        search_mode=config.search_mode,
        source_cap=config.source_cap,
        min_relevance=config.min_source_relevance,
        per_domain_cap=config.per_domain_cap,
    )
    return Orchestrator(
        planner=Planner(generator=backends.planner),
        solver=Solver(
            generator=backends.solver,
            retriever=retriever,
            reasoning_effort_enabled=config.reasoning_effort_enabled,
        ),
        judge=Judge(generator=backends.judge, tooling=tooling or SchemaTooling()),
        config=config,
    )


def build_run_record(goal: str, result: RunResult, settings: Settings) -> RunRecord:
    profile = settings.profile()
    return RunRecord(
        run_id=str(uuid4()),
        goal=goal,
        provider=profile.name,
        models=profile.models(),
        elapsed_s=round(result.elapsed_s, 3),
        plan=result.plan,
        rounds=result.rounds,
        evidence=result.evidence_log,
        final_artifact=result.final_artifact,
        created_at=datetime.now(UTC),
    )


def write_run_log(record: RunRecord, directory: str | Path = ".") -> Path:
    """Write the run record as `evidence-<timestamp>-<run id>.json` and return its path."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    created = record.created_at
    stamp = f"{created:%Y%m%dT%H%M%S}{created.microsecond // 1000:03d}"
    # Run-id prefix separates records saved within the same millisecond.
    path = target_dir / f"evidence-{stamp}-{record.run_id[:8]}.json"
    path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
    logger.info("run event=evidence_saved path=%s entries=%d", path, len(record.evidence))
    return path
