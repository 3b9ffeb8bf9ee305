"""FastAPI app entrypoint for multi-agent-reasoning."""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from multi_agent_reasoning.config.settings import Settings, get_settings, validate_credentials
from multi_agent_reasoning.errors import ConfigurationError, PlanDeadlockError
from multi_agent_reasoning.models import EvidenceLogEntry, RunRecord
from multi_agent_reasoning.orchestrator import Orchestrator
from multi_agent_reasoning.runtime import build_orchestrator, build_run_record
from multi_agent_reasoning.storage.base import RunStorage
from multi_agent_reasoning.storage.memory import InMemoryRunStorage

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[Settings], Orchestrator]


class CreateRunRequest(BaseModel):
    goal: str = Field(min_length=1)


def _default_orchestrator_factory(settings: Settings) -> Orchestrator:
    validate_credentials(settings)
    return build_orchestrator(settings)


def create_app(
    *,
    storage: RunStorage | None = None,
    settings_override: Settings | None = None,
    orchestrator_factory: OrchestratorFactory | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    factory = orchestrator_factory or _default_orchestrator_factory

    app = FastAPI(title=settings.app_name)
    app.state.storage = storage or InMemoryRunStorage()
    app.state.settings = settings

    def _get_run_storage(request: Request) -> RunStorage:
        return request.app.state.storage

    def _get_run_or_404(request: Request, run_id: str) -> RunRecord:
        record = _get_run_storage(request).get_run(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return record

    @app.get("/health")
    def health() -> dict[str, str]:
        return {
            "status": "ok",
            "service": settings.app_name,
            "provider": settings.llm_provider,
        }

    @app.post("/runs", response_model=RunRecord)
    def create_run(payload: CreateRunRequest, request: Request) -> RunRecord:
        try:
            # One orchestrator per run keeps the retrieval cache run-scoped.
            orchestrator = factory(settings)
            result = orchestrator.run(payload.goal)
        except ConfigurationError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except PlanDeadlockError as exc:
            logger.warning("api event=run_rejected reason=%s", exc)
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        record = build_run_record(payload.goal, result, settings)
        return _get_run_storage(request).save_run(record)

    @app.get("/runs/{run_id}", response_model=RunRecord)
    def get_run(run_id: str, request: Request) -> RunRecord:
        return _get_run_or_404(request, run_id)

    @app.get("/runs/{run_id}/evidence", response_model=list[EvidenceLogEntry])
    def get_run_evidence(run_id: str, request: Request) -> list[EvidenceLogEntry]:
        return _get_run_or_404(request, run_id).evidence

    return app


# Module-level app for `uvicorn multi_agent_reasoning.api.main:app`.
app = create_app()
