"""Storage interface for completed run records."""

from __future__ import annotations

from typing import Protocol

from multi_agent_reasoning.models import RunRecord


class RunStorage(Protocol):
    def save_run(self, record: RunRecord) -> RunRecord: ...

    def get_run(self, run_id: str) -> RunRecord | None: ...

    def list_runs(self) -> list[RunRecord]: ...
