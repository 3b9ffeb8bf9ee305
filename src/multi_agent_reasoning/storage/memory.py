"""In-memory run storage; records live as long as the process."""

from __future__ import annotations

import threading

from multi_agent_reasoning.models import RunRecord


class InMemoryRunStorage:
    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._lock = threading.Lock()

    def save_run(self, record: RunRecord) -> RunRecord:
        with self._lock:
            self._runs[record.run_id] = record
        return record

    def get_run(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def list_runs(self) -> list[RunRecord]:
        with self._lock:
            return sorted(self._runs.values(), key=lambda record: record.created_at)
