"""Append-only evidence ledger for one run."""

from __future__ import annotations

import json
import threading
from typing import Any

from multi_agent_reasoning.models import EvidenceLogEntry, EvidenceRole, TestResult


class EvidenceLog:
    """Records every planner/solver/judge/tool step in insertion order."""

    def __init__(self) -> None:
        self._entries: list[EvidenceLogEntry] = []
        self._lock = threading.Lock()

    def add(
        self,
        *,
        step_id: str,
        role: EvidenceRole,
        input: dict[str, Any],
        output: dict[str, Any],
        citations: list[str] | None = None,
        tests: list[TestResult] | None = None,
    ) -> EvidenceLogEntry:
        entry = EvidenceLogEntry(
            step_id=step_id,
            role=role,
            input=input,
            output=output,
            citations=list(citations) if citations is not None else None,
            tests=list(tests) if tests is not None else None,
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[EvidenceLogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def to_json(self) -> str:
        return json.dumps(
            [entry.model_dump(mode="json") for entry in self.entries],
            indent=2,
            ensure_ascii=True,
        )


def step_id_for(subtask_id: str, attempt: int) -> str:
    return f"{subtask_id}:{attempt}"
