"""Deterministic artifact test suite consumed by the judge."""

from __future__ import annotations

from typing import Protocol

from pydantic import ValidationError

from multi_agent_reasoning.models import Artifact, TestResult
from multi_agent_reasoning.solver import FALLBACK_PREFIX


class Tooling(Protocol):
    def run_tests(self, artifact: Artifact) -> list[TestResult]: ...


class SchemaTooling:
    """Schema and sanity checks; every check must pass for the judge to accept."""

    def run_tests(self, artifact: Artifact) -> list[TestResult]:
        return [
            _schema_check(artifact),
            TestResult(
                name="non_empty_text",
                passed=bool(artifact.text.strip()),
                detail=None if artifact.text.strip() else "artifact text is empty",
            ),
            TestResult(
                name="not_degraded",
                passed=not (artifact.degraded or artifact.text.startswith(FALLBACK_PREFIX)),
                detail="candidate is a fallback proposal" if artifact.degraded else None,
            ),
        ]


def _schema_check(artifact: Artifact) -> TestResult:
    try:
        Artifact.model_validate(artifact.model_dump(mode="json"))
    except ValidationError as exc:
        return TestResult(name="schema_check", passed=False, detail=str(exc)[:400])
    return TestResult(name="schema_check", passed=True)
