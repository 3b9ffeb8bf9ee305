from __future__ import annotations

import json
import threading
from collections.abc import Callable
from typing import Any

import pytest

from multi_agent_reasoning.config.settings import RunConfig
from multi_agent_reasoning.judge import Judge
from multi_agent_reasoning.llm import Generation
from multi_agent_reasoning.models import Artifact, TestResult
from multi_agent_reasoning.orchestrator import Orchestrator
from multi_agent_reasoning.planner import Planner
from multi_agent_reasoning.retrieval.retriever import Retriever
from multi_agent_reasoning.retry import RetryPolicy, is_rate_limit_error
from multi_agent_reasoning.solver import Solver
from multi_agent_reasoning.tooling import SchemaTooling


class FakeGenerator:
    """Scripted TextGenerator double.

    Each call consumes the next scripted item; once the script is empty `default` is used.
    Items may be a string, a Generation, an exception instance (raised), or a callable
    taking the generate() kwargs and returning any of those.
    """

    def __init__(self, responses: list[Any] | None = None, *, default: Any = "ok") -> None:
        self._responses = list(responses or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def generate(self, **kwargs: Any) -> Generation:
        with self._lock:
            self.calls.append(kwargs)
            item = self._responses.pop(0) if self._responses else self.default
        if callable(item):
            item = item(**kwargs)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Generation):
            return item
        return Generation(text=str(item))


class ScriptedTooling:
    """Tooling double that fails the first `failures` inspections, then passes."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0
        self._lock = threading.Lock()

    def run_tests(self, artifact: Artifact) -> list[TestResult]:
        with self._lock:
            self.calls += 1
            passed = self.calls > self.failures
        return [TestResult(name="scripted", passed=passed, detail=None if passed else "nope")]


def subtask_echo(**kwargs: Any) -> str:
    """Solver response that names the subtask it was asked to solve."""
    payload = json.loads(kwargs["user_prompt"])
    return f"answer for {payload['subtask']['id']}"


def plan_json(*subtasks: dict[str, Any]) -> str:
    return json.dumps({"subtasks": list(subtasks)})


def no_sleep_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=2, base_delay_s=1.0, retryable=is_rate_limit_error, sleep=lambda _: None
    )


@pytest.fixture
def fake_generator() -> type[FakeGenerator]:
    return FakeGenerator


@pytest.fixture
def scripted_tooling() -> type[ScriptedTooling]:
    return ScriptedTooling


@pytest.fixture
def make_orchestrator() -> Callable[..., Orchestrator]:
    def _make(
        *,
        plan_text: Any = "",
        solver: FakeGenerator | None = None,
        judge: FakeGenerator | None = None,
        search: FakeGenerator | None = None,
        tooling: Any = None,
        config: RunConfig | None = None,
    ) -> Orchestrator:
        config = config or RunConfig(search_mode="never", max_retries=2, proposal_fanout=1)
        retriever = Retriever(
            generator=search or FakeGenerator(),
            search_mode=config.search_mode,
            source_cap=config.source_cap,
            min_relevance=config.min_source_relevance,
            per_domain_cap=config.per_domain_cap,
        )
        return Orchestrator(
            planner=Planner(generator=FakeGenerator([plan_text])),
            solver=Solver(
                generator=solver or FakeGenerator(default=subtask_echo),
                retriever=retriever,
                retry_policy=no_sleep_policy(),
            ),
            judge=Judge(
                generator=judge or FakeGenerator(default="looks fine"),
                tooling=tooling or SchemaTooling(),
            ),
            config=config,
        )

    return _make


@pytest.fixture
def echo_subtask() -> Callable[..., str]:
    return subtask_echo


@pytest.fixture
def build_plan_json() -> Callable[..., str]:
    return plan_json
