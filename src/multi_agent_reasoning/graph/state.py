"""Typed state contract for the per-subtask LangGraph retry loop."""

from typing import Literal, TypedDict

from multi_agent_reasoning.models import Artifact, JudgeVerdict, Subtask

AttemptStatus = Literal["attempting", "passed", "retrying", "exhausted"]


class SubtaskState(TypedDict, total=False):
    goal: str
    subtask: Subtask
    context: dict[str, Artifact]
    fanout: int
    attempt: int
    max_retries: int
    status: AttemptStatus
    candidate: Artifact | None
    verdict: JudgeVerdict | None
    critique: str | None
    artifact: Artifact | None


def initial_state(
    *,
    goal: str,
    subtask: Subtask,
    context: dict[str, Artifact] | None = None,
    fanout: int = 3,
    max_retries: int = 2,
) -> SubtaskState:
    return {
        "goal": goal,
        "subtask": subtask,
        "context": dict(context or {}),
        "fanout": fanout,
        "attempt": 0,
        "max_retries": max_retries,
        "status": "attempting",
        "candidate": None,
        "verdict": None,
        "critique": None,
        "artifact": None,
    }
