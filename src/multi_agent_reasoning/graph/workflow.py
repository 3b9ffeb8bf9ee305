"""LangGraph assembly for the bounded propose -> judge -> retry loop of one subtask."""

from __future__ import annotations

import logging

from langgraph.graph import END, StateGraph

from multi_agent_reasoning.evidence import EvidenceLog, step_id_for
from multi_agent_reasoning.graph.state import SubtaskState
from multi_agent_reasoning.judge import Judge
from multi_agent_reasoning.models import Artifact
from multi_agent_reasoning.solver import Solver

logger = logging.getLogger(__name__)

EXHAUSTED_NOTE = "Max retries exhausted; returning best-effort candidate."


def build_subtask_graph(*, solver: Solver, judge: Judge, log: EvidenceLog):
    def propose(state: SubtaskState) -> SubtaskState:
        subtask = state["subtask"]
        attempt = state.get("attempt", 0)
        logger.info(
            "subtask event=attempt subtask=%s attempt=%d/%d",
            subtask.id,
            attempt + 1,
            state.get("max_retries", 0) + 1,
        )
        context = state.get("context", {})
        proposals = solver.propose(
            subtask, context, k=state.get("fanout", 3), goal=state.get("goal", "")
        )
        candidate = Artifact.from_proposal(solver.vote(proposals))
        log.add(
            step_id=step_id_for(subtask.id, attempt),
            role="solver",
            input={
                "subtask": subtask.model_dump(mode="json"),
                "context": {dep: item.model_dump(mode="json") for dep, item in context.items()},
                "proposal_count": len(proposals),
            },
            output=candidate.model_dump(mode="json"),
            citations=candidate.citations,
        )
        return {"candidate": candidate, "status": "attempting"}

    def inspect(state: SubtaskState) -> SubtaskState:
        subtask = state["subtask"]
        attempt = state.get("attempt", 0)
        candidate = state["candidate"]
        verdict = judge.inspect(subtask, candidate, state.get("goal", ""))
        log.add(
            step_id=step_id_for(subtask.id, attempt),
            role="judge",
            input={"artifact": candidate.model_dump(mode="json")},
            output={
                "passed": verdict.passed,
                "critique": verdict.critique,
                "mode": verdict.mode,
            },
            tests=verdict.test_results,
        )
        if verdict.passed:
            status = "passed"
        elif attempt < state.get("max_retries", 0):
            status = "retrying"
        else:
            status = "exhausted"
        return {
            "verdict": verdict,
            "critique": verdict.critique,
            "status": status,
            "attempt": attempt + 1,
        }

    def accept(state: SubtaskState) -> SubtaskState:
        return {"artifact": state["candidate"]}

    def exhaust(state: SubtaskState) -> SubtaskState:
        subtask = state["subtask"]
        logger.warning(
            "subtask event=retries_exhausted subtask=%s attempts=%d",
            subtask.id,
            state.get("attempt", 0),
        )
        artifact = state["candidate"].model_copy(
            update={"failed": True, "critique": state.get("critique"), "note": EXHAUSTED_NOTE}
        )
        return {"artifact": artifact}

    def _route(state: SubtaskState) -> str:
        return {"passed": "accept", "retrying": "retry"}.get(state.get("status", ""), "exhaust")

    graph = StateGraph(SubtaskState)

    graph.add_node("propose", propose)
    graph.add_node("inspect", inspect)
    graph.add_node("accept", accept)
    graph.add_node("exhaust", exhaust)

    graph.set_entry_point("propose")
    graph.add_edge("propose", "inspect")
    graph.add_conditional_edges(
        "inspect",
        _route,
        {"accept": "accept", "retry": "propose", "exhaust": "exhaust"},
    )
    graph.add_edge("accept", END)
    graph.add_edge("exhaust", END)

    return graph.compile()


def recursion_limit_for(max_retries: int) -> int:
    # propose + inspect per attempt, plus the terminal node and headroom.
    return 2 * (max_retries + 1) + 5
