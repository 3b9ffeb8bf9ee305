"""DAG scheduler: runs plan subtasks in ready-frontier rounds."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from multi_agent_reasoning.config.settings import RunConfig
from multi_agent_reasoning.errors import PlanDeadlockError
from multi_agent_reasoning.evidence import EvidenceLog
from multi_agent_reasoning.graph.state import initial_state
from multi_agent_reasoning.graph.workflow import build_subtask_graph, recursion_limit_for
from multi_agent_reasoning.judge import Judge
from multi_agent_reasoning.models import Artifact, Plan, RunResult, Subtask
from multi_agent_reasoning.planner import Planner
from multi_agent_reasoning.solver import Solver

logger = logging.getLogger(__name__)


def ready_frontier(plan: Plan, done: set[str]) -> list[Subtask]:
    """Pending subtasks whose dependencies are all done, in declared order."""
    return [
        subtask
        for subtask in plan.subtasks
        if subtask.id not in done and all(dep in done for dep in subtask.deps)
    ]


class Orchestrator:
    def __init__(
        self,
        *,
        planner: Planner,
        solver: Solver,
        judge: Judge,
        config: RunConfig | None = None,
        log: EvidenceLog | None = None,
    ) -> None:
        self.planner = planner
        self.solver = solver
        self.judge = judge
        self.config = config or RunConfig()
        self.log = log

    def run(self, goal: str) -> RunResult:
        started = time.perf_counter()
        log = self.log if self.log is not None else EvidenceLog()

        plan = self.planner.make_plan(goal, log=log)
        graph = build_subtask_graph(solver=self.solver, judge=self.judge, log=log)

        artifacts: dict[str, Artifact] = {}
        done: set[str] = set()
        rounds: list[list[str]] = []

        while len(done) < len(plan.subtasks):
            ready = ready_frontier(plan, done)
            if not ready:
                pending = [sid for sid in plan.ids() if sid not in done]
                logger.error("run event=deadlock pending=%s done=%s", pending, sorted(done))
                raise PlanDeadlockError(pending, sorted(done))

            round_ids = [subtask.id for subtask in ready]
            logger.info("run event=round_start round=%d subtasks=%s", len(rounds) + 1, round_ids)

            with ThreadPoolExecutor(max_workers=len(ready)) as pool:
                futures = {
                    subtask.id: pool.submit(
                        self.execute_subtask,
                        subtask,
                        {dep: artifacts[dep] for dep in subtask.deps},
                        goal=goal,
                        graph=graph,
                    )
                    for subtask in ready
                }
            # The pool context has joined every branch; result() re-raises the first error.
            for subtask_id, future in futures.items():
                artifacts[subtask_id] = future.result()
                done.add(subtask_id)
            rounds.append(round_ids)

        final = artifacts[plan.subtasks[-1].id]
        elapsed = time.perf_counter() - started
        logger.info(
            "run event=complete subtasks=%d rounds=%d failed=%s elapsed_s=%.2f",
            len(plan.subtasks),
            len(rounds),
            [sid for sid, artifact in artifacts.items() if artifact.failed],
            elapsed,
        )
        return RunResult(
            final_artifact=final,
            evidence_log=log.entries,
            plan=plan,
            elapsed_s=elapsed,
            rounds=rounds,
        )

    def execute_subtask(
        self,
        subtask: Subtask,
        context: dict[str, Artifact],
        *,
        goal: str = "",
        graph=None,
    ) -> Artifact:
        """Run the bounded propose/judge loop for one subtask and return its artifact."""
        if graph is None:
            graph = build_subtask_graph(
                solver=self.solver,
                judge=self.judge,
                log=self.log if self.log is not None else EvidenceLog(),
            )
        state = initial_state(
            goal=goal,
            subtask=subtask,
            context=context,
            fanout=self.config.fanout_for(subtask.kind),
            max_retries=self.config.max_retries,
        )
        final_state = graph.invoke(
            state, config={"recursion_limit": recursion_limit_for(self.config.max_retries)}
        )
        return final_state["artifact"]
