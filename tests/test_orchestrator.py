from __future__ import annotations

import pytest

from multi_agent_reasoning.config.settings import RunConfig
from multi_agent_reasoning.errors import PlanDeadlockError
from multi_agent_reasoning.graph.workflow import EXHAUSTED_NOTE
from multi_agent_reasoning.models import Plan, Subtask
from multi_agent_reasoning.orchestrator import ready_frontier


def _sub(sid: str, kind: str = "reason", deps: tuple[str, ...] = ()) -> dict:
    return {"id": sid, "kind": kind, "prompt": f"work on {sid}", "deps": list(deps)}


def test_fallback_plan_runs_as_three_rounds(make_orchestrator) -> None:
    result = make_orchestrator(plan_text="garbage").run("Why is the sky blue?")

    assert result.plan.ids() == ["s1", "s2", "s3"]
    assert result.rounds == [["s1"], ["s2"], ["s3"]]
    assert result.final_artifact.text == "answer for s3"
    assert result.elapsed_s >= 0


def test_independent_subtasks_share_a_round(make_orchestrator, build_plan_json) -> None:
    plan_text = build_plan_json(
        _sub("a", "research"), _sub("b", "math"), _sub("c", "coding"), _sub("d", "synthesis", ("a", "b", "c"))
    )
    result = make_orchestrator(plan_text=plan_text).run("goal")

    assert result.rounds == [["a", "b", "c"], ["d"]]
    assert result.final_artifact.text == "answer for d"


def test_final_artifact_is_last_declared_subtask(make_orchestrator, build_plan_json) -> None:
    plan_text = build_plan_json(_sub("a"), _sub("b", deps=("a",)), _sub("c"))
    result = make_orchestrator(plan_text=plan_text).run("goal")

    assert result.rounds == [["a", "c"], ["b"]]
    assert result.final_artifact.text == "answer for c"


def test_cycle_raises_deadlock_before_any_work(make_orchestrator, build_plan_json, fake_generator) -> None:
    solver = fake_generator()
    plan_text = build_plan_json(_sub("a", deps=("b",)), _sub("b", deps=("a",)))

    with pytest.raises(PlanDeadlockError) as excinfo:
        make_orchestrator(plan_text=plan_text, solver=solver).run("goal")

    assert excinfo.value.pending == ["a", "b"]
    assert "Deadlock in plan dependencies" in str(excinfo.value)
    assert solver.calls == []


def test_dangling_dependency_raises_after_ready_work(make_orchestrator, build_plan_json) -> None:
    plan_text = build_plan_json(_sub("a"), _sub("b", deps=("a", "ghost")))

    with pytest.raises(PlanDeadlockError) as excinfo:
        make_orchestrator(plan_text=plan_text).run("goal")

    assert excinfo.value.pending == ["b"]
    assert excinfo.value.done == ["a"]


def test_retry_then_pass(make_orchestrator, build_plan_json, scripted_tooling) -> None:
    tooling = scripted_tooling(failures=1)
    result = make_orchestrator(plan_text=build_plan_json(_sub("only")), tooling=tooling).run("goal")

    judge_steps = [entry.step_id for entry in result.evidence_log if entry.role == "judge"]
    assert judge_steps == ["only:0", "only:1"]
    assert result.final_artifact.failed is False
    assert result.final_artifact.note is None


def test_exhaustion_returns_best_effort_candidate(
    make_orchestrator, build_plan_json, scripted_tooling, fake_generator, echo_subtask
) -> None:
    solver = fake_generator(default=echo_subtask)
    orchestrator = make_orchestrator(
        plan_text=build_plan_json(_sub("only")),
        solver=solver,
        judge=fake_generator(default="claims are unsupported"),
        tooling=scripted_tooling(failures=99),
        config=RunConfig(search_mode="never", max_retries=2, proposal_fanout=1),
    )
    result = orchestrator.run("goal")

    artifact = result.final_artifact
    assert artifact.failed is True
    assert artifact.note == EXHAUSTED_NOTE
    assert artifact.critique == "claims are unsupported"
    assert artifact.text == "answer for only"
    assert len(solver.calls) == 3
    assert [e.step_id for e in result.evidence_log if e.role == "judge"] == ["only:0", "only:1", "only:2"]


def test_zero_retries_means_single_attempt(
    make_orchestrator, build_plan_json, scripted_tooling, fake_generator
) -> None:
    solver = fake_generator()
    orchestrator = make_orchestrator(
        plan_text=build_plan_json(_sub("only")),
        solver=solver,
        tooling=scripted_tooling(failures=99),
        config=RunConfig(search_mode="never", max_retries=0, proposal_fanout=1),
    )
    assert orchestrator.run("goal").final_artifact.failed is True
    assert len(solver.calls) == 1


def test_critique_is_not_fed_back_into_proposals(
    make_orchestrator, build_plan_json, scripted_tooling, fake_generator
) -> None:
    solver = fake_generator()
    make_orchestrator(
        plan_text=build_plan_json(_sub("only")),
        solver=solver,
        judge=fake_generator(default="UNIQUE-CRITIQUE-MARKER"),
        tooling=scripted_tooling(failures=1),
    ).run("goal")

    assert len(solver.calls) == 2
    assert all("UNIQUE-CRITIQUE-MARKER" not in call["user_prompt"] for call in solver.calls)


def test_verify_subtasks_use_at_most_two_proposals(make_orchestrator, build_plan_json, fake_generator) -> None:
    solver = fake_generator()
    make_orchestrator(
        plan_text=build_plan_json(_sub("v", "verify"), _sub("r", "reason")),
        solver=solver,
        config=RunConfig(search_mode="never", proposal_fanout=3),
    ).run("goal")

    assert len(solver.calls) == 5


def test_evidence_log_records_every_step(make_orchestrator) -> None:
    result = make_orchestrator(plan_text="").run("goal")

    roles = [(entry.step_id, entry.role) for entry in result.evidence_log]
    assert roles == [
        ("plan:0", "planner"),
        ("s1:0", "solver"),
        ("s1:0", "judge"),
        ("s2:0", "solver"),
        ("s2:0", "judge"),
        ("s3:0", "solver"),
        ("s3:0", "judge"),
    ]
    judge_entry = result.evidence_log[2]
    assert judge_entry.tests and all(test.passed for test in judge_entry.tests)
    assert result.evidence_log[1].input["subtask"]["id"] == "s1"


def test_dependency_artifacts_become_context(make_orchestrator, fake_generator) -> None:
    solver = fake_generator(default=lambda **kw: "ctx" if "answer-a" in kw["user_prompt"] else "answer-a")
    result = make_orchestrator(plan_text="", solver=solver).run("goal")

    outputs = {e.step_id: e.output["text"] for e in result.evidence_log if e.role == "solver"}
    assert outputs["s1:0"] == "answer-a"
    assert outputs["s2:0"] == "ctx"


def test_ready_frontier_respects_declared_order() -> None:
    plan = Plan(
        subtasks=[
            Subtask(id="z", kind="general", prompt="z"),
            Subtask(id="y", kind="general", prompt="y", deps=("z",)),
            Subtask(id="x", kind="general", prompt="x"),
        ]
    )
    assert [s.id for s in ready_frontier(plan, set())] == ["z", "x"]
    assert [s.id for s in ready_frontier(plan, {"z", "x"})] == ["y"]


def test_two_independent_research_subtasks_run_in_one_round(
    make_orchestrator, build_plan_json
) -> None:
    plan_text = build_plan_json(_sub("r1", "research"), _sub("r2", "research"))
    result = make_orchestrator(plan_text=plan_text).run("goal")

    assert result.rounds == [["r1", "r2"]]
    assert result.final_artifact.text == "answer for r2"


def test_passing_tooling_accepts_first_attempt_despite_harsh_critique(
    make_orchestrator, scripted_tooling, fake_generator
) -> None:
    solver = fake_generator()
    result = make_orchestrator(
        solver=solver,
        judge=fake_generator(default="REJECT: this is entirely wrong"),
        tooling=scripted_tooling(failures=0),
    ).run("goal")

    judge_steps = [entry.step_id for entry in result.evidence_log if entry.role == "judge"]
    assert judge_steps == ["s1:0", "s2:0", "s3:0"]
    assert len(solver.calls) == 3
    assert result.final_artifact.failed is False


def test_derivative_goal_uses_internal_knowledge(fake_generator, make_orchestrator) -> None:
    search = fake_generator()
    result = make_orchestrator(
        search=search, config=RunConfig(search_mode="auto", proposal_fanout=1)
    ).run("What is the derivative of x^2?")

    assert search.calls == []
    assert result.final_artifact.citations == ["internal-knowledge"]
