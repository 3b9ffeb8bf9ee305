from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

from multi_agent_reasoning.evidence import EvidenceLog, step_id_for
from multi_agent_reasoning.models import Artifact, RunRecord, TestResult
from multi_agent_reasoning.planner import fallback_plan
from multi_agent_reasoning.storage.memory import InMemoryRunStorage


def test_concurrent_appends_are_all_kept() -> None:
    log = EvidenceLog()
    with ThreadPoolExecutor(max_workers=8) as pool:
        for index in range(200):
            pool.submit(log.add, step_id=step_id_for("s1", index), role="tool", input={}, output={})

    assert len(log) == 200
    assert len({entry.step_id for entry in log.entries}) == 200


def test_log_serializes_tests_and_citations() -> None:
    log = EvidenceLog()
    log.add(
        step_id="s1:0",
        role="judge",
        input={"artifact": {"text": "x"}},
        output={"passed": False},
        citations=["https://www.nasa.gov/a"],
        tests=[TestResult(name="non_empty_text", passed=False, detail="empty")],
    )

    payload = json.loads(log.to_json())
    assert payload[0]["tests"][0]["detail"] == "empty"
    assert payload[0]["citations"] == ["https://www.nasa.gov/a"]


def test_entries_is_a_snapshot() -> None:
    log = EvidenceLog()
    snapshot = log.entries
    log.add(step_id="plan:0", role="planner", input={}, output={})
    assert snapshot == []


def _record(run_id: str, created_at: datetime) -> RunRecord:
    return RunRecord(
        run_id=run_id,
        goal="goal",
        provider="openai",
        elapsed_s=0.1,
        plan=fallback_plan("goal"),
        final_artifact=Artifact(text="done"),
        created_at=created_at,
    )


def test_in_memory_storage_roundtrip() -> None:
    storage = InMemoryRunStorage()
    now = datetime.now(UTC)
    storage.save_run(_record("later", now + timedelta(seconds=5)))
    storage.save_run(_record("earlier", now))

    assert storage.get_run("earlier").run_id == "earlier"
    assert storage.get_run("missing") is None
    assert [record.run_id for record in storage.list_runs()] == ["earlier", "later"]
