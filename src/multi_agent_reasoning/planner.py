"""Planning layer: decompose a goal into a small DAG of subtasks.

Model output is never trusted directly. The raw text must parse as JSON and validate
against the Plan schema (known kinds, 1-8 subtasks, unique ids; unknown keys are
dropped). Anything else falls back to the fixed three-step research -> reason -> verify
plan.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import BaseModel, ConfigDict, ValidationError

from multi_agent_reasoning.evidence import EvidenceLog
from multi_agent_reasoning.llm import TextGenerator
from multi_agent_reasoning.models import Plan, Subtask

logger = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = (
    "You are a planning assistant. Decompose the goal into 3-6 atomic subtasks forming a "
    "DAG. Allowed kinds: research, reason, verify, coding, math, synthesis, general. "
    "Put the subtask that produces the final answer last. Return strict JSON only."
)
CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def fallback_plan(goal: str) -> Plan:
    return Plan(
        subtasks=[
            Subtask(id="s1", kind="research", prompt=f"Find key facts for: {goal}"),
            Subtask(
                id="s2",
                kind="reason",
                prompt="Synthesize a candidate answer from s1",
                deps=("s1",),
            ),
            Subtask(
                id="s3",
                kind="verify",
                prompt="Check s2 against sources and tests",
                deps=("s2",),
            ),
        ]
    )


class SubtaskDraft(BaseModel):
    """Planner-side view of a subtask; unknown keys from the model are dropped."""

    model_config = ConfigDict(extra="ignore")

    id: str
    kind: str
    prompt: str
    deps: list[str] | None = None


class PlanDraft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subtasks: list[SubtaskDraft]


def parse_plan(text: str) -> Plan:
    cleaned = CODE_FENCE.sub("", text.strip()).strip()
    draft = PlanDraft.model_validate(json.loads(cleaned))
    return Plan.model_validate(draft.model_dump())


class Planner:
    def __init__(self, *, generator: TextGenerator, temperature: float = 0.2) -> None:
        self.generator = generator
        self.temperature = temperature

    def make_plan(self, goal: str, *, log: EvidenceLog | None = None) -> Plan:
        user_prompt = (
            f"Goal: {goal}\n"
            'Return JSON with { "subtasks": [{"id", "kind", "prompt", "deps"?}] }'
        )
        fallback_reason: str | None = None
        raw_text = ""
        try:
            raw_text = self.generator.generate(
                system_prompt=PLANNER_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=self.temperature,
            ).text
            plan = parse_plan(raw_text)
        except (json.JSONDecodeError, ValidationError) as exc:
            fallback_reason = f"invalid plan: {exc}"
        except Exception as exc:  # noqa: BLE001
            # Reliability rule: never fail planning just because the backend failed.
            fallback_reason = f"planner backend failed: {exc}"

        if fallback_reason is not None:
            logger.warning("planner event=fallback reason=%s", fallback_reason[:300])
            plan = fallback_plan(goal)
        else:
            logger.info("planner event=plan_built subtasks=%d", len(plan.subtasks))

        if log is not None:
            log.add(
                step_id="plan:0",
                role="planner",
                input={"goal": goal},
                output={
                    "plan": plan.model_dump(mode="json"),
                    "fallback_used": fallback_reason is not None,
                    "fallback_reason": fallback_reason,
                    "raw_text": raw_text[:2000],
                },
            )
        return plan
