"""Judge: verification gate for candidate artifacts.

The verdict's `passed` flag comes only from the tooling test suite. The backend
critique is advisory: it is logged and carried for reporting, never parsed into the
accept/reject decision.
"""

from __future__ import annotations

import json
import logging

from multi_agent_reasoning.llm import TextGenerator
from multi_agent_reasoning.models import Artifact, JudgeMode, JudgeVerdict, Subtask
from multi_agent_reasoning.retrieval.rules import classify_citation_need
from multi_agent_reasoning.retrieval.sources import has_real_sources
from multi_agent_reasoning.tooling import Tooling

logger = logging.getLogger(__name__)


MODE_INSTRUCTIONS: dict[JudgeMode, str] = {
    "source_verification": (
        "The artifact cites external sources. Check each claim against the cited sources "
        "and flag claims the sources do not support."
    ),
    "logic_based": (
        "This question does not need external citations. Judge only logical and technical "
        "consistency, correctness of reasoning, and completeness."
    ),
    "citation_required": (
        "This question needs external evidence but no real sources were retrieved. Reason "
        "only about what was actually retrieved, point out unsupported claims, and do not "
        "introduce new external facts or sources."
    ),
}


def select_mode(*, citations_required: bool, real_sources: bool) -> JudgeMode:
    if real_sources:
        return "source_verification"
    if not citations_required:
        return "logic_based"
    return "citation_required"


class Judge:
    def __init__(self, *, generator: TextGenerator, tooling: Tooling) -> None:
        self.generator = generator
        self.tooling = tooling

    def inspect(self, subtask: Subtask, artifact: Artifact, goal: str = "") -> JudgeVerdict:
        citation_need = classify_citation_need(goal or subtask.prompt)
        real_sources = has_real_sources(artifact.citations)
        mode = select_mode(citations_required=citation_need.verdict, real_sources=real_sources)

        tests = self.tooling.run_tests(artifact)
        critique = self._critique(subtask, artifact, goal=goal, mode=mode, tests=tests)
        passed = all(test.passed for test in tests)

        logger.info(
            "judge event=verdict subtask=%s mode=%s citation_rule=%s passed=%s failed_tests=%s",
            subtask.id,
            mode,
            citation_need.rule,
            passed,
            [test.name for test in tests if not test.passed],
        )
        return JudgeVerdict(passed=passed, critique=critique, mode=mode, test_results=tests)

    def _critique(self, subtask, artifact, *, goal, mode, tests) -> str:
        system_prompt = (
            "You are a strict verifier. Check factuality versus citations and logical "
            f"consistency. {MODE_INSTRUCTIONS[mode]}"
        )
        user_prompt = json.dumps(
            {
                "goal": goal,
                "mode": mode,
                "subtask": subtask.model_dump(mode="json"),
                "artifact": artifact.model_dump(mode="json"),
                "tests": [test.model_dump(mode="json") for test in tests],
            },
            ensure_ascii=True,
        )
        try:
            generation = self.generator.generate(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=0.0,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("judge event=critique_failed subtask=%s reason=%s", subtask.id, exc)
            return f"Critique unavailable: {exc}"
        return generation.text
