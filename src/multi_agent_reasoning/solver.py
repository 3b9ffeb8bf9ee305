"""Solver: self-consistency proposals (k samples), retrieval-augmented, plus voting."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from multi_agent_reasoning.llm import ReasoningEffort, TextGenerator
from multi_agent_reasoning.models import (
    Artifact,
    ClaimNode,
    EvidenceBundle,
    Proposal,
    SourceMetadata,
    Subtask,
    SubtaskKind,
)
from multi_agent_reasoning.retrieval.retriever import Retriever, knowledge_bundle
from multi_agent_reasoning.retrieval.sources import has_real_sources
from multi_agent_reasoning.retry import RetryPolicy, is_rate_limit_error

logger = logging.getLogger(__name__)

BASE_TEMPERATURE = 0.5
TEMPERATURE_STEP = 0.1
VOTE_LENGTH_MARGIN = 1.2
FALLBACK_PREFIX = "[fallback proposal]"


@dataclass(frozen=True)
class KindProfile:
    role: str
    reasoning_effort: ReasoningEffort


KIND_PROFILES: dict[SubtaskKind, KindProfile] = {
    "research": KindProfile("research specialist who reports sourced facts", "low"),
    "reason": KindProfile("reasoning specialist who builds careful arguments", "medium"),
    "verify": KindProfile("verification specialist who checks claims and logic", "medium"),
    "coding": KindProfile("software engineer who writes correct, minimal code", "high"),
    "math": KindProfile("mathematician who shows each derivation step", "high"),
    "synthesis": KindProfile("synthesis specialist who merges findings into one answer", "medium"),
    "general": KindProfile("general assistant", "low"),
}


class Solver:
    def __init__(
        self,
        *,
        generator: TextGenerator,
        retriever: Retriever,
        retry_policy: RetryPolicy | None = None,
        reasoning_effort_enabled: bool = False,
    ) -> None:
        self.generator = generator
        self.retriever = retriever
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=2, base_delay_s=1.0, max_delay_s=10.0, retryable=is_rate_limit_error
        )
        self.reasoning_effort_enabled = reasoning_effort_enabled

    def propose(
        self,
        subtask: Subtask,
        context: dict[str, Artifact],
        k: int = 3,
        goal: str = "",
    ) -> list[Proposal]:
        if k < 1:
            raise ValueError("k must be at least 1")
        logger.info("solver event=propose subtask=%s kind=%s k=%d", subtask.id, subtask.kind, k)
        evidence = self.gather_evidence(subtask, context, goal=goal)
        citations = list(evidence.sources)
        profile = KIND_PROFILES[subtask.kind]
        system_prompt = (
            f"You are the {subtask.kind} specialist, a {profile.role}. Use the evidence graph "
            "and be concise but precise. Cite sources explicitly."
        )
        user_prompt = json.dumps(
            {
                "goal": goal,
                "subtask": subtask.model_dump(mode="json"),
                "context": {
                    dep: artifact.model_dump(mode="json") for dep, artifact in context.items()
                },
                "evidence_graph": evidence.model_dump(mode="json"),
            },
            ensure_ascii=True,
        )
        effort = profile.reasoning_effort if self.reasoning_effort_enabled else None

        with ThreadPoolExecutor(max_workers=k) as pool:
            futures = [
                pool.submit(
                    self._propose_one,
                    subtask=subtask,
                    index=index,
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    reasoning_effort=effort,
                    citations=citations,
                    evidence=evidence,
                )
                for index in range(k)
            ]
            proposals = [future.result() for future in futures]

        degraded = sum(1 for proposal in proposals if proposal.degraded)
        logger.info(
            "solver event=proposals_ready subtask=%s count=%d degraded=%d",
            subtask.id,
            len(proposals),
            degraded,
        )
        return proposals

    def gather_evidence(
        self, subtask: Subtask, context: dict[str, Artifact], *, goal: str = ""
    ) -> EvidenceBundle:
        if subtask.kind == "research":
            return self.retriever.retrieve(subtask.prompt, subtask.kind, goal)

        # Placeholder-only dependencies are skipped so a later one with real URLs wins.
        for dep in subtask.deps:
            artifact = context.get(dep)
            if artifact is None:
                continue
            if artifact.evidence is not None and has_real_sources(artifact.evidence.sources):
                return artifact.evidence
            if has_real_sources(artifact.citations):
                return EvidenceBundle(
                    nodes=[ClaimNode(id="claim1", type="claim", text=artifact.text)],
                    edges=[],
                    sources=list(artifact.citations),
                    source_metadata=SourceMetadata(
                        search_performed=False, decision_rule=f"reused_from:{dep}"
                    ),
                )
        return knowledge_bundle(subtask.prompt, rule="no_dependency_evidence")

    def vote(self, proposals: list[Proposal]) -> Proposal:
        """Deterministic length-biased pick: first, unless another is >20% longer."""
        if not proposals:
            raise ValueError("vote requires at least one proposal")
        first = proposals[0]
        longest = first
        for proposal in proposals[1:]:
            if len(proposal.text) > len(longest.text):
                longest = proposal
        if len(longest.text) > len(first.text) * VOTE_LENGTH_MARGIN:
            return longest
        return first

    def _propose_one(
        self,
        *,
        subtask: Subtask,
        index: int,
        system_prompt: str,
        user_prompt: str,
        reasoning_effort: ReasoningEffort | None,
        citations: list[str],
        evidence: EvidenceBundle,
    ) -> Proposal:
        temperature = round(BASE_TEMPERATURE + TEMPERATURE_STEP * index, 2)
        try:
            generation = self.retry_policy.call(
                lambda: self.generator.generate(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=temperature,
                    reasoning_effort=reasoning_effort,
                ),
                slot=index,
                label=f"proposal:{subtask.id}:{index}",
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "solver event=proposal_failed subtask=%s index=%d fallback=true reason=%s",
                subtask.id,
                index,
                exc,
            )
            return Proposal(
                text=_fallback_text(subtask, exc),
                citations=list(citations),
                evidence=evidence,
                temperature=temperature,
                degraded=True,
            )
        return Proposal(
            text=generation.text,
            citations=list(citations),
            evidence=evidence,
            temperature=temperature,
        )


def _fallback_text(subtask: Subtask, exc: Exception) -> str:
    reason = str(exc) or type(exc).__name__
    return (
        f"{FALLBACK_PREFIX} Generation failed for {subtask.kind} subtask {subtask.id}: "
        f"{reason}. Task: {subtask.prompt}"
    )
