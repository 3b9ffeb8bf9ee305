"""Pydantic models shared by planner, solver, judge, retriever, and orchestrator.

Terms used in this file:
- Subtask: one node of the plan DAG (kind + prompt + dependency ids).
- Artifact: the accepted (or best-effort) output of one subtask.
- EvidenceBundle: claim graph plus the source list backing a proposal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SubtaskKind = Literal["research", "reason", "verify", "coding", "math", "synthesis", "general"]
AuthorityTier = Literal["High", "Medium", "Low"]
EvidenceRole = Literal["planner", "solver", "judge", "tool"]
JudgeMode = Literal["source_verification", "logic_based", "citation_required"]

# Marker used in place of a URL when no live search backed the evidence.
INTERNAL_KNOWLEDGE = "internal-knowledge"

MAX_PLAN_SUBTASKS = 8


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class Subtask(StrictModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    kind: SubtaskKind
    prompt: str
    # Ordered dependency ids; references are checked by the scheduler, not here.
    deps: tuple[str, ...] = ()

    @field_validator("deps", mode="before")
    @classmethod
    def _none_deps_to_empty(cls, value: Any) -> Any:
        return () if value is None else value


class Plan(StrictModel):
    """Ordered DAG of subtasks produced once per goal."""

    subtasks: list[Subtask] = Field(min_length=1, max_length=MAX_PLAN_SUBTASKS)

    @model_validator(mode="after")
    def _unique_ids(self) -> Plan:
        seen: set[str] = set()
        for subtask in self.subtasks:
            if subtask.id in seen:
                raise ValueError(f"Duplicate subtask id in plan: {subtask.id}")
            seen.add(subtask.id)
        return self

    def ids(self) -> list[str]:
        return [subtask.id for subtask in self.subtasks]


class ClaimNode(StrictModel):
    id: str
    type: Literal["claim", "source"] = "claim"
    text: str
    url: str | None = None


class ClaimEdge(StrictModel):
    source: str
    target: str
    relation: str = "supported_by"


class SourceMetadata(StrictModel):
    search_performed: bool
    decision_rule: str
    parser: str | None = None
    total_parsed: int = 0
    selected_count: int = 0
    average_relevance: float = 0.0
    authority_counts: dict[str, int] = Field(default_factory=dict)
    domains: list[str] = Field(default_factory=list)
    cached: bool = False
    fallback_reason: str | None = None


class EvidenceBundle(StrictModel):
    nodes: list[ClaimNode] = Field(default_factory=list)
    edges: list[ClaimEdge] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    source_metadata: SourceMetadata | None = None


class SourceRecord(StrictModel):
    url: str
    domain: str
    relevance_score: float = Field(ge=0.0, le=1.0)
    authority: AuthorityTier
    published: str | None = None
    key_facts: list[str] = Field(default_factory=list)
    content_quality: str = ""

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_relevance(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if score != score:  # NaN
            return 0.0
        return max(0.0, min(score, 1.0))


class Proposal(StrictModel):
    text: str
    citations: list[str] = Field(default_factory=list)
    evidence: EvidenceBundle | None = None
    temperature: float = 0.0
    degraded: bool = False


class Artifact(StrictModel):
    """Closed artifact schema written once per subtask."""

    text: str
    citations: list[str] = Field(default_factory=list)
    evidence: EvidenceBundle | None = None
    degraded: bool = False
    failed: bool = False
    critique: str | None = None
    note: str | None = None

    @classmethod
    def from_proposal(cls, proposal: Proposal) -> Artifact:
        return cls(
            text=proposal.text,
            citations=list(proposal.citations),
            evidence=proposal.evidence,
            degraded=proposal.degraded,
        )


class TestResult(StrictModel):
    __test__ = False

    name: str
    passed: bool
    detail: str | None = None


class JudgeVerdict(StrictModel):
    passed: bool
    critique: str
    mode: JudgeMode
    test_results: list[TestResult] = Field(default_factory=list)


class EvidenceLogEntry(StrictModel):
    step_id: str
    role: EvidenceRole
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] = Field(default_factory=dict)
    citations: list[str] | None = None
    tests: list[TestResult] | None = None


class RunResult(StrictModel):
    final_artifact: Artifact
    evidence_log: list[EvidenceLogEntry]
    plan: Plan
    elapsed_s: float
    # Subtask ids executed per scheduler round, in round order.
    rounds: list[list[str]] = Field(default_factory=list)


class RunRecord(StrictModel):
    """Durable audit record for one run, independent of in-memory state."""

    run_id: str
    goal: str
    provider: str
    models: dict[str, str | None] = Field(default_factory=dict)
    elapsed_s: float
    plan: Plan
    rounds: list[list[str]] = Field(default_factory=list)
    evidence: list[EvidenceLogEntry] = Field(default_factory=list)
    final_artifact: Artifact
    created_at: datetime
