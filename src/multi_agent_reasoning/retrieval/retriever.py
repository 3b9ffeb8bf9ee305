"""Retriever: search-necessity classification, cached live fetch, source curation."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass

from multi_agent_reasoning.config.settings import SearchMode
from multi_agent_reasoning.llm import Generation, TextGenerator
from multi_agent_reasoning.models import (
    INTERNAL_KNOWLEDGE,
    ClaimEdge,
    ClaimNode,
    EvidenceBundle,
    SourceMetadata,
    SourceRecord,
)
from multi_agent_reasoning.retrieval.prioritize import prioritize_sources
from multi_agent_reasoning.retrieval.rules import classify_search_need
from multi_agent_reasoning.retrieval.sources import parse_sources

logger = logging.getLogger(__name__)

RESEARCH_SYSTEM_PROMPT = (
    "You are a research assistant with live web search. Answer with concise factual "
    "information and attribute every claim to a source URL. After the answer, append a "
    "block that starts with the line 'SOURCE EVALUATION:' and lists each source as:\n"
    "Source N:\n"
    "URL: <url>\n"
    "Relevance: <number between 0 and 1>\n"
    "Date: <publication date or unknown>\n"
    "Key facts:\n"
    "- <fact>\n"
    "Quality: <one short note on content quality>"
)


@dataclass(frozen=True)
class SearchDecision:
    required: bool
    rule: str


def decide_search(
    query: str,
    *,
    goal: str = "",
    subtask_kind: str = "research",
    mode: SearchMode = "auto",
) -> SearchDecision:
    if subtask_kind != "research":
        return SearchDecision(required=False, rule="non_research_subtask")
    if mode == "always":
        return SearchDecision(required=True, rule="mode_always")
    if mode == "never":
        return SearchDecision(required=False, rule="mode_never")
    match = classify_search_need(f"{query}\n{goal}")
    return SearchDecision(required=match.verdict, rule=match.rule)


def knowledge_bundle(
    query: str,
    *,
    rule: str,
    search_performed: bool = False,
    fallback_reason: str | None = None,
) -> EvidenceBundle:
    return EvidenceBundle(
        nodes=[ClaimNode(id="claim1", type="claim", text=f"Internal knowledge for: {query}")],
        edges=[],
        sources=[INTERNAL_KNOWLEDGE],
        source_metadata=SourceMetadata(
            search_performed=search_performed,
            decision_rule=rule,
            fallback_reason=fallback_reason,
        ),
    )


class Retriever:
    """Per-run retriever; the cache lives as long as the instance."""

    def __init__(
        self,
        *,
        generator: TextGenerator,
        search_mode: SearchMode = "auto",
        source_cap: int = 5,
        min_relevance: float = 0.3,
        per_domain_cap: int = 2,
    ) -> None:
        self.generator = generator
        self.search_mode = search_mode
        self.source_cap = source_cap
        self.min_relevance = min_relevance
        self.per_domain_cap = per_domain_cap
        self._cache: dict[str, EvidenceBundle] = {}
        self._lock = threading.Lock()
        self.fetch_count = 0

    def retrieve(self, query: str, subtask_kind: str = "research", goal: str = "") -> EvidenceBundle:
        decision = decide_search(
            query, goal=goal, subtask_kind=subtask_kind, mode=self.search_mode
        )
        if not decision.required:
            logger.info(
                "retrieval event=no_search kind=%s rule=%s", subtask_kind, decision.rule
            )
            return knowledge_bundle(query, rule=decision.rule)

        with self._lock:
            cached = self._cache.get(query)
        if cached is not None:
            logger.info("retrieval event=cache_hit query_chars=%d", len(query))
            metadata = cached.source_metadata
            if metadata is None:
                return cached
            return cached.model_copy(
                update={"source_metadata": metadata.model_copy(update={"cached": True})}
            )

        try:
            generation = self._fetch(query, goal=goal)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "retrieval event=fetch_failed rule=%s fallback=knowledge reason=%s",
                decision.rule,
                exc,
            )
            return knowledge_bundle(
                query,
                rule=decision.rule,
                search_performed=True,
                fallback_reason=str(exc),
            )

        bundle = self._curate(query, generation, rule=decision.rule)
        with self._lock:
            self._cache[query] = bundle
        return bundle

    def _fetch(self, query: str, *, goal: str) -> Generation:
        with self._lock:
            self.fetch_count += 1
        user_prompt = f"Research question: {query}"
        if goal and goal != query:
            user_prompt += f"\nOverall goal: {goal}"
        return self.generator.generate(
            system_prompt=RESEARCH_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=0.2,
            reasoning_effort="low",
            require_search=True,
        )

    def _curate(self, query: str, generation: Generation, *, rule: str) -> EvidenceBundle:
        outcome = parse_sources(generation)
        selected = prioritize_sources(
            outcome.records,
            cap=self.source_cap,
            min_relevance=self.min_relevance,
            per_domain_cap=self.per_domain_cap,
        )
        logger.info(
            "retrieval event=sources_curated parser=%s parsed=%d selected=%d",
            outcome.parser,
            len(outcome.records),
            len(selected),
        )
        metadata = _source_metadata(outcome.records, selected, rule=rule, parser=outcome.parser)
        if not selected:
            return EvidenceBundle(
                nodes=[ClaimNode(id="claim1", type="claim", text=generation.text)],
                edges=[],
                sources=[INTERNAL_KNOWLEDGE],
                source_metadata=metadata,
            )
        nodes, edges = _claim_graph(selected)
        return EvidenceBundle(
            nodes=nodes,
            edges=edges,
            sources=[record.url for record in selected],
            source_metadata=metadata,
        )


def _claim_graph(records: list[SourceRecord]) -> tuple[list[ClaimNode], list[ClaimEdge]]:
    nodes: list[ClaimNode] = []
    edges: list[ClaimEdge] = []
    claim_index = 0
    for source_index, record in enumerate(records, start=1):
        source_id = f"source{source_index}"
        nodes.append(
            ClaimNode(id=source_id, type="source", text=record.domain, url=record.url)
        )
        for fact in record.key_facts:
            claim_index += 1
            claim_id = f"claim{claim_index}"
            nodes.append(ClaimNode(id=claim_id, type="claim", text=fact, url=record.url))
            edges.append(ClaimEdge(source=claim_id, target=source_id))
    return nodes, edges


def _source_metadata(
    parsed: list[SourceRecord],
    selected: list[SourceRecord],
    *,
    rule: str,
    parser: str | None,
) -> SourceMetadata:
    authority = Counter(record.authority for record in selected)
    average = (
        round(sum(record.relevance_score for record in selected) / len(selected), 4)
        if selected
        else 0.0
    )
    return SourceMetadata(
        search_performed=True,
        decision_rule=rule,
        parser=parser,
        total_parsed=len(parsed),
        selected_count=len(selected),
        average_relevance=average,
        authority_counts={tier: authority.get(tier, 0) for tier in ("High", "Medium", "Low")},
        domains=sorted({record.domain for record in selected}),
    )
