"""Retrieval subsystem: search necessity, source parsing, prioritization."""

from multi_agent_reasoning.retrieval.prioritize import (
    cluster_sources,
    priority_score,
    prioritize_sources,
)
from multi_agent_reasoning.retrieval.retriever import (
    Retriever,
    SearchDecision,
    decide_search,
    knowledge_bundle,
)
from multi_agent_reasoning.retrieval.rules import (
    authority_for_domain,
    classify_citation_need,
    classify_search_need,
)
from multi_agent_reasoning.retrieval.sources import ParseOutcome, domain_of, parse_sources

__all__ = [
    "ParseOutcome",
    "Retriever",
    "SearchDecision",
    "authority_for_domain",
    "classify_citation_need",
    "classify_search_need",
    "cluster_sources",
    "decide_search",
    "domain_of",
    "knowledge_bundle",
    "parse_sources",
    "prioritize_sources",
    "priority_score",
]
