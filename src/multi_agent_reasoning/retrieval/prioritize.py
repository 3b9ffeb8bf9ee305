"""Source filtering, clustering, and domain-balanced selection."""

from __future__ import annotations

import re
from collections import Counter

from multi_agent_reasoning.models import SourceRecord

AUTHORITY_BONUS = {"High": 0.2, "Medium": 0.1, "Low": 0.0}
RELEVANCE_WEIGHT = 0.7
LONG_URL_CHARS = 150
LONG_URL_PENALTY = 0.1
PROMOTIONAL_PENALTY = 0.15
CLUSTER_OVERLAP_THRESHOLD = 0.3
PROMOTIONAL_MARKERS: tuple[str, ...] = (
    "sponsored",
    "advertisement",
    "advertorial",
    "promo",
    "promotional",
    "affiliate",
    "buy now",
    "discount",
    "press release",
)


def priority_score(record: SourceRecord) -> float:
    score = RELEVANCE_WEIGHT * record.relevance_score + AUTHORITY_BONUS[record.authority]
    if len(record.url) > LONG_URL_CHARS:
        score -= LONG_URL_PENALTY
    if _is_promotional(record):
        score -= PROMOTIONAL_PENALTY
    return round(score, 4)


def prioritize_sources(
    records: list[SourceRecord],
    *,
    cap: int = 5,
    min_relevance: float = 0.3,
    per_domain_cap: int = 2,
) -> list[SourceRecord]:
    """Select at most `cap` records, preferring diverse, authoritative, relevant ones."""
    eligible = [record for record in records if record.relevance_score >= min_relevance]
    ranked = sorted(eligible, key=priority_score, reverse=True)
    if len(ranked) <= cap:
        return ranked

    clusters = cluster_sources(ranked)
    selected: list[SourceRecord] = []
    for cluster in clusters:
        if len(selected) >= cap:
            break
        # Clusters are built from priority-ranked input, so the head is the best member.
        selected.append(cluster[0])

    domain_counts = Counter(record.domain for record in selected)
    chosen = {id(record) for record in selected}
    for record in ranked:
        if len(selected) >= cap:
            break
        if id(record) in chosen or domain_counts[record.domain] >= per_domain_cap:
            continue
        selected.append(record)
        chosen.add(id(record))
        domain_counts[record.domain] += 1

    return sorted(selected, key=priority_score, reverse=True)


def cluster_sources(ranked: list[SourceRecord]) -> list[list[SourceRecord]]:
    """Greedy clustering: same domain or key-fact token overlap above threshold."""
    clusters: list[list[SourceRecord]] = []
    for record in ranked:
        tokens = _fact_tokens(record)
        for cluster in clusters:
            if any(_similar(record, tokens, member) for member in cluster):
                cluster.append(record)
                break
        else:
            clusters.append([record])
    return clusters


def token_overlap(left: set[str], right: set[str]) -> float:
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _similar(record: SourceRecord, tokens: set[str], other: SourceRecord) -> bool:
    if record.domain == other.domain:
        return True
    return token_overlap(tokens, _fact_tokens(other)) >= CLUSTER_OVERLAP_THRESHOLD


def _fact_tokens(record: SourceRecord) -> set[str]:
    words = re.findall(r"[a-z0-9]+", " ".join(record.key_facts).lower())
    return {word for word in words if len(word) > 2}


def _is_promotional(record: SourceRecord) -> bool:
    haystack = f"{record.url} {record.content_quality}".lower()
    return any(marker in haystack for marker in PROMOTIONAL_MARKERS)
