from __future__ import annotations

from collections import Counter

import pytest

from multi_agent_reasoning.models import SourceRecord
from multi_agent_reasoning.retrieval.prioritize import (
    cluster_sources,
    prioritize_sources,
    priority_score,
    token_overlap,
)
from multi_agent_reasoning.retrieval.sources import domain_of


def _record(url: str, relevance: float, authority: str = "Medium", facts=(), quality="") -> SourceRecord:
    return SourceRecord(
        url=url,
        domain=domain_of(url),
        relevance_score=relevance,
        authority=authority,
        key_facts=list(facts),
        content_quality=quality,
    )


def test_priority_score_weights_and_penalties() -> None:
    assert priority_score(_record("https://nih.gov/a", 1.0, "High")) == pytest.approx(0.9)
    assert priority_score(_record("https://site.com/a", 0.5)) == pytest.approx(0.45)
    long_url = "https://site.com/" + "x" * 150
    assert priority_score(_record(long_url, 0.5)) == pytest.approx(0.35)
    promo = _record("https://shop.com/deal", 0.5, quality="sponsored content")
    assert priority_score(promo) == pytest.approx(0.3)


def test_low_relevance_sources_are_dropped() -> None:
    records = [_record("https://a.com/1", 0.9), _record("https://b.com/1", 0.29)]
    assert [r.url for r in prioritize_sources(records)] == ["https://a.com/1"]


def test_small_sets_are_only_ranked() -> None:
    records = [
        _record("https://a.com/1", 0.4),
        _record("https://a.com/2", 0.5),
        _record("https://a.com/3", 0.9),
    ]
    assert [r.url for r in prioritize_sources(records)] == [
        "https://a.com/3",
        "https://a.com/2",
        "https://a.com/1",
    ]


def test_clusters_keep_one_representative_per_domain() -> None:
    records = [_record(f"https://big.com/{i}", 0.9, facts=[f"topic{i} alpha"]) for i in range(4)]
    records += [
        _record("https://one.org/x", 0.5, facts=["rainfall totals in spain"]),
        _record("https://two.org/x", 0.5, facts=["volcano eruption history"]),
        _record("https://three.org/x", 0.5, facts=["quantum dot displays"]),
        _record("https://four.org/x", 0.5, facts=["medieval trade routes"]),
    ]
    selected = prioritize_sources(records, cap=5)

    domains = Counter(record.domain for record in selected)
    assert len(selected) == 5
    assert domains["big.com"] == 1
    assert selected[0].url == "https://big.com/0"


def test_per_domain_cap_limits_fill() -> None:
    records = [_record(f"https://big.com/{i}", 0.9 - i * 0.01) for i in range(6)]
    records.append(_record("https://other.org/x", 0.4))
    selected = prioritize_sources(records, cap=5, per_domain_cap=2)

    domains = Counter(record.domain for record in selected)
    assert domains == {"big.com": 2, "other.org": 1}


def test_overlapping_facts_cluster_across_domains() -> None:
    first = _record("https://a.com/x", 0.9, facts=["the eiffel tower is 330 metres tall"])
    second = _record("https://b.com/y", 0.8, facts=["eiffel tower stands 330 metres tall"])
    third = _record("https://c.com/z", 0.7, facts=["croissants contain butter"])

    clusters = cluster_sources([first, second, third])
    assert [[r.url for r in cluster] for cluster in clusters] == [
        ["https://a.com/x", "https://b.com/y"],
        ["https://c.com/z"],
    ]


def test_token_overlap_is_jaccard() -> None:
    assert token_overlap({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
    assert token_overlap(set(), {"a"}) == 0.0
