from __future__ import annotations

from multi_agent_reasoning.errors import BackendRequestError
from multi_agent_reasoning.models import INTERNAL_KNOWLEDGE
from multi_agent_reasoning.retrieval.retriever import Retriever, decide_search

SEARCH_TEXT = """Artemis II will carry four astronauts.

SOURCE EVALUATION:
Source 1:
URL: https://www.nasa.gov/missions/artemis
Relevance: 0.9
Key facts:
- Artemis II is planned to carry four astronauts.
Quality: official

Source 2:
URL: https://www.esa.int/artemis
Relevance: 0.7
Key facts:
- ESA provides the service module.
Quality: official
"""


def test_decide_search_modes() -> None:
    assert decide_search("latest news", subtask_kind="reason").rule == "non_research_subtask"
    assert decide_search("x", mode="always").required is True
    assert decide_search("latest news", mode="never").required is False
    auto = decide_search("Compute the derivative of x^2", goal="calculus homework")
    assert (auto.required, auto.rule) == (False, "stable_knowledge")


def test_live_fetch_builds_claim_graph(fake_generator) -> None:
    generator = fake_generator(default=SEARCH_TEXT)
    retriever = Retriever(generator=generator, search_mode="always")

    bundle = retriever.retrieve("Artemis II crew", "research", goal="Artemis facts")

    assert bundle.sources == ["https://www.nasa.gov/missions/artemis", "https://www.esa.int/artemis"]
    assert [node.id for node in bundle.nodes] == ["source1", "claim1", "source2", "claim2"]
    assert bundle.edges[0].source == "claim1"
    assert bundle.edges[0].target == "source1"
    metadata = bundle.source_metadata
    assert metadata.search_performed is True
    assert metadata.parser == "source_evaluation"
    assert metadata.selected_count == 2
    assert metadata.authority_counts == {"High": 2, "Medium": 0, "Low": 0}
    assert generator.calls[0]["require_search"] is True
    assert "Overall goal: Artemis facts" in generator.calls[0]["user_prompt"]


def test_cache_is_keyed_by_query(fake_generator) -> None:
    generator = fake_generator(default=SEARCH_TEXT)
    retriever = Retriever(generator=generator, search_mode="always")

    first = retriever.retrieve("Artemis II crew")
    second = retriever.retrieve("Artemis II crew")
    retriever.retrieve("Artemis III landing site")

    assert retriever.fetch_count == 2
    assert len(generator.calls) == 2
    assert first.source_metadata.cached is False
    assert second.source_metadata.cached is True
    assert second.sources == first.sources


def test_fetch_failure_degrades_and_is_not_cached(fake_generator) -> None:
    generator = fake_generator([BackendRequestError("search tool unavailable", status=502), SEARCH_TEXT])
    retriever = Retriever(generator=generator, search_mode="always")

    degraded = retriever.retrieve("Artemis II crew")
    recovered = retriever.retrieve("Artemis II crew")

    assert degraded.sources == [INTERNAL_KNOWLEDGE]
    assert degraded.source_metadata.search_performed is True
    assert "search tool unavailable" in degraded.source_metadata.fallback_reason
    assert recovered.sources[0] == "https://www.nasa.gov/missions/artemis"
    assert retriever.fetch_count == 2


def test_never_mode_skips_backend(fake_generator) -> None:
    generator = fake_generator(default=SEARCH_TEXT)
    bundle = Retriever(generator=generator, search_mode="never").retrieve("latest Artemis news")

    assert generator.calls == []
    assert bundle.sources == [INTERNAL_KNOWLEDGE]
    assert bundle.source_metadata.decision_rule == "mode_never"


def test_unsourced_answer_keeps_text_as_single_claim(fake_generator) -> None:
    generator = fake_generator(default="Artemis II is crewed; no links available.")
    bundle = Retriever(generator=generator, search_mode="always").retrieve("Artemis II crew")

    assert bundle.sources == [INTERNAL_KNOWLEDGE]
    assert bundle.nodes[0].text == "Artemis II is crewed; no links available."
    assert bundle.source_metadata.parser is None


def test_low_relevance_sources_are_filtered(fake_generator) -> None:
    text = SEARCH_TEXT.replace("Relevance: 0.7", "Relevance: 0.1")
    bundle = Retriever(generator=fake_generator(default=text), search_mode="always").retrieve("q")

    assert bundle.sources == ["https://www.nasa.gov/missions/artemis"]
    assert bundle.source_metadata.total_parsed == 2
