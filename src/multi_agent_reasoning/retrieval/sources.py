"""Parse backend research responses into scored SourceRecords.

Three strategies are tried in order until one yields records:
1) a structured SOURCE EVALUATION block (requested explicitly in the research prompt)
2) platform-native citations (url_citation annotations, then inline markdown links)
3) bare URL extraction
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from multi_agent_reasoning.llm import Generation
from multi_agent_reasoning.models import INTERNAL_KNOWLEDGE, SourceRecord
from multi_agent_reasoning.retrieval.rules import authority_for_domain

PLACEHOLDER_HOSTS = frozenset(
    {"example.com", "example.org", "example.net", "localhost", "127.0.0.1", "0.0.0.0"}
)
PLACEHOLDER_MARKERS = frozenset({INTERNAL_KNOWLEDGE, "knowledge-based"})

SOURCE_BLOCK_HEADER = re.compile(r"^\W*source\s+evaluation\W*$", re.IGNORECASE | re.MULTILINE)
SOURCE_ENTRY_SPLIT = re.compile(r"^\W*source\s+\d+\s*[:.)-]?", re.IGNORECASE | re.MULTILINE)
FIELD_LINE = re.compile(r"^[\s\-*•]*([A-Za-z][A-Za-z ]{1,30}?)\**\s*:\s*\**\s*(.*)$")
BULLET_LINE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*\S)\s*$")
MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^\s)]+)\)")
BARE_URL = re.compile(r"https?://[^\s<>\"'\]\)]+")
ISO_DATE = re.compile(r"\b((?:19|20)\d{2}-\d{2}-\d{2})\b")
URL_DATE = re.compile(r"/((?:19|20)\d{2})/(\d{1,2})(?:/(\d{1,2}))?/")
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

_WORD_RELEVANCE = {"very high": 0.95, "high": 0.9, "medium": 0.6, "moderate": 0.6, "low": 0.3}
_TRAILING_PUNCTUATION = ".,;:!?"
NATIVE_BASE_RELEVANCE = 0.8
NATIVE_RELEVANCE_STEP = 0.05
MARKDOWN_BASE_RELEVANCE = 0.7
BARE_URL_RELEVANCE = 0.5


@dataclass(frozen=True)
class ParseOutcome:
    records: list[SourceRecord]
    parser: str | None


def parse_sources(generation: Generation) -> ParseOutcome:
    strategies: list[tuple[str, Callable[[Generation], list[SourceRecord]]]] = [
        ("source_evaluation", parse_source_evaluation_block),
        ("native_citations", parse_native_citations),
        ("bare_urls", parse_bare_urls),
    ]
    for name, strategy in strategies:
        records = strategy(generation)
        if records:
            return ParseOutcome(records=records, parser=name)
    return ParseOutcome(records=[], parser=None)


def parse_source_evaluation_block(generation: Generation) -> list[SourceRecord]:
    header = SOURCE_BLOCK_HEADER.search(generation.text)
    if header is None:
        return []
    block = generation.text[header.end():]
    entries = SOURCE_ENTRY_SPLIT.split(block)[1:]

    records: list[SourceRecord] = []
    seen: set[str] = set()
    for entry in entries:
        fields, facts = _parse_entry_fields(entry)
        url = _clean_url(fields.get("url", ""))
        if not url:
            bare = BARE_URL.search(entry)
            url = _clean_url(bare.group(0)) if bare else ""
        if not url or url in seen:
            continue
        domain = domain_of(url)
        if not domain:
            continue
        seen.add(url)
        records.append(
            SourceRecord(
                url=url,
                domain=domain,
                relevance_score=parse_relevance(fields.get("relevance", "")),
                authority=authority_for_domain(domain),
                published=_non_empty(fields.get("date") or fields.get("published")),
                key_facts=facts,
                content_quality=fields.get("quality", "") or fields.get("content quality", ""),
            )
        )
    return records


def parse_native_citations(generation: Generation) -> list[SourceRecord]:
    records: list[SourceRecord] = []
    seen: set[str] = set()

    for index, citation in enumerate(generation.citations):
        url = _clean_url(citation.url)
        domain = domain_of(url)
        if not url or not domain or url in seen:
            continue
        seen.add(url)
        fact = _cited_span(generation.text, citation.start_index, citation.end_index)
        records.append(
            SourceRecord(
                url=url,
                domain=domain,
                relevance_score=NATIVE_BASE_RELEVANCE - NATIVE_RELEVANCE_STEP * index,
                authority=authority_for_domain(domain),
                published=_published_hint(url, fact),
                key_facts=[fact] if fact else _title_fact(citation.title),
                content_quality="native url citation",
            )
        )
    if records:
        return records

    for index, match in enumerate(MARKDOWN_LINK.finditer(generation.text)):
        url = _clean_url(match.group(2))
        domain = domain_of(url)
        if not url or not domain or url in seen:
            continue
        seen.add(url)
        fact = _sentence_around(generation.text, match.start(), match.end())
        records.append(
            SourceRecord(
                url=url,
                domain=domain,
                relevance_score=MARKDOWN_BASE_RELEVANCE - NATIVE_RELEVANCE_STEP * index,
                authority=authority_for_domain(domain),
                published=_published_hint(url, fact),
                key_facts=[fact] if fact else _title_fact(match.group(1)),
                content_quality="inline markdown citation",
            )
        )
    return records


def parse_bare_urls(generation: Generation) -> list[SourceRecord]:
    records: list[SourceRecord] = []
    seen: set[str] = set()
    for match in BARE_URL.finditer(generation.text):
        url = _clean_url(match.group(0))
        domain = domain_of(url)
        if not url or not domain or url in seen:
            continue
        seen.add(url)
        fact = _sentence_around(generation.text, match.start(), match.end())
        records.append(
            SourceRecord(
                url=url,
                domain=domain,
                relevance_score=BARE_URL_RELEVANCE,
                authority=authority_for_domain(domain),
                published=_published_hint(url, fact),
                key_facts=[fact] if fact else [],
                content_quality="bare url",
            )
        )
    return records


def parse_relevance(raw: str) -> float:
    """Parse '0.8', '80%', '8/10' or 'High' into a score clamped to [0, 1]."""
    text = raw.strip().lower()
    if not text:
        return 0.5
    for word, score in _WORD_RELEVANCE.items():
        if text.startswith(word):
            return score

    fraction = re.match(r"^(-?\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)", text)
    if fraction:
        denominator = float(fraction.group(2))
        value = float(fraction.group(1)) / denominator if denominator else 0.0
        return _clamp(value)

    number = re.match(r"^(-?\d+(?:\.\d+)?)\s*(%)?", text)
    if number is None:
        return 0.5
    value = float(number.group(1))
    if number.group(2) or value > 10.0:
        value /= 100.0
    elif value > 1.0:
        value /= 10.0
    return _clamp(value)


def domain_of(url: str) -> str:
    try:
        netloc = urlparse(url).netloc.lower()
    except ValueError:
        return ""
    netloc = netloc.rsplit("@", 1)[-1].split(":", 1)[0]
    if netloc.startswith("www."):
        netloc = netloc[4:]
    return netloc


def has_real_sources(citations: list[str]) -> bool:
    """True when at least one citation is an http(s) URL on a non-placeholder host."""
    for citation in citations:
        if citation in PLACEHOLDER_MARKERS:
            continue
        if urlparse(citation).scheme not in {"http", "https"}:
            continue
        host = domain_of(citation)
        if not host or host in PLACEHOLDER_HOSTS or host.endswith(".example.com"):
            continue
        return True
    return False


def _parse_entry_fields(entry: str) -> tuple[dict[str, str], list[str]]:
    fields: dict[str, str] = {}
    facts: list[str] = []
    in_facts = False
    for line in entry.splitlines():
        if not line.strip():
            continue
        bullet = BULLET_LINE.match(line)
        field_match = FIELD_LINE.match(line)
        if in_facts and bullet and not (field_match and _is_known_field(field_match.group(1))):
            facts.append(bullet.group(1).strip())
            continue
        if field_match:
            key = field_match.group(1).strip().lower()
            value = field_match.group(2).strip()
            if key in {"key facts", "facts", "key fact"}:
                in_facts = True
                if value:
                    facts.extend(part.strip() for part in value.split(";") if part.strip())
                continue
            in_facts = False
            fields[key] = value
    return fields, facts


def _is_known_field(name: str) -> bool:
    return name.strip().lower() in {
        "url",
        "relevance",
        "date",
        "published",
        "quality",
        "content quality",
        "key facts",
        "facts",
    }


def _clean_url(url: str) -> str:
    cleaned = url.strip().strip("<>")
    while cleaned and cleaned[-1] in _TRAILING_PUNCTUATION:
        cleaned = cleaned[:-1]
    if not cleaned.lower().startswith(("http://", "https://")):
        return ""
    return cleaned


def _cited_span(text: str, start: int | None, end: int | None) -> str:
    if start is None or end is None or not (0 <= start < end <= len(text)):
        return ""
    return _sentence_around(text, start, end)


def _sentence_around(text: str, start: int, end: int) -> str:
    left = max(text.rfind("\n", 0, start), _last_sentence_break(text, start))
    right_newline = text.find("\n", end)
    right = len(text) if right_newline == -1 else right_newline
    next_break = SENTENCE_SPLIT.search(text, end)
    if next_break is not None and next_break.start() < right:
        right = next_break.start()
    sentence = text[left + 1 : right]
    sentence = MARKDOWN_LINK.sub(lambda m: m.group(1), sentence)
    sentence = BARE_URL.sub("", sentence)
    sentence = re.sub(r"\(\s*\)", "", sentence)
    return " ".join(sentence.split()).strip(" -*")


def _last_sentence_break(text: str, position: int) -> int:
    best = -1
    for match in SENTENCE_SPLIT.finditer(text, 0, position):
        best = match.start()
    return best


def _title_fact(title: str) -> list[str]:
    cleaned = " ".join(title.split()).strip()
    return [cleaned] if cleaned else []


def _published_hint(url: str, fact: str) -> str | None:
    iso = ISO_DATE.search(fact) or ISO_DATE.search(url)
    if iso:
        return iso.group(1)
    from_url = URL_DATE.search(url)
    if from_url:
        year, month, day = from_url.groups()
        parts = [year, month.zfill(2)] + ([day.zfill(2)] if day else [])
        return "-".join(parts)
    return None


def _non_empty(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped or stripped.lower() in {"unknown", "n/a", "none"}:
        return None
    return stripped


def _clamp(value: float) -> float:
    return max(0.0, min(value, 1.0))
