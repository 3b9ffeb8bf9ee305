"""Declarative keyword rule tables for search necessity, citation necessity, and authority.

Each table is an ordered list of rules; the first rule whose predicate matches wins.
Keyword families are matched on word boundaries against lowercased text.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from multi_agent_reasoning.models import AuthorityTier

V = TypeVar("V")

TIME_SENSITIVE_KEYWORDS: tuple[str, ...] = (
    "latest",
    "current",
    "currently",
    "today",
    "tonight",
    "yesterday",
    "news",
    "breaking",
    "recent",
    "newest",
    "upcoming",
    "price",
    "prices",
    "stock",
    "stocks",
    "weather",
    "election",
    "score",
    "statistics",
    "population",
    "ceo",
    "president",
    "developments",
    "trending",
)
YEAR_PATTERN = r"(?:19|20)\d{2}"
RECENCY_PHRASES: tuple[str, ...] = (
    "this year",
    "this month",
    "this week",
    "last week",
    "last month",
    "so far",
    "as of",
    "up to date",
    "up-to-date",
    "right now",
    "nowadays",
    "these days",
    "in the last",
    "state of the art",
    "recently",
)
STABLE_KNOWLEDGE_KEYWORDS: tuple[str, ...] = (
    "derivative",
    "derivatives",
    "integral",
    "integrate",
    "differentiate",
    "equation",
    "equations",
    "algebra",
    "algebraic",
    "calculus",
    "arithmetic",
    "theorem",
    "proof",
    "prove",
    "polynomial",
    "logarithm",
    "factorial",
    "matrix",
    "eigenvalue",
    "square root",
    "prime number",
    "fraction",
    "multiply",
    "divide",
    "sum of",
    "limit of",
    "geometry",
    "trigonometry",
)
EVOLVING_TECH_KEYWORDS: tuple[str, ...] = (
    "ai",
    "llm",
    "llms",
    "gpt",
    "machine learning",
    "model release",
    "framework",
    "library",
    "sdk",
    "api",
    "version",
    "release",
    "kubernetes",
    "cloud",
    "react",
    "crypto",
    "cryptocurrency",
    "blockchain",
    "quantum computing",
    "startup",
    "regulation",
    "security vulnerability",
    "cve",
)
CONCEPTUAL_PHRASES: tuple[str, ...] = (
    "what is",
    "what are",
    "explain",
    "how does",
    "how do",
    "why does",
    "why do",
    "define",
    "definition of",
    "difference between",
    "describe",
    "concept of",
    "meaning of",
)
CODE_KEYWORDS: tuple[str, ...] = (
    "code",
    "function",
    "implement",
    "implementation",
    "algorithm",
    "refactor",
    "bug",
    "debug",
    "compile",
    "python",
    "javascript",
    "typescript",
    "regex",
    "sql",
    "unit test",
)
FACTUAL_KEYWORDS: tuple[str, ...] = (
    "who",
    "when did",
    "where is",
    "how many",
    "how much",
    "history of",
    "statistics",
    "data on",
    "report",
    "study",
    "studies",
    "research on",
    "evidence",
)


def _family_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"\b(?:{alternatives})\b")


_PATTERNS: dict[str, re.Pattern[str]] = {
    "time_sensitive": re.compile(
        rf"\b(?:{'|'.join(re.escape(k) for k in TIME_SENSITIVE_KEYWORDS)}|{YEAR_PATTERN})\b"
    ),
    "recency": _family_pattern(RECENCY_PHRASES),
    "stable_knowledge": _family_pattern(STABLE_KNOWLEDGE_KEYWORDS),
    "evolving_tech": _family_pattern(EVOLVING_TECH_KEYWORDS),
    "conceptual": _family_pattern(CONCEPTUAL_PHRASES),
    "code": _family_pattern(CODE_KEYWORDS),
    "factual": _family_pattern(FACTUAL_KEYWORDS),
}


def find_keyword(family: str, text: str) -> str | None:
    match = _PATTERNS[family].search(text.lower())
    return match.group(0) if match else None


def has_keyword(family: str, text: str) -> bool:
    return find_keyword(family, text) is not None


@dataclass(frozen=True)
class Rule(Generic[V]):
    name: str
    predicate: Callable[[str], bool]
    verdict: V


@dataclass(frozen=True)
class RuleMatch(Generic[V]):
    verdict: V
    rule: str


def evaluate(rules: list[Rule[V]], text: str, *, default: V) -> RuleMatch[V]:
    for rule in rules:
        if rule.predicate(text):
            return RuleMatch(verdict=rule.verdict, rule=rule.name)
    return RuleMatch(verdict=default, rule="default")


def _family(name: str) -> Callable[[str], bool]:
    return lambda text: has_keyword(name, text)


def _conceptual_without_evolving(text: str) -> bool:
    return has_keyword("conceptual", text) and not has_keyword("evolving_tech", text)


SEARCH_NECESSITY_RULES: list[Rule[bool]] = [
    Rule("time_sensitive", _family("time_sensitive"), True),
    Rule("recency_signal", _family("recency"), True),
    Rule("stable_knowledge", _family("stable_knowledge"), False),
    Rule("evolving_domain", _family("evolving_tech"), True),
    Rule("conceptual_question", _conceptual_without_evolving, False),
]

CITATION_NECESSITY_RULES: list[Rule[bool]] = [
    Rule("time_sensitive", _family("time_sensitive"), True),
    Rule("recency_signal", _family("recency"), True),
    Rule("factual_question", _family("factual"), True),
    Rule("math_question", _family("stable_knowledge"), False),
    Rule("code_question", _family("code"), False),
    Rule("conceptual_question", _conceptual_without_evolving, False),
]


def classify_search_need(text: str) -> RuleMatch[bool]:
    return evaluate(SEARCH_NECESSITY_RULES, text, default=True)


def classify_citation_need(text: str) -> RuleMatch[bool]:
    return evaluate(CITATION_NECESSITY_RULES, text, default=True)


HIGH_AUTHORITY_SUFFIXES: tuple[str, ...] = (
    ".gov",
    ".edu",
    ".mil",
    ".int",
    ".gov.uk",
    ".ac.uk",
    ".gc.ca",
    ".europa.eu",
)
ESTABLISHED_ORGANIZATIONS: frozenset[str] = frozenset(
    {
        "who.int",
        "un.org",
        "worldbank.org",
        "imf.org",
        "oecd.org",
        "nature.com",
        "science.org",
        "sciencedirect.com",
        "springer.com",
        "thelancet.com",
        "nejm.org",
        "arxiv.org",
        "ieee.org",
        "acm.org",
        "reuters.com",
        "apnews.com",
        "bbc.co.uk",
        "bbc.com",
        "nytimes.com",
        "economist.com",
        "britannica.com",
        "python.org",
        "w3.org",
        "ietf.org",
    }
)
LOW_AUTHORITY_MARKERS: tuple[str, ...] = (
    "blog",
    "blogspot",
    "wordpress",
    "medium.com",
    "substack",
    "tumblr",
    "reddit.com",
    "quora.com",
    "forum",
    "forums",
    "answers.",
    "4chan",
)


def _is_high_authority(domain: str) -> bool:
    if any(domain.endswith(suffix) for suffix in HIGH_AUTHORITY_SUFFIXES):
        return True
    return any(domain == org or domain.endswith(f".{org}") for org in ESTABLISHED_ORGANIZATIONS)


def _is_low_authority(domain: str) -> bool:
    return any(marker in domain for marker in LOW_AUTHORITY_MARKERS)


AUTHORITY_RULES: list[Rule[AuthorityTier]] = [
    Rule("official_or_established", _is_high_authority, "High"),
    Rule("blog_or_forum", _is_low_authority, "Low"),
]


def authority_for_domain(domain: str) -> AuthorityTier:
    return evaluate(AUTHORITY_RULES, domain.lower(), default="Medium").verdict
