"""Heuristic group name generation from member titles and URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence
from urllib.parse import urlsplit

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "as", "at", "by", "for", "from", "in", "into", "is",
        "it", "of", "on", "or", "the", "to", "with",
    }
)

GENERIC_WORDS = frozenset(
    {
        "account", "apps", "dashboard", "default", "home", "index", "landing", "login",
        "new", "page", "search", "site", "start", "tabs", "untitled",
    }
)

COMMON_HOST_PARTS = frozenset({"com", "dev", "edu", "example", "gov", "io", "net", "org", "www"})

FALLBACK_NAME = "Tabs"
CONFIDENCE_FLOOR = 1.2
BIGRAM_BONUS = 0.4
BIGRAM_MARGIN = 0.25
HOST_BONUS = 0.3
GENERIC_PENALTY = 1.2

_SEPARATORS = re.compile(r"[|:/\\\-_–—•·]+")
_WORDS = re.compile(r"[a-z0-9]+")
_EDGE_PUNCTUATION = re.compile(r"^[^a-z0-9]+|[^a-z0-9]+$")


class NamingSource(Protocol):
    title: str
    url: str


@dataclass(slots=True, frozen=True)
class NameCandidate:
    """Suggested group name.

    Attributes:
        text: Title-cased name of at most two words.
        word_count: Number of words in ``text``.
        score: Heuristic score; zero for fallbacks.
        reason: ``scored``, ``hostname-fallback`` or ``generic-fallback``.
    """

    text: str
    word_count: int
    score: float
    reason: str


@dataclass
class _Tally:
    text: str
    word_count: int
    frequency: int = 0
    position_score: float = 0.0
    host_hits: int = 0
    coverage: set[int] = field(default_factory=set)


def normalize_token(raw: str) -> str:
    token = _EDGE_PUNCTUATION.sub("", raw.lower())
    if len(token) < 2 or token.isdigit() or token in STOP_WORDS:
        return ""
    return token


def tokenize(text: str | None) -> list[str]:
    """Return the meaningful lowercase tokens of ``text`` in order."""
    if not text:
        return []
    normalized = _SEPARATORS.sub(" ", text.lower())
    return [token for token in map(normalize_token, _WORDS.findall(normalized)) if token]


def host_keywords(url: str | None) -> list[str]:
    """Return distinct meaningful hostname labels of ``url`` in order."""
    if not url:
        return []
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return []
    keywords: list[str] = []
    for part in hostname.lower().split("."):
        token = normalize_token(part)
        if token and token not in COMMON_HOST_PARTS and token not in keywords:
            keywords.append(token)
    return keywords


def dominant_host(tabs: Sequence[NamingSource]) -> Optional[str]:
    """Return the host keyword shared by at least half of ``tabs``, if any."""
    if not tabs:
        return None
    counts: dict[str, int] = {}
    for tab in tabs:
        for token in set(host_keywords(tab.url)):
            counts[token] = counts.get(token, 0) + 1
    if not counts:
        return None
    chosen = min(counts, key=lambda token: (-counts[token], token))
    if counts[chosen] / len(tabs) < 0.5:
        return None
    return chosen


def _collect(tabs: Sequence[NamingSource]) -> dict[str, _Tally]:
    tallies: dict[str, _Tally] = {}

    def add(text: str, tab_index: int, position: int, *, from_host: bool = False) -> None:
        tally = tallies.get(text)
        if tally is None:
            tally = _Tally(text=text, word_count=len(text.split()))
            tallies[text] = tally
        tally.frequency += 1
        tally.coverage.add(tab_index)
        tally.position_score += 1.0 / (position + 1)
        if from_host:
            tally.host_hits += 1

    for tab_index, tab in enumerate(tabs):
        tokens = tokenize(tab.title)
        for position, token in enumerate(tokens):
            add(token, tab_index, position)
        for position, (left, right) in enumerate(zip(tokens, tokens[1:])):
            add(f"{left} {right}", tab_index, position)
        for position, token in enumerate(host_keywords(tab.url)):
            add(token, tab_index, position, from_host=True)
    return tallies


def _score(tally: _Tally, tab_count: int, host: Optional[str]) -> float:
    score = (
        3.0 * len(tally.coverage) / max(1, tab_count)
        + 0.8 * tally.frequency
        + 0.4 * tally.position_score
        + HOST_BONUS * tally.host_hits
    )
    if host is not None and host in tally.text.split():
        score += HOST_BONUS
    if tally.text in GENERIC_WORDS:
        score -= GENERIC_PENALTY
    return score


def rank_candidates(tabs: Sequence[NamingSource]) -> list[tuple[str, int, float]]:
    """Return ``(text, word_count, score)`` triples, best first, before any bigram bonus."""
    host = dominant_host(tabs)
    scored = [
        (tally.text, tally.word_count, _score(tally, len(tabs), host), len(tally.coverage))
        for tally in _collect(tabs).values()
    ]
    scored.sort(key=lambda item: (-item[2], -item[3], item[1], item[0]))
    return [(text, words, score) for text, words, score, _ in scored]


def _title_case(text: str) -> str:
    return " ".join(part[0].upper() + part[1:] for part in text.split())


def generate_group_name(tabs: Sequence[NamingSource]) -> Optional[NameCandidate]:
    """Suggest a short name for a group of tabs.

    The best bigram only wins when it beats the best unigram by
    ``BIGRAM_MARGIN``; otherwise the unigram is kept. Below
    ``CONFIDENCE_FLOOR`` the dominant host is used when it covers at least
    half the tabs, else :data:`FALLBACK_NAME`.

    Args:
        tabs: Member tabs exposing ``title`` and ``url``.

    Returns:
        Optional[NameCandidate]: Suggested name, or ``None`` when ``tabs`` is empty.
    """
    if not tabs:
        return None

    ranked = rank_candidates(tabs)
    best_unigram = next((item for item in ranked if item[1] == 1), None)
    best_bigram = next((item for item in ranked if item[1] == 2), None)

    chosen: Optional[tuple[str, int, float]] = best_unigram
    if best_bigram is not None and (
        best_unigram is None or best_bigram[2] > best_unigram[2] + BIGRAM_MARGIN
    ):
        chosen = (best_bigram[0], 2, best_bigram[2] + BIGRAM_BONUS)

    if chosen is not None and chosen[2] >= CONFIDENCE_FLOOR:
        return NameCandidate(_title_case(chosen[0]), chosen[1], round(chosen[2], 4), "scored")

    host = dominant_host(tabs)
    if host is not None:
        return NameCandidate(_title_case(host), 1, 0.0, "hostname-fallback")
    return NameCandidate(FALLBACK_NAME, 1, 0.0, "generic-fallback")


__all__ = [
    "NameCandidate",
    "FALLBACK_NAME",
    "CONFIDENCE_FLOOR",
    "tokenize",
    "host_keywords",
    "dominant_host",
    "rank_candidates",
    "generate_group_name",
]
