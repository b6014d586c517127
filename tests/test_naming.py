"""Tests for heuristic group name generation."""

from __future__ import annotations

from dataclasses import dataclass

from tabcycle.naming import generate_group_name, tokenize
from tabcycle.naming.generator import FALLBACK_NAME, dominant_host, host_keywords


@dataclass
class Page:
    title: str
    url: str = ""


ASYNCIO_PAGES = [
    Page("Python asyncio tutorial", "https://realpython.com/async-io-python/"),
    Page("Python asyncio docs", "https://docs.python.org/3/library/asyncio.html"),
    Page("Python asyncio guide", "https://superfastpython.com/python-asyncio/"),
]


def test_tokenize_drops_stop_words_digits_and_short_tokens() -> None:
    assert tokenize("The 2024 Guide to a Python-Asyncio | Blog") == ["guide", "python", "asyncio", "blog"]


def test_host_keywords_skip_common_parts() -> None:
    assert host_keywords("https://www.docs.python.org/3/") == ["docs", "python"]
    assert host_keywords("not a url") == []


def test_dominant_host_requires_half_coverage() -> None:
    pages = [
        Page("a", "https://github.com/x"),
        Page("b", "https://github.com/y"),
        Page("c", "https://gitlab.com"),
    ]

    assert dominant_host(pages) == "github"
    assert dominant_host(ASYNCIO_PAGES) is None


def test_shared_leading_word_wins() -> None:
    candidate = generate_group_name(ASYNCIO_PAGES)

    assert candidate is not None
    assert candidate.text == "Python"
    assert candidate.word_count == 1
    assert candidate.reason == "scored"


def test_bigram_replaces_generic_unigram() -> None:
    candidate = generate_group_name([Page("New York weather"), Page("New York restaurants")])

    assert candidate is not None
    assert candidate.text == "New York"
    assert candidate.word_count == 2


def test_low_confidence_falls_back_to_generic_name() -> None:
    candidate = generate_group_name([Page("Untitled"), Page("Home"), Page("Login")])

    assert candidate is not None
    assert candidate.text == FALLBACK_NAME
    assert candidate.reason == "generic-fallback"


def test_empty_member_list_has_no_candidate() -> None:
    assert generate_group_name([]) is None


def test_output_is_short_and_deterministic() -> None:
    samples = [
        ASYNCIO_PAGES,
        [
            Page("Flights to Lisbon - Kayak", "https://www.kayak.com/"),
            Page("Lisbon hotels", "https://booking.com"),
        ],
        [
            Page("Inbox (3) - mail", "https://mail.example.com"),
            Page("Calendar", "https://calendar.example.com"),
        ],
        [Page("", "https://news.ycombinator.com/"), Page("", "https://news.ycombinator.com/item?id=1")],
    ]
    for pages in samples:
        first = generate_group_name(pages)
        second = generate_group_name(list(pages))
        assert first == second
        assert first is not None
        assert 1 <= len(first.text.split()) <= 2
        assert first.word_count == len(first.text.split())
