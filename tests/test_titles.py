"""Tests for group title parsing and composition."""

import pytest

from tabcycle.naming.titles import compose, format_age, is_valid_base, parse, strip_annotation


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Research", ("Research", "")),
        ("Research (23m)", ("Research", "23m")),
        ("Research(4h)", ("Research", "4h")),
        ("(23m)", ("", "23m")),
        ("Q3 (draft)", ("Q3 (draft)", "")),
        ("", ("", "")),
    ],
)
def test_parse_splits_base_and_annotation(title: str, expected: tuple[str, str]) -> None:
    assert tuple(parse(title)) == expected


def test_annotation_only_title_has_empty_base_name() -> None:
    assert parse("(23m)").base_name == ""
    assert strip_annotation("(23m)") == ""


@pytest.mark.parametrize(
    ("base", "annotation"),
    [("Research", "23m"), ("", "2d"), ("Travel plans", ""), ("News", "11h")],
)
def test_compose_then_parse_recovers_parts(base: str, annotation: str) -> None:
    assert parse(compose(base, annotation)) == (base, annotation)


@pytest.mark.parametrize("title", ["Research (23m)", "(1d)", "Plain", "Two words (5h)"])
def test_titles_produced_by_compose_survive_parse(title: str) -> None:
    parsed = parse(title)
    assert compose(parsed.base_name, parsed.age_annotation) == title


def test_compose_is_idempotent_for_unchanged_inputs() -> None:
    first = compose("Research", "3h")
    assert compose(*parse(first)) == first
    assert compose(*parse(compose(*parse(first)))) == first


def test_compose_rejects_malformed_annotation() -> None:
    with pytest.raises(ValueError):
        compose("Research", "3 hours")


def test_is_valid_base_rejects_trailing_annotation() -> None:
    assert is_valid_base("Research")
    assert not is_valid_base("Research (3h)")


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "1m"), (59, "1m"), (23 * 60 + 5, "23m"), (2 * 3600, "2h"), (49 * 3600, "2d")],
)
def test_format_age_units(seconds: float, expected: str) -> None:
    assert format_age(seconds) == expected
