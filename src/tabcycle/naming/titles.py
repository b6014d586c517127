"""Group title composition.

A group's display title carries two independently managed parts: the base
name (user-typed or generated) and an optional age annotation such as
``(23m)``. Both parts are always read and written through :func:`parse` and
:func:`compose` so that one writer never clobbers the other.
"""

from __future__ import annotations

import re
from typing import NamedTuple

ANNOTATION_PATTERN = re.compile(r"\s?\((\d+)([mhd])\)$")
_ANNOTATION_VALUE = re.compile(r"^\d+[mhd]$")


class ParsedTitle(NamedTuple):
    """Display title split into its managed parts."""

    base_name: str
    age_annotation: str


def parse(title: str | None) -> ParsedTitle:
    """Split ``title`` into base name and age annotation.

    A title consisting only of an annotation has an empty base name.

    Args:
        title: Display title as reported by the host.

    Returns:
        ParsedTitle: Base name and annotation (``"23m"``), either possibly empty.
    """
    if not title:
        return ParsedTitle("", "")
    match = ANNOTATION_PATTERN.search(title)
    if match is None:
        return ParsedTitle(title, "")
    return ParsedTitle(title[: match.start()], match.group(1) + match.group(2))


def compose(base_name: str, age_annotation: str = "") -> str:
    """Build a display title from its parts.

    Raises:
        ValueError: If ``age_annotation`` is neither empty nor ``<n>[mhd]``.
    """
    if age_annotation and not _ANNOTATION_VALUE.match(age_annotation):
        raise ValueError(f"Malformed age annotation: {age_annotation!r}")
    if not age_annotation:
        return base_name
    if not base_name:
        return f"({age_annotation})"
    return f"{base_name} ({age_annotation})"


def is_valid_base(base_name: str) -> bool:
    """Return whether ``base_name`` survives a compose/parse round trip."""
    return ANNOTATION_PATTERN.search(base_name) is None


def strip_annotation(title: str | None) -> str:
    return parse(title).base_name


def format_age(seconds: float) -> str:
    """Render an age as minutes (at least ``1m``), hours, or days."""
    minutes = int(max(0.0, seconds) // 60)
    if minutes < 60:
        return f"{max(1, minutes)}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


__all__ = [
    "ANNOTATION_PATTERN",
    "ParsedTitle",
    "parse",
    "compose",
    "is_valid_base",
    "strip_annotation",
    "format_age",
]
