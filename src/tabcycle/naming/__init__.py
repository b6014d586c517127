"""Group naming and title composition."""

from .generator import NameCandidate, generate_group_name, tokenize
from .titles import ParsedTitle, compose, format_age, parse, strip_annotation

__all__ = [
    "NameCandidate",
    "generate_group_name",
    "tokenize",
    "ParsedTitle",
    "parse",
    "compose",
    "format_age",
    "strip_annotation",
]
