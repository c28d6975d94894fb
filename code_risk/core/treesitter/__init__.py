"""
Tree-sitter integration for code-risk.

Provides language loading and parsing utilities shared by the extractors.
"""

from .parser import parse_source, get_parser, grammar_for, node_text, walk
from .languages import get_ts_language, get_tsx_language

__all__ = [
    "parse_source",
    "get_parser",
    "grammar_for",
    "node_text",
    "walk",
    "get_ts_language",
    "get_tsx_language",
]
