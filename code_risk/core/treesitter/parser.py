"""
Tree-sitter parser facade with cached parser instances.
"""

from functools import lru_cache

from tree_sitter import Node, Parser, Tree

from .languages import get_ts_language, get_tsx_language


TSX_LANGUAGE_HINTS = {"tsx", "jsx"}


@lru_cache(maxsize=2)
def get_parser(language_id: str) -> Parser:
    parser = Parser()
    if language_id == "typescript":
        parser.language = get_ts_language()
    elif language_id == "tsx":
        parser.language = get_tsx_language()
    else:
        raise ValueError(f"Unsupported language: {language_id}")
    return parser


def grammar_for(language: str | None) -> str:
    """Map a code-fence language tag or file suffix to a grammar id."""
    tag = (language or "").lower().lstrip(".")
    return "tsx" if tag in TSX_LANGUAGE_HINTS else "typescript"


def parse_source(source: str, language_id: str = "typescript") -> Tree:
    parser = get_parser(language_id)
    return parser.parse(bytes(source, "utf-8"))


def node_text(source_bytes: bytes, node: Node | None) -> str:
    if node is None:
        return ""
    return source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def walk(node: Node):
    """Pre-order traversal in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
