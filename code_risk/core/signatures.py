"""
Declaration signature extraction and API diffing.

Signatures are the verbatim source text of each declaration, so two
snapshots are compared byte-for-byte rather than semantically.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from tree_sitter import Node

from .models import ApiDiffResult, ApiKind, ApiSignature
from .treesitter import grammar_for, node_text, parse_source, walk

FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function", "generator_function"}

DECLARATION_KINDS = {
    "function_declaration": ApiKind.FUNCTION,
    "generator_function_declaration": ApiKind.FUNCTION,
    "class_declaration": ApiKind.CLASS,
    "abstract_class_declaration": ApiKind.CLASS,
    "interface_declaration": ApiKind.INTERFACE,
    "type_alias_declaration": ApiKind.TYPE,
}

VARIABLE_STATEMENT_TYPES = {"lexical_declaration", "variable_declaration"}


def statement_node(node: Node) -> Node:
    """Return the node whose text is the full declaration, `export` included."""
    parent = node.parent
    if parent is not None and parent.type == "export_statement":
        return parent
    return node


def is_function_value(node: Optional[Node]) -> bool:
    return node is not None and node.type in FUNCTION_VALUE_TYPES


def extract_api_signature(node: Node, source_bytes: bytes) -> Optional[ApiSignature]:
    """Build the signature for a single node, or None if it declares no API."""
    kind = DECLARATION_KINDS.get(node.type)
    if kind is not None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        return ApiSignature(
            kind=kind,
            name=node_text(source_bytes, name_node),
            signature=node_text(source_bytes, statement_node(node)),
        )

    if node.type in VARIABLE_STATEMENT_TYPES:
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            if is_function_value(declarator.child_by_field_name("value")):
                return ApiSignature(
                    kind=ApiKind.VAR,
                    name=node_text(source_bytes, declarator.child_by_field_name("name")),
                    signature=node_text(source_bytes, statement_node(node)),
                )
    return None


def extract_signatures(code: str, language: Optional[str] = None) -> List[ApiSignature]:
    """
    Collect every API-like declaration in discovery order.

    Args:
        code: Source text to scan.
        language: Optional fence/suffix hint; 'tsx'/'jsx' select the TSX grammar.

    Returns:
        List of ApiSignature, empty when the input is empty or cannot be parsed.
    """
    if not isinstance(code, str) or not code.strip():
        return []

    try:
        tree = parse_source(code, grammar_for(language))
    except Exception as e:
        logging.debug(f"Signature extraction skipped, parse failed: {e}")
        return []

    source_bytes = code.encode("utf-8")
    apis: List[ApiSignature] = []
    for node in walk(tree.root_node):
        sig = extract_api_signature(node, source_bytes)
        if sig is not None:
            apis.append(sig)
    return apis


def diff_signatures(prev: Sequence[ApiSignature], cur: Sequence[ApiSignature]) -> ApiDiffResult:
    """Count added/removed/changed names between two snapshots."""
    prev_map: Dict[str, ApiSignature] = {p.name: p for p in prev}
    cur_map: Dict[str, ApiSignature] = {c.name: c for c in cur}

    added = sum(1 for name in cur_map if name not in prev_map)
    removed = 0
    changed = 0
    for name, p in prev_map.items():
        c = cur_map.get(name)
        if c is None:
            removed += 1
        elif p.signature != c.signature:
            changed += 1

    return ApiDiffResult(
        added=added,
        removed=removed,
        changed=changed,
        api_changes=added + removed + changed,
        total_apis=max(len(prev), len(cur)),
    )


def compute_api_changes(prev_code: str, cur_code: str, language: Optional[str] = None) -> ApiDiffResult:
    return diff_signatures(
        extract_signatures(prev_code, language),
        extract_signatures(cur_code, language),
    )
