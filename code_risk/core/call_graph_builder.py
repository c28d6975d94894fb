"""
Builds a call graph for a single source unit.

Nodes live in an arena (a list) and are addressed by integer ids; the
`(unit, name)` key maps to that id. Calls are resolved by name only: no
scope, import or type binding is attempted, so two functions sharing a
name collapse into one node and calls to unknown names are dropped.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Set

from tree_sitter import Node

from .signatures import FUNCTION_VALUE_TYPES, VARIABLE_STATEMENT_TYPES, statement_node
from .treesitter import grammar_for, node_text, parse_source, walk

ROUTE_REGISTRATION = re.compile(r"\b(app|router)\.(get|post|put|delete|patch)\s*\(")
DEFAULT_EXPORT = re.compile(r"\bexport\s+default\b")
HANDLER_NAME = re.compile(r"handler|route|loader", re.IGNORECASE)

FUNCTION_DECLARATION_TYPES = {"function_declaration", "generator_function_declaration"}
CLASS_DECLARATION_TYPES = {"class_declaration", "abstract_class_declaration"}


class NodeKey(NamedTuple):
    unit: str
    name: str


@dataclass
class CallGraphNode:
    """A declaration in the graph with the metadata used for entrypoint tagging."""
    key: NodeKey
    kind: str  # 'function' | 'var' | 'class'
    line_start: int
    line_end: int
    signature: str
    is_exported: bool = False

    @property
    def name(self) -> str:
        return self.key.name


@dataclass
class Declaration:
    """A declaration discovered while walking the syntax tree."""
    name: str
    kind: str
    is_exported: bool
    body: Node
    signature: str
    line_start: int
    line_end: int


@dataclass
class CallGraph:
    """
    Directed call graph over one unit.

    Every id appearing in `edges`, `in_degree` or `out_degree` indexes into
    `nodes`. Edges are deduplicated and degrees only move on first insertion.
    """
    unit: str
    nodes: List[CallGraphNode] = field(default_factory=list)
    index: Dict[NodeKey, int] = field(default_factory=dict)
    edges: Dict[int, Set[int]] = field(default_factory=dict)
    in_degree: Dict[int, int] = field(default_factory=dict)
    out_degree: Dict[int, int] = field(default_factory=dict)
    entrypoints: Set[int] = field(default_factory=set)
    changed: Set[int] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.nodes)

    def node_ids(self) -> Iterator[int]:
        return iter(range(len(self.nodes)))

    def add_node(self, node: CallGraphNode) -> int:
        existing = self.index.get(node.key)
        if existing is not None:
            self.nodes[existing].is_exported = self.nodes[existing].is_exported or node.is_exported
            return existing
        node_id = len(self.nodes)
        self.nodes.append(node)
        self.index[node.key] = node_id
        self.edges[node_id] = set()
        self.in_degree[node_id] = 0
        self.out_degree[node_id] = 0
        return node_id

    def add_edge(self, source: int, target: int) -> bool:
        """Insert source -> target; returns False when the edge already existed."""
        targets = self.edges[source]
        if target in targets:
            return False
        targets.add(target)
        self.out_degree[source] += 1
        self.in_degree[target] += 1
        return True

    def id_of(self, name: str) -> Optional[int]:
        return self.index.get(NodeKey(self.unit, name))

    def names(self, ids) -> Set[str]:
        return {self.nodes[i].name for i in ids}


def collect_declarations(root: Node, source_bytes: bytes) -> List[Declaration]:
    """Find graph-worthy declarations (functions, function-valued bindings, classes)."""
    declarations: List[Declaration] = []
    for node in walk(root):
        if node.type in FUNCTION_DECLARATION_TYPES or node.type in CLASS_DECLARATION_TYPES:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                continue
            stmt = statement_node(node)
            declarations.append(Declaration(
                name=node_text(source_bytes, name_node),
                kind="class" if node.type in CLASS_DECLARATION_TYPES else "function",
                is_exported=stmt.type == "export_statement",
                body=node,
                signature=node_text(source_bytes, stmt),
                line_start=node.start_point[0] + 1,
                line_end=node.end_point[0] + 1,
            ))
        elif node.type in VARIABLE_STATEMENT_TYPES:
            stmt = statement_node(node)
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                value = declarator.child_by_field_name("value")
                if value is None or value.type not in FUNCTION_VALUE_TYPES:
                    continue
                declarations.append(Declaration(
                    name=node_text(source_bytes, declarator.child_by_field_name("name")),
                    kind="var",
                    is_exported=stmt.type == "export_statement",
                    body=value,
                    signature=node_text(source_bytes, stmt),
                    line_start=declarator.start_point[0] + 1,
                    line_end=declarator.end_point[0] + 1,
                ))
    return declarations


def callee_name(call: Node, source_bytes: bytes) -> Optional[str]:
    """Identifier callee, or the property tail of a member-access callee."""
    func = call.child_by_field_name("function")
    if func is None:
        return None
    if func.type == "identifier":
        return node_text(source_bytes, func)
    if func.type == "member_expression":
        prop = func.child_by_field_name("property")
        if prop is not None and prop.type == "property_identifier":
            return node_text(source_bytes, prop)
    return None


def is_probable_entrypoint(name: str, is_exported: bool, file_text: str) -> bool:
    if is_exported:
        return True
    if ROUTE_REGISTRATION.search(file_text):
        return True
    if DEFAULT_EXPORT.search(file_text) and HANDLER_NAME.search(name):
        return True
    return False


class CallGraphBuilder:
    """
    Builds one call graph per analyzed snippet.

    Without a previous snapshot every declaration is marked changed: the
    builder cannot tell what the edit touched, so impact is computed as if the
    whole unit were new. Passing `previous_code` narrows the changed set to
    declarations that are new or whose source text differs.
    """

    def __init__(self, unit: str = "snippet.ts"):
        self.unit = unit

    def build(
        self,
        code: str,
        previous_code: Optional[str] = None,
        language: Optional[str] = None,
    ) -> CallGraph:
        graph = CallGraph(unit=self.unit)
        if not isinstance(code, str) or not code.strip():
            return graph

        grammar = grammar_for(language)
        try:
            tree = parse_source(code, grammar)
        except Exception as e:
            logging.debug(f"Call graph skipped, parse failed: {e}")
            return graph

        source_bytes = code.encode("utf-8")
        declarations = collect_declarations(tree.root_node, source_bytes)
        logging.debug(f"Step 1: Creating nodes... {len(declarations)} declarations found")

        decl_ids: List[int] = []
        for decl in declarations:
            decl_ids.append(graph.add_node(CallGraphNode(
                key=NodeKey(self.unit, decl.name),
                kind=decl.kind,
                line_start=decl.line_start,
                line_end=decl.line_end,
                signature=decl.signature,
                is_exported=decl.is_exported,
            )))

        logging.debug("Step 2: Identifying entry points...")
        for node_id in graph.node_ids():
            node = graph.nodes[node_id]
            if is_probable_entrypoint(node.name, node.is_exported, code):
                graph.entrypoints.add(node_id)

        logging.debug("Step 3: Extracting call edges...")
        for decl, caller in zip(declarations, decl_ids):
            for child in walk(decl.body):
                if child.type != "call_expression":
                    continue
                name = callee_name(child, source_bytes)
                target = graph.id_of(name) if name else None
                if target is not None:
                    graph.add_edge(caller, target)

        logging.debug("Step 4: Marking changed declarations...")
        graph.changed = self._changed_ids(graph, declarations, decl_ids, previous_code, grammar)

        logging.debug(
            f"   {len(graph)} nodes, {sum(graph.out_degree.values())} edges, "
            f"{len(graph.entrypoints)} entrypoints, {len(graph.changed)} changed"
        )
        return graph

    def _changed_ids(
        self,
        graph: CallGraph,
        declarations: List[Declaration],
        decl_ids: List[int],
        previous_code: Optional[str],
        grammar: str,
    ) -> Set[int]:
        if previous_code is None:
            return set(graph.node_ids())

        previous: Dict[str, str] = {}
        if previous_code.strip():
            try:
                prev_tree = parse_source(previous_code, grammar)
                prev_bytes = previous_code.encode("utf-8")
                previous = {d.name: d.signature for d in collect_declarations(prev_tree.root_node, prev_bytes)}
            except Exception as e:
                logging.debug(f"Previous snapshot unusable, treating all declarations as changed: {e}")
                return set(graph.node_ids())

        changed: Set[int] = set()
        for decl, node_id in zip(declarations, decl_ids):
            if previous.get(decl.name) != decl.signature:
                changed.add(node_id)
        return changed
