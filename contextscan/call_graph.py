"""Named handlers and intra-file call edges.

Graphs are plain edge lists keyed by function name; adjacency is built
on demand by :func:`build_adjacency` rather than stored on nodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Set

from .import_analyzer import export_names
from .models import CallGraphEdge, NamedHandler
from .parser import SourceFile, iter_nodes, line_of, node_text
from .patterns import match_workflow_type

_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}


@dataclass
class LocalFunction:
    name: str
    node: Any
    line_number: int
    is_exported: bool


def _is_export_statement(node: Any) -> bool:
    return node is not None and node.type == "export_statement"


def collect_functions(source: SourceFile) -> List[LocalFunction]:
    """Named function declarations and functions bound to variables."""
    exported: Set[str] = set()
    for statement in iter_nodes(source.root, ("export_statement",)):
        if statement.child_by_field_name("source") is None:
            exported.update(export_names(statement))

    functions: List[LocalFunction] = []
    for node in iter_nodes(source.root, _FUNCTION_DECLARATIONS | {"variable_declarator"}):
        if node.type in _FUNCTION_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            body = node
            direct_export = _is_export_statement(node.parent)
        else:
            value = node.child_by_field_name("value")
            if value is None or value.type not in _FUNCTION_VALUES:
                continue
            name_node = node.child_by_field_name("name")
            body = value
            declaration = node.parent
            direct_export = declaration is not None and _is_export_statement(declaration.parent)
        if name_node is None or name_node.type != "identifier":
            continue
        name = node_text(name_node)
        functions.append(LocalFunction(
            name=name,
            node=body,
            line_number=line_of(node),
            is_exported=direct_export or name in exported,
        ))
    return functions


def extract_handlers(source: SourceFile, functions: Sequence[LocalFunction]) -> List[NamedHandler]:
    return [
        NamedHandler(
            name=fn.name,
            file_path=source.rel_path,
            kind=match_workflow_type(fn.name),
            line_number=fn.line_number,
            is_exported=fn.is_exported,
        )
        for fn in functions
    ]


def extract_call_edges(source: SourceFile, functions: Sequence[LocalFunction]) -> List[CallGraphEdge]:
    """Edges between functions declared in the same file.

    Every local name is known before edges are built, so a call to a
    function declared further down the file is still recorded.  Calls to
    imported or global names are not graph edges.
    """
    local = {fn.name for fn in functions}
    edges: List[CallGraphEdge] = []
    for fn in functions:
        for call in iter_nodes(fn.node, ("call_expression",)):
            callee = call.child_by_field_name("function")
            if callee is None or callee.type != "identifier":
                continue
            name = node_text(callee)
            if name in local:
                edges.append(CallGraphEdge(fn.name, name, source.rel_path, line_of(call)))
    return edges


def build_adjacency(edges: Sequence[CallGraphEdge], names: Set[str]) -> Dict[str, List[str]]:
    """Caller -> ordered unique callees, restricted to *names*."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        if edge.caller not in names or edge.callee not in names:
            continue
        callees = adjacency.setdefault(edge.caller, [])
        if edge.callee not in callees:
            callees.append(edge.callee)
    return adjacency


def build_call_sequence(handlers: Sequence[NamedHandler], edges: Sequence[CallGraphEdge]) -> List[str]:
    """Deterministic handler ordering seeded from call-graph entry points.

    Entry points are callers that are never called.  Each is expanded
    depth-first; handlers not reached are appended in their original order.
    """
    names = list(dict.fromkeys(h.name for h in handlers))
    adjacency = build_adjacency(edges, set(names))
    callees = {c for targets in adjacency.values() for c in targets}

    sequence: List[str] = []
    visited: Set[str] = set()
    for root in names:
        if root not in adjacency or root in callees:
            continue
        stack = [root]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            sequence.append(current)
            stack.extend(reversed(adjacency.get(current, [])))

    sequence.extend(n for n in names if n not in visited)
    return sequence
