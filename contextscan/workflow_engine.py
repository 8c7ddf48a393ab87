"""Workflows: CRUD operations from API routes plus named handlers and call graph."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Set, Tuple

from .call_graph import build_call_sequence, collect_functions, extract_call_edges, extract_handlers
from .engine_base import ExtractionEngine
from .fs_utils import is_directory
from .import_analyzer import analyze_imports
from .models import CallGraphEdge, CRUDOperation, NamedHandler, Workflow, WorkflowModel
from .parser import CODE_EXTENSIONS
from .patterns import (
    HTTP_METHODS,
    METHOD_TO_OPERATION,
    dominant_workflow_type,
    resource_to_workflow_name,
    type_to_workflow_name,
)

logger = logging.getLogger(__name__)

API_DIRECTORIES = ("app/api", "src/app/api", "pages/api", "src/pages/api")
ROUTE_FILES = {"route.ts", "route.js"}

_ROUTE_PREFIXES = ("src/app/", "src/pages/", "app/", "pages/")
_ROUTE_SUFFIX = re.compile(r"/(?:route|index)\.[jt]sx?$")
_EXTENSION = re.compile(r"\.[jt]sx?$")
_ROUTE_GROUP = re.compile(r"/\([^/)]*\)")


def extract_endpoint(rel_path: str) -> str:
    """``app/api/users/[id]/route.ts`` -> ``/api/users/[id]``."""
    path = rel_path
    for prefix in _ROUTE_PREFIXES:
        if path.startswith(prefix):
            path = path[len(prefix):]
            break
    path = _EXTENSION.sub("", _ROUTE_SUFFIX.sub("", "/" + path))
    path = _ROUTE_GROUP.sub("", path).rstrip("/") or "/"
    if not path.startswith("/api"):
        path = "/api" + (path if path != "/" else "")
    return path


def resource_of(endpoint: str) -> str:
    segments = [s for s in endpoint.split("/") if s and s != "api"]
    return segments[0] if segments else "root"


def group_workflows(
    operations: List[CRUDOperation],
    handlers: List[NamedHandler],
    call_graph: List[CallGraphEdge],
) -> List[Workflow]:
    """Cluster operations by resource, then leftover handlers by category.

    A handler joins the first resource whose name appears in its file
    path.  Unattached handlers are grouped by workflow category; a
    category needs at least two handlers to become a workflow.
    """
    by_resource: Dict[str, List[CRUDOperation]] = {}
    for op in operations:
        by_resource.setdefault(resource_of(op.endpoint), []).append(op)

    workflows: List[Workflow] = []
    attached: Set[int] = set()
    for resource, ops in by_resource.items():
        needle = resource.lower()
        matched = []
        for index, handler in enumerate(handlers):
            if index not in attached and needle in handler.file_path.lower():
                attached.add(index)
                matched.append(handler)
        kind = dominant_workflow_type(h.kind for h in matched) if matched else "crud"
        workflows.append(Workflow(
            name=resource_to_workflow_name(resource),
            kind=kind,
            operations=ops,
            handlers=matched,
            call_sequence=build_call_sequence(matched, call_graph),
        ))

    by_kind: Dict[str, List[NamedHandler]] = {}
    for index, handler in enumerate(handlers):
        if index in attached or handler.kind == "unknown":
            continue
        by_kind.setdefault(handler.kind, []).append(handler)

    for kind, group in by_kind.items():
        if len(group) < 2:
            logger.debug("Dropping single-handler %s group (%s)", kind, group[0].name)
            continue
        workflows.append(Workflow(
            name=type_to_workflow_name(kind),
            kind=kind,
            handlers=group,
            call_sequence=build_call_sequence(group, call_graph),
        ))
    return workflows


class WorkflowEngine(ExtractionEngine):
    kind = "workflow"

    def collect_operations(self) -> List[CRUDOperation]:
        operations: List[CRUDOperation] = []
        for api_dir in API_DIRECTORIES:
            if not is_directory(self.workspace / api_dir):
                continue
            for entry in self.walk(start=api_dir):
                if entry.is_dir or entry.name not in ROUTE_FILES:
                    continue
                source = self.parse(entry.rel_path)
                if source is None:
                    continue
                self.count_file(entry.rel_path)
                exports = set(analyze_imports(source, self.options.alias_prefixes).exports)
                endpoint = extract_endpoint(entry.rel_path)
                for method in HTTP_METHODS:
                    if method in exports:
                        operations.append(CRUDOperation(
                            method=method,
                            operation=METHOD_TO_OPERATION[method],
                            endpoint=endpoint,
                            file_path=entry.rel_path,
                            handler_name=method,
                        ))
        return operations

    def collect_handlers(self) -> Tuple[List[NamedHandler], List[CallGraphEdge]]:
        handlers: List[NamedHandler] = []
        edges: List[CallGraphEdge] = []
        for entry in self.walk():
            if entry.is_dir or entry.suffix not in CODE_EXTENSIONS:
                continue
            source = self.parse(entry.rel_path)
            if source is None:
                continue
            self.count_file(entry.rel_path)
            functions = collect_functions(source)
            handlers.extend(extract_handlers(source, functions))
            edges.extend(extract_call_edges(source, functions))
        return handlers, edges

    def build_model(self) -> WorkflowModel:
        operations = self.collect_operations()
        handlers, call_graph = self.collect_handlers()
        return WorkflowModel(
            workflows=group_workflows(operations, handlers, call_graph),
            operations=operations,
            handlers=handlers,
            call_graph=call_graph,
        )

    def generate(self) -> str:
        return self.dump(self.build_model())
