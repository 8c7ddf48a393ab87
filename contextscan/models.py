"""Data models shared by the engines, the orchestrator and the store."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

CoreArtifactKind = Literal["directory", "summary", "dataModel", "architecture", "workflow"]
DocArtifactKind = Literal["summary-docs", "dataModel-docs", "architecture-docs", "workflow-docs"]

CORE_ARTIFACT_KINDS: List[str] = ["directory", "summary", "dataModel", "architecture", "workflow"]
DOC_ARTIFACT_KINDS: Dict[str, str] = {
    "summary": "summary-docs",
    "dataModel": "dataModel-docs",
    "architecture": "architecture-docs",
    "workflow": "workflow-docs",
}
ALL_ARTIFACT_KINDS: List[str] = CORE_ARTIFACT_KINDS + list(DOC_ARTIFACT_KINDS.values())

EntitySource = Literal["interface", "schema"]
RelationshipKind = Literal["one-to-one", "one-to-many", "many-to-one", "many-to-many"]
LayerKind = Literal["presentation", "api", "business", "data", "infrastructure"]
EntryPointKind = Literal["main", "api-route", "page", "worker", "cli"]
ImportKind = Literal["relative", "alias", "external"]
CrudKind = Literal["create", "read", "update", "delete"]
WorkflowType = Literal[
    "authentication", "payment", "notification", "data-sync", "validation", "crud", "unknown",
]
FindingCategory = Literal["concept", "best_practice", "pitfall", "edge_case", "technical"]
FindingRelevance = Literal["high", "medium", "low"]


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return format_utc(datetime.now(timezone.utc))


def format_utc(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_utc(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when it is malformed."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_dict(value: Any) -> Any:
    """Convert dataclasses (recursively) into camelCase JSON-ready values.

    ``None`` attributes are dropped.  Dictionary keys are kept as-is so
    maps keyed by paths or language names survive untouched.
    """
    if is_dataclass(value) and not isinstance(value, type):
        out: Dict[str, Any] = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if item is None:
                continue
            out[camel_case(f.name)] = to_dict(item)
        return out
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]
    if isinstance(value, dict):
        return {k: to_dict(v) for k, v in value.items()}
    if isinstance(value, datetime):
        return format_utc(value)
    return value


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

@dataclass
class ArtifactResult:
    """Transient output of a single engine run."""
    kind: str
    content: str
    generated_at_utc: str
    file_count: int = 0
    error_count: int = 0
    incomplete: bool = False


@dataclass
class ArtifactMetadata:
    generated_at_utc: str
    file_count: int
    error_count: int
    version: int
    incomplete: Optional[bool] = None

    def __post_init__(self):
        if self.version < 1:
            raise ValueError("Artifact version must be >= 1")


@dataclass
class StoredArtifact:
    """An artifact as persisted under the workspace control directory."""
    id: str
    kind: str
    workspace_path: str
    content: str
    metadata: ArtifactMetadata

    @property
    def incomplete(self) -> bool:
        return bool(self.metadata.incomplete)

    def to_dict(self) -> Dict[str, Any]:
        return to_dict(self)


# ---------------------------------------------------------------------------
# Data model artifact
# ---------------------------------------------------------------------------

@dataclass
class FieldDefinition:
    name: str
    type: str
    optional: bool = False
    is_array: bool = False
    is_relation: bool = False


@dataclass
class EntityDefinition:
    name: str
    fields: List[FieldDefinition]
    source_kind: EntitySource
    file_path: Optional[str] = None


@dataclass
class EnumDefinition:
    name: str
    values: List[str]
    source_kind: EntitySource
    file_path: Optional[str] = None


@dataclass
class Relationship:
    source: str
    target: str
    kind: RelationshipKind
    source_field: str


@dataclass
class DataModel:
    entities: List[EntityDefinition] = field(default_factory=list)
    enums: List[EnumDefinition] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Architecture artifact
# ---------------------------------------------------------------------------

@dataclass
class LayerInfo:
    layer: LayerKind
    directories: List[str] = field(default_factory=list)
    file_count: int = 0


@dataclass
class EntryPoint:
    file_path: str
    kind: EntryPointKind
    name: str


@dataclass
class DependencyEdge:
    from_: str
    to: str
    kind: ImportKind


@dataclass
class ArchitectureModel:
    layers: List[LayerInfo] = field(default_factory=list)
    entry_points: List[EntryPoint] = field(default_factory=list)
    dependency_graph: List[DependencyEdge] = field(default_factory=list)
    external_dependencies: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Workflow artifact
# ---------------------------------------------------------------------------

@dataclass
class CRUDOperation:
    method: str
    operation: CrudKind
    endpoint: str
    file_path: str
    handler_name: Optional[str] = None


@dataclass
class NamedHandler:
    name: str
    file_path: str
    kind: WorkflowType
    line_number: int
    is_exported: bool


@dataclass
class CallGraphEdge:
    caller: str
    callee: str
    file_path: str
    line_number: int


@dataclass
class Workflow:
    name: str
    kind: WorkflowType
    operations: List[CRUDOperation] = field(default_factory=list)
    handlers: List[NamedHandler] = field(default_factory=list)
    call_sequence: List[str] = field(default_factory=list)


@dataclass
class WorkflowModel:
    workflows: List[Workflow] = field(default_factory=list)
    operations: List[CRUDOperation] = field(default_factory=list)
    handlers: List[NamedHandler] = field(default_factory=list)
    call_graph: List[CallGraphEdge] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Directory + summary artifacts
# ---------------------------------------------------------------------------

@dataclass
class DirectoryNode:
    name: str
    path: str
    is_directory: bool
    size: int = 0
    file_count: int = 0
    children: List["DirectoryNode"] = field(default_factory=list)


@dataclass
class ManifestInfo:
    """Dependency information pulled from one or more manifest files."""
    dependencies: List[str] = field(default_factory=list)
    dev_dependencies: List[str] = field(default_factory=list)
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None


@dataclass
class CodebaseSummary:
    name: str
    primary_language: str
    languages: Dict[str, int] = field(default_factory=dict)
    frameworks: List[str] = field(default_factory=list)
    apis: List[str] = field(default_factory=list)
    build_tools: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    dev_dependencies: List[str] = field(default_factory=list)
    dependency_count: int = 0
    version: Optional[str] = None
    description: Optional[str] = None
    purpose: Optional[str] = None


# ---------------------------------------------------------------------------
# Scan bookkeeping
# ---------------------------------------------------------------------------

@dataclass
class ScanMetadata:
    timestamp: str
    file_hashes: Dict[str, str]
    file_count: int


@dataclass
class ScanError:
    stage: str
    message: str


@dataclass
class ScanResult:
    artifacts: Dict[str, ArtifactResult] = field(default_factory=dict)
    duration_ms: int = 0
    errors: List[ScanError] = field(default_factory=list)
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Planning documents
# ---------------------------------------------------------------------------

@dataclass
class Subtask:
    id: str
    title: str
    completed: bool = False


@dataclass
class Task:
    id: str
    title: str
    description: str
    completed: bool = False
    subtasks: List[Subtask] = field(default_factory=list)
    acceptance_criteria: List[str] = field(default_factory=list)


@dataclass
class RequirementsDocument:
    requirements: str
    updated_at_utc: str


@dataclass
class ResearchFinding:
    id: str
    title: str
    content: str
    category: FindingCategory
    relevance: FindingRelevance
    source: Optional[str] = None


@dataclass
class ResearchSession:
    id: str
    query: str
    findings: List[ResearchFinding]
    summary: str
    suggested_questions: List[str]
    timestamp: datetime
