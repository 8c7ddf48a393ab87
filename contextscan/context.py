"""Plain-text projections of stored artifacts for chat assistants."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .models import (
    DOC_ARTIFACT_KINDS,
    RequirementsDocument,
    ResearchSession,
    StoredArtifact,
    Task,
)
from .storage import ArtifactStore

logger = logging.getLogger(__name__)

# Order in which artifact kinds appear in the assembled context.
CONTEXT_KINDS = ["summary", "architecture", "dataModel", "workflow"]
SECTION_SEPARATOR = "\n\n---\n\n"


def _names(items: Any, key: str, limit: int = 10) -> str:
    if not isinstance(items, list) or not items:
        return "None detected"
    names = [str(item.get(key, "?")) if isinstance(item, dict) else str(item) for item in items]
    more = f" (+{len(names) - limit} more)" if len(names) > limit else ""
    return ", ".join(names[:limit]) + more


def _count(items: Any) -> int:
    return len(items) if isinstance(items, list) else 0


def summarize_artifact(artifact: StoredArtifact) -> str:
    """Brief markdown summary of a structured (JSON) artifact."""
    try:
        data: Dict[str, Any] = json.loads(artifact.content)
    except json.JSONDecodeError:
        return f"## {artifact.kind}\n(Artifact content available)"
    if not isinstance(data, dict):
        return f"## {artifact.kind}\n(Artifact content available)"

    if artifact.kind == "summary":
        frameworks = data.get("frameworks") or []
        return "\n".join([
            "## Codebase Summary",
            f"- **Project**: {data.get('name') or 'Unknown'}",
            f"- **Primary Language**: {data.get('primaryLanguage') or 'Unknown'}",
            f"- **Frameworks**: {', '.join(frameworks) if frameworks else 'None detected'}",
            f"- **Dependencies**: {data.get('dependencyCount', 0)} packages",
        ])
    if artifact.kind == "architecture":
        return "\n".join([
            "## Architecture",
            f"- **Layers**: {_names(data.get('layers'), 'layer')}",
            f"- **Entry Points**: {_count(data.get('entryPoints'))}",
            f"- **External Dependencies**: {_count(data.get('externalDependencies'))}",
        ])
    if artifact.kind == "dataModel":
        return "\n".join([
            "## Data Model",
            f"- **Entities**: {_names(data.get('entities'), 'name')}",
            f"- **Enums**: {_count(data.get('enums'))}",
            f"- **Relationships**: {_count(data.get('relationships'))}",
        ])
    if artifact.kind == "workflow":
        return "\n".join([
            "## Workflows",
            f"- **Workflows**: {_names(data.get('workflows'), 'name')}",
            f"- **API Operations**: {_count(data.get('operations'))}",
            f"- **Handlers**: {_count(data.get('handlers'))}",
        ])
    return f"## {artifact.kind}\n(Artifact content available)"


def format_codebase_context(store: ArtifactStore) -> Optional[str]:
    """Assemble stored artifacts into one context string.

    Generated documentation is preferred over the structured artifact of
    the same kind.  Incomplete artifacts are skipped.

    Returns:
        The joined sections, or None when nothing usable is stored.
    """
    sections: List[str] = []
    for kind in CONTEXT_KINDS:
        doc = store.load_artifact(DOC_ARTIFACT_KINDS[kind])
        if doc is not None and not doc.incomplete:
            sections.append(doc.content.strip())
            continue
        artifact = store.load_artifact(kind)
        if artifact is not None and not artifact.incomplete:
            sections.append(summarize_artifact(artifact))

    if not sections:
        logger.info("No usable artifacts for codebase context in %s", store.workspace_root)
        return None
    logger.debug("Formatted codebase context from %d artifacts", len(sections))
    return SECTION_SEPARATOR.join(sections)


def format_requirements_context(document: Optional[RequirementsDocument]) -> str:
    if document is None or not document.requirements.strip():
        return ""
    return f"## Requirements\n{document.requirements.strip()}"


def format_task_context(task: Task, codebase_summary: str = "") -> str:
    """Markdown prompt describing one task for a coding assistant."""
    lines: List[str] = []
    if codebase_summary:
        lines += ["## Codebase Context", codebase_summary, ""]

    lines += ["## Current Task", f"**{task.title}**"]
    if task.description:
        lines.append(task.description)
    lines.append("")

    if task.subtasks:
        lines.append("## Subtasks")
        lines += [f"- [{'x' if s.completed else ' '}] {s.title}" for s in task.subtasks]
        lines.append("")

    if task.acceptance_criteria:
        lines.append("## Acceptance Criteria")
        lines += [f"- {criterion}" for criterion in task.acceptance_criteria]
        lines.append("")

    lines.append("Help me implement this task.")
    return "\n".join(lines)


def format_tasks_context(tasks: List[Task]) -> str:
    if not tasks:
        return ""
    lines = ["## Tasks"]
    for task in tasks:
        done = sum(1 for s in task.subtasks if s.completed)
        progress = f" ({done}/{len(task.subtasks)} subtasks)" if task.subtasks else ""
        lines.append(f"- [{'x' if task.completed else ' '}] {task.title}{progress}")
    return "\n".join(lines)


def format_research_context(session: ResearchSession) -> str:
    """Research summary plus its high and medium relevance findings."""
    findings = "\n".join(
        f"- **{f.title}** ({f.category}): {f.content}"
        for f in session.findings
        if f.relevance in ("high", "medium")
    )
    return f"## Research Summary\n{session.summary}\n\n## Key Findings\n{findings}"
