"""Tests for the plain-text context formatters."""

import json
from datetime import datetime, timezone

from contextscan.context import (
    SECTION_SEPARATOR,
    format_codebase_context,
    format_requirements_context,
    format_research_context,
    format_task_context,
    format_tasks_context,
)
from contextscan.models import (
    ArtifactResult,
    RequirementsDocument,
    ResearchFinding,
    ResearchSession,
    Subtask,
    Task,
)
from contextscan.storage import ArtifactStore


def _store(store: ArtifactStore, kind: str, content, incomplete: bool = False) -> None:
    if not isinstance(content, str):
        content = json.dumps(content)
    store.store_artifact(kind, ArtifactResult(kind, content, "2024-05-01T12:00:00.000Z", 1, 0, incomplete))


class TestCodebaseContext:
    """Tests for format_codebase_context."""

    def test_empty_store(self, store: ArtifactStore):
        assert format_codebase_context(store) is None

    def test_summaries_in_fixed_order(self, store: ArtifactStore):
        _store(store, "workflow", {"workflows": [{"name": "Checkout Flow"}], "operations": [], "handlers": []})
        _store(store, "summary", {
            "name": "sample-shop", "primaryLanguage": "TypeScript",
            "frameworks": ["Next.js"], "dependencyCount": 8,
        })
        text = format_codebase_context(store)

        sections = text.split(SECTION_SEPARATOR)
        assert sections[0].startswith("## Codebase Summary")
        assert "- **Project**: sample-shop" in sections[0]
        assert "- **Frameworks**: Next.js" in sections[0]
        assert sections[1] == "\n".join([
            "## Workflows",
            "- **Workflows**: Checkout Flow",
            "- **API Operations**: 0",
            "- **Handlers**: 0",
        ])

    def test_docs_preferred_and_incomplete_skipped(self, store: ArtifactStore):
        _store(store, "summary", {"name": "x"})
        _store(store, "summary-docs", "# Overview\nA shop.\n")
        _store(store, "dataModel", {"entities": []}, incomplete=True)
        _store(store, "architecture-docs", "# Failed", incomplete=True)
        _store(store, "architecture", {"layers": [{"layer": "api"}], "entryPoints": [{}], "externalDependencies": []})

        sections = format_codebase_context(store).split(SECTION_SEPARATOR)
        assert sections[0] == "# Overview\nA shop."
        assert sections[1].startswith("## Architecture\n- **Layers**: api")
        assert len(sections) == 2

    def test_unstructured_content(self, store: ArtifactStore):
        _store(store, "summary", "not json")
        assert format_codebase_context(store) == "## summary\n(Artifact content available)"


class TestTaskContext:
    """Tests for requirement and task formatting."""

    TASK = Task(
        "t1", "Add cart", "Persist the cart.",
        subtasks=[Subtask("s1", "Schema", True), Subtask("s2", "API")],
        acceptance_criteria=["Cart survives reload"],
    )

    def test_format_task_context(self):
        text = format_task_context(self.TASK, "Next.js shop")
        assert text.startswith("## Codebase Context\nNext.js shop\n\n## Current Task\n**Add cart**")
        assert "- [x] Schema\n- [ ] API" in text
        assert "## Acceptance Criteria\n- Cart survives reload" in text
        assert text.endswith("Help me implement this task.")

    def test_minimal_task(self):
        assert format_task_context(Task("t", "Fix", "")) == "## Current Task\n**Fix**\n\nHelp me implement this task."

    def test_tasks_and_requirements(self):
        assert format_tasks_context([self.TASK]) == "## Tasks\n- [ ] Add cart (1/2 subtasks)"
        assert format_tasks_context([]) == ""
        assert format_requirements_context(RequirementsDocument("  Users can pay.  ", "t")) == (
            "## Requirements\nUsers can pay."
        )
        assert format_requirements_context(None) == ""


def test_research_context_keeps_relevant_findings():
    session = ResearchSession(
        id="r1",
        query="payments",
        findings=[
            ResearchFinding("f1", "Idempotency", "Use keys", "best_practice", "high"),
            ResearchFinding("f2", "Trivia", "History", "concept", "low"),
            ResearchFinding("f3", "Webhooks", "Verify signatures", "pitfall", "medium"),
        ],
        summary="Stripe basics",
        suggested_questions=[],
        timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )
    assert format_research_context(session) == (
        "## Research Summary\nStripe basics\n\n## Key Findings\n"
        "- **Idempotency** (best_practice): Use keys\n"
        "- **Webhooks** (pitfall): Verify signatures"
    )
