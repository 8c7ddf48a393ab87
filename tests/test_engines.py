"""Tests for the five extraction engines against the sample workspace."""

import json
from collections import Counter
from pathlib import Path

import pytest

from contextscan.architecture_engine import ArchitectureEngine
from contextscan.data_model_engine import DataModelEngine, derive_relationships
from contextscan.directory_engine import DirectoryStructureEngine, format_size
from contextscan.engine_base import EngineState
from contextscan.models import EntityDefinition, FieldDefinition
from contextscan.summary_engine import (
    CodebaseSummaryEngine,
    clean_readme,
    detect_apis,
    detect_frameworks,
    language_percentages,
)
from contextscan.workflow_engine import WorkflowEngine, extract_endpoint, group_workflows


def _run_json(engine_cls, workspace: Path):
    engine = engine_cls(workspace)
    result = engine.run()
    assert engine.state == EngineState.SUCCEEDED
    return result, json.loads(result.content)


def _entity(name: str, *fields) -> EntityDefinition:
    return EntityDefinition(name, list(fields), "interface")


def _relation(name: str, target: str, is_array: bool = False) -> FieldDefinition:
    return FieldDefinition(name, target, is_array=is_array, is_relation=True)


class TestDirectoryEngine:
    """Tests for the directory tree artifact."""

    def test_renders_tree(self, sample_workspace: Path):
        result = DirectoryStructureEngine(sample_workspace).run()

        assert result.kind == "directory"
        assert result.content.startswith("# Directory Structure")
        assert "├── app/" in result.content
        assert "keep.log" in result.content
        assert "debug.log" not in result.content
        assert "secret" not in result.content
        assert "**Total:** 17 files" in result.content
        assert result.file_count == 17

    def test_directories_listed_before_files(self, temp_dir: Path):
        (temp_dir / "zeta").mkdir()
        (temp_dir / "zeta" / "a.ts").write_text("x")
        (temp_dir / "alpha.ts").write_text("x")
        content = DirectoryStructureEngine(temp_dir).run().content
        assert content.index("zeta/") < content.index("alpha.ts")

    def test_format_size(self):
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"


class TestSummaryEngine:
    """Tests for the codebase summary artifact."""

    def test_sample_workspace_summary(self, sample_workspace: Path):
        result, summary = _run_json(CodebaseSummaryEngine, sample_workspace)

        assert summary["name"] == "sample-shop"
        assert summary["primaryLanguage"] == "TypeScript"
        assert summary["languages"] == {"TypeScript": 91, "JavaScript": 9}
        assert summary["frameworks"] == ["Next.js", "React", "Prisma"]
        assert summary["apis"] == ["Stripe"]
        assert summary["buildTools"] == ["Next.js", "TypeScript"]
        assert summary["dependencyCount"] == 8
        assert summary["purpose"].startswith("A tiny storefront built with Next.js for testing.")
        assert result.error_count == 0

    def test_dependency_count_is_union_size(self, temp_dir: Path):
        (temp_dir / "package.json").write_text(json.dumps({
            "dependencies": {"react": "18"},
            "devDependencies": {"react": "18", "vitest": "1"},
        }))
        _, summary = _run_json(CodebaseSummaryEngine, temp_dir)
        assert summary["dependencyCount"] == 2

    def test_empty_workspace(self, temp_dir: Path):
        """Test that a workspace without code yields an empty language map."""
        _, summary = _run_json(CodebaseSummaryEngine, temp_dir)
        assert summary["languages"] == {}
        assert summary["primaryLanguage"] == "Unknown"
        assert summary["name"] == temp_dir.name

    def test_language_percentages(self):
        assert language_percentages(Counter()) == {}
        assert language_percentages(Counter({"Go": 1, "Rust": 1, "C": 1})) == {"Go": 33, "Rust": 33, "C": 33}
        assert list(language_percentages(Counter({"A": 1, "B": 3}))) == ["B", "A"]

    def test_detection_tables(self):
        assert detect_frameworks(["@remix-run/node", "express"]) == ["Remix", "Express"]
        assert detect_apis(["@anthropic-ai/sdk", "openai", "firebase-admin"]) == [
            "Anthropic", "OpenAI", "Firebase",
        ]
        assert detect_frameworks(["nextjs-helper"]) == []

    def test_clean_readme(self):
        text = "# Title\n\nUse `x` and **bold** and [docs](http://d).\n\n```\ncode\n```\n"
        assert clean_readme(text) == "Use  and bold and docs."
        assert len(clean_readme("a" * 2000)) == 500


class TestDataModelEngine:
    """Tests for the data model artifact."""

    def test_schema_overrides_code_entities(self, sample_workspace: Path):
        result, model = _run_json(DataModelEngine, sample_workspace)
        entities = {e["name"]: e for e in model["entities"]}

        assert set(entities) == {"User", "Cart", "CartItem", "Address", "Post", "Tag", "Profile"}
        assert entities["User"]["sourceKind"] == "schema"
        assert entities["Cart"]["sourceKind"] == "interface"
        assert "Hidden" not in entities
        assert {e["name"] for e in model["enums"]} == {"OrderStatus", "Role"}
        assert result.file_count == 2

    def test_relationships(self, sample_workspace: Path):
        _, model = _run_json(DataModelEngine, sample_workspace)
        kinds = {(r["source"], r["sourceField"]): r["kind"] for r in model["relationships"]}

        assert kinds[("User", "posts")] == "one-to-many"
        assert kinds[("User", "profile")] == "one-to-one"
        assert kinds[("Post", "author")] == "many-to-one"
        assert kinds[("Post", "tags")] == "many-to-many"
        assert kinds[("Cart", "items")] == "one-to-many"
        assert kinds[("CartItem", "cart")] == "many-to-one"
        assert ("User", "role") not in kinds

    def test_relationship_symmetry(self):
        """Test that cardinality depends on the reciprocal field."""
        both = derive_relationships([
            _entity("A", _relation("b", "B", is_array=True)),
            _entity("B", _relation("a", "A", is_array=True)),
        ])
        assert both[0].kind == "many-to-many"

        one_sided = derive_relationships([
            _entity("A", _relation("b", "B", is_array=True)),
            _entity("B", FieldDefinition("id", "number")),
        ])
        assert [r.kind for r in one_sided] == ["one-to-many"]

    def test_any_matching_back_field_decides(self):
        """Test that an array back-field wins even when a scalar one comes first."""
        rels = derive_relationships([
            _entity("User", _relation("posts", "Post", is_array=True)),
            _entity("Post", _relation("author", "User"), _relation("likedBy", "User", is_array=True)),
        ])
        kinds = {r.source_field: r.kind for r in rels}
        assert kinds == {"posts": "many-to-many", "author": "many-to-one", "likedBy": "many-to-many"}

    def test_self_reference_without_back_field(self):
        rels = derive_relationships([_entity("Node", _relation("parent", "Node"))])
        assert rels[0].kind == "many-to-one"


class TestArchitectureEngine:
    """Tests for the architecture artifact."""

    def test_layers_entry_points_and_imports(self, sample_workspace: Path):
        result, model = _run_json(ArchitectureEngine, sample_workspace)

        layers = {layer["layer"]: layer for layer in model["layers"]}
        assert [layer["layer"] for layer in model["layers"]] == [
            "presentation", "api", "data", "infrastructure",
        ]
        assert layers["api"]["directories"][0] == "app/api"
        assert layers["infrastructure"]["fileCount"] == 4

        entry_points = {(e["kind"], e["name"]) for e in model["entryPoints"]}
        assert ("api-route", "/api/users") in entry_points
        assert ("api-route", "/api/users/[id]") in entry_points
        assert ("page", "/") in entry_points
        assert ("page", "/dashboard") in entry_points

        assert model["externalDependencies"] == ["next", "path", "react", "stripe"]
        edges = {(e["from"], e["to"], e["kind"]) for e in model["dependencyGraph"]}
        assert ("app/api/users/route.ts", "@/lib/users", "alias") in edges
        assert ("app/api/checkout/route.ts", "../../../lib/payments", "relative") in edges
        assert result.error_count == 0


class TestWorkflowEngine:
    """Tests for the workflow artifact."""

    def test_extract_endpoint(self):
        assert extract_endpoint("app/api/users/[id]/route.ts") == "/api/users/[id]"
        assert extract_endpoint("src/app/api/(admin)/stats/route.ts") == "/api/stats"
        assert extract_endpoint("pages/api/orders/index.ts") == "/api/orders"

    def test_operations(self, sample_workspace: Path):
        _, model = _run_json(WorkflowEngine, sample_workspace)
        operations = {(o["method"], o["endpoint"]): o["operation"] for o in model["operations"]}
        assert operations == {
            ("POST", "/api/checkout"): "create",
            ("PUT", "/api/users/[id]"): "update",
            ("DELETE", "/api/users/[id]"): "delete",
            ("GET", "/api/users"): "read",
            ("POST", "/api/users"): "create",
        }

    def test_workflow_grouping(self, sample_workspace: Path):
        _, model = _run_json(WorkflowEngine, sample_workspace)
        workflows = {w["name"]: w for w in model["workflows"]}

        assert list(workflows) == [
            "Checkout Flow", "User Management", "Authentication", "Payment Processing",
        ]
        users = workflows["User Management"]
        assert users["kind"] == "crud"
        assert users["callSequence"] == [
            "listUsers", "fetchUsers", "createUser", "validateUser", "saveUser",
            "PUT", "DELETE", "GET", "POST",
        ]
        assert [h["name"] for h in workflows["Authentication"]["handlers"]] == ["login", "logout"]
        assert workflows["Payment Processing"]["callSequence"] == ["chargeCustomer", "refundOrder"]

    def test_call_graph_is_intra_file(self, sample_workspace: Path):
        _, model = _run_json(WorkflowEngine, sample_workspace)
        edges = {(e["caller"], e["callee"]) for e in model["callGraph"]}
        assert ("createUser", "validateUser") in edges
        assert ("chargeCustomer", "createInvoice") in edges
        assert ("GET", "listUsers") not in edges

    def test_singleton_category_is_dropped(self):
        from contextscan.models import NamedHandler

        handlers = [
            NamedHandler("sendEmail", "lib/mail.ts", "notification", 1, True),
            NamedHandler("login", "lib/auth.ts", "authentication", 1, True),
            NamedHandler("logout", "lib/auth.ts", "authentication", 5, True),
        ]
        workflows = group_workflows([], handlers, [])
        assert [w.name for w in workflows] == ["Authentication"]

    def test_unparsable_file_counts_once(self, temp_dir: Path, monkeypatch):
        """Test that a file failing in both passes is one error, not two."""
        route = temp_dir / "app" / "api" / "items"
        route.mkdir(parents=True)
        (route / "route.ts").write_text("export async function GET() {}\n")
        monkeypatch.setattr("contextscan.parser.ParseSession.get", lambda self, rel: None)

        result = WorkflowEngine(temp_dir).run()
        assert result.error_count == 1
        assert result.file_count == 0
