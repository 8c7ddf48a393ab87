"""Tests for dependency manifest parsers and the Prisma schema parser."""

import json
from pathlib import Path

from contextscan.manifests import (
    merge_manifests,
    parse_all_manifests,
    parse_cargo_toml,
    parse_go_mod,
    parse_package_json,
    parse_pyproject_toml,
    parse_requirements_txt,
)
from contextscan.models import ManifestInfo
from contextscan.schema_parser import find_schema_file, parse_prisma_schema


class TestPackageJson:
    """Tests for package.json parsing."""

    def test_parses_sample_workspace(self, sample_workspace: Path):
        info = parse_package_json(sample_workspace)
        assert info.name == "sample-shop"
        assert info.version == "0.1.0"
        assert "next" in info.dependencies
        assert info.dev_dependencies == ["typescript", "prisma", "@types/react"]

    def test_missing_file_returns_none(self, temp_dir: Path):
        assert parse_package_json(temp_dir) is None

    def test_invalid_json_returns_none(self, temp_dir: Path):
        """Test that a malformed manifest is absent rather than an error."""
        (temp_dir / "package.json").write_text("{ not json")
        assert parse_package_json(temp_dir) is None

    def test_non_object_json_returns_none(self, temp_dir: Path):
        (temp_dir / "package.json").write_text("[1, 2]")
        assert parse_package_json(temp_dir) is None


class TestOtherEcosystems:
    """Tests for pip, Go, Cargo and pyproject manifests."""

    def test_requirements_txt(self, temp_dir: Path):
        (temp_dir / "requirements.txt").write_text(
            "# web\nflask>=2.0\nrequests[socks]==2.31\n-r base.txt\nnumpy ; python_version > '3.8'\n"
        )
        (temp_dir / "requirements-dev.txt").write_text("pytest\n")
        info = parse_requirements_txt(temp_dir)
        assert info.dependencies == ["flask", "requests", "numpy"]
        assert info.dev_dependencies == ["pytest"]

    def test_go_mod(self, temp_dir: Path):
        (temp_dir / "go.mod").write_text(
            "module github.com/acme/shop\n\ngo 1.21\n\n"
            "require (\n\tgithub.com/gin-gonic/gin v1.9.1\n\t// indirect comment\n"
            "\tgolang.org/x/sync v0.5.0\n)\n\nrequire github.com/lib/pq v1.10.9\n"
        )
        info = parse_go_mod(temp_dir)
        assert info.name == "github.com/acme/shop"
        assert info.dependencies == [
            "github.com/gin-gonic/gin",
            "golang.org/x/sync",
            "github.com/lib/pq",
        ]

    def test_cargo_toml(self, temp_dir: Path):
        (temp_dir / "Cargo.toml").write_text(
            '[package]\nname = "shop"\nversion = "0.2.0"\n\n'
            '[dependencies]\naxum = "0.7"\ntokio = { version = "1", features = ["full"] }\n\n'
            '[dev-dependencies]\ninsta = "1"\n'
        )
        info = parse_cargo_toml(temp_dir)
        assert info.name == "shop"
        assert info.dependencies == ["axum", "tokio"]
        assert info.dev_dependencies == ["insta"]

    def test_pyproject_pep621(self, temp_dir: Path):
        (temp_dir / "pyproject.toml").write_text(
            '[project]\nname = "svc"\nversion = "1.0"\n'
            'dependencies = ["fastapi>=0.100", "sqlalchemy"]\n\n'
            '[project.optional-dependencies]\ntest = ["pytest"]\n'
        )
        info = parse_pyproject_toml(temp_dir)
        assert info.name == "svc"
        assert info.dependencies == ["fastapi", "sqlalchemy"]
        assert info.dev_dependencies == ["pytest"]

    def test_pyproject_poetry(self, temp_dir: Path):
        (temp_dir / "pyproject.toml").write_text(
            '[tool.poetry]\nname = "legacy"\nversion = "0.3.0"\n\n'
            '[tool.poetry.dependencies]\npython = "^3.10"\ndjango = "^4.2"\n\n'
            '[tool.poetry.group.dev.dependencies]\nblack = "*"\n'
        )
        info = parse_pyproject_toml(temp_dir)
        assert info.name == "legacy"
        assert info.dependencies == ["django"]
        assert info.dev_dependencies == ["black"]

    def test_invalid_toml_returns_none(self, temp_dir: Path):
        (temp_dir / "Cargo.toml").write_text("[package\nname=")
        assert parse_cargo_toml(temp_dir) is None


class TestAggregate:
    """Tests for merging manifests."""

    def test_merge_dedupes_and_prefers_first_metadata(self):
        merged = merge_manifests([
            None,
            ManifestInfo(dependencies=["a", "b"], name="first"),
            ManifestInfo(dependencies=["b", "c"], name="second", version="2.0"),
        ])
        assert merged.dependencies == ["a", "b", "c"]
        assert merged.name == "first"
        assert merged.version == "2.0"

    def test_parse_all_manifests(self, temp_dir: Path):
        (temp_dir / "package.json").write_text(json.dumps({"dependencies": {"express": "4"}}))
        (temp_dir / "requirements.txt").write_text("flask\n")
        info = parse_all_manifests(temp_dir)
        assert info.dependencies == ["express", "flask"]
        assert info.name is None

    def test_empty_workspace(self, temp_dir: Path):
        info = parse_all_manifests(temp_dir)
        assert info.dependencies == []
        assert info.dev_dependencies == []


class TestPrismaSchema:
    """Tests for the block-based Prisma parser."""

    def test_find_schema_file(self, sample_workspace: Path, temp_dir: Path):
        assert find_schema_file(sample_workspace) == sample_workspace / "prisma" / "schema.prisma"
        assert find_schema_file(temp_dir) is None

    def test_models_and_enums(self, sample_workspace: Path):
        text = (sample_workspace / "prisma" / "schema.prisma").read_text()
        entities, enums = parse_prisma_schema(text, "prisma/schema.prisma")

        assert [e.name for e in entities] == ["User", "Post", "Tag", "Profile"]
        assert all(e.source_kind == "schema" for e in entities)
        assert [(e.name, e.values) for e in enums] == [("Role", ["USER", "ADMIN"])]

        user = {f.name: f for f in entities[0].fields}
        assert user["email"].type == "string"
        assert not user["email"].is_relation
        assert user["posts"].is_array and user["posts"].is_relation
        assert user["profile"].optional and user["profile"].type == "Profile"

    def test_relation_directive_and_scalar_mapping(self):
        text = """
        model Order {
          id        Int      @id
          placedAt  DateTime
          total     Decimal
          meta      Json?
          buyer     Account  @relation(fields: [buyerId], references: [id])
          buyerId   Int
          @@index([buyerId])
        }
        """
        entities, _ = parse_prisma_schema(text)
        fields = {f.name: f for f in entities[0].fields}
        assert fields["placedAt"].type == "Date"
        assert fields["total"].type == "number"
        assert fields["meta"].type == "object" and fields["meta"].optional
        assert fields["buyer"].is_relation
        assert not fields["buyerId"].is_relation
        assert "@@index" not in fields

    def test_nested_braces_are_balanced(self):
        text = 'model Doc {\n  id Int @id\n  body Json @default("{}")\n}\nenum Kind {\n  A\n}\n'
        entities, enums = parse_prisma_schema(text)
        assert [f.name for f in entities[0].fields] == ["id", "body"]
        assert enums[0].values == ["A"]
