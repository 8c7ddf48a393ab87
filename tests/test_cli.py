"""Integration tests for CLI commands."""

from pathlib import Path

from typer.testing import CliRunner

from contextscan import __version__
from contextscan.cli import app
from contextscan.config import config_path, load_config
from contextscan.storage import ArtifactStore

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"contextscan v{__version__}" in result.stdout


class TestScanCommand:
    """Tests for 'contextscan scan'."""

    def test_scan_workspace(self, sample_workspace: Path):
        result = runner.invoke(app, ["scan", str(sample_workspace)])

        assert result.exit_code == 0
        assert "Artifacts" in result.stdout
        assert "Scan finished" in result.stdout
        store = ArtifactStore(sample_workspace)
        assert len(store.list_stored_artifacts()) == 5
        assert store.load_scan_metadata() is not None

    def test_scan_only(self, sample_workspace: Path):
        result = runner.invoke(app, ["scan", str(sample_workspace), "--only", "summary", "--only", "directory"])

        assert result.exit_code == 0
        store = ArtifactStore(sample_workspace)
        assert [a.kind for a in store.list_stored_artifacts()] == ["directory", "summary"]

    def test_scan_unknown_kind(self, sample_workspace: Path):
        result = runner.invoke(app, ["scan", str(sample_workspace), "--only", "bogus"])
        assert result.exit_code != 0

    def test_scan_nonexistent_path(self):
        result = runner.invoke(app, ["scan", "/nonexistent/path"])
        assert result.exit_code != 0


class TestArtifactCommands:
    """Tests for list, show, restore and context."""

    def test_list_empty(self, sample_workspace: Path):
        result = runner.invoke(app, ["list", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "No artifacts stored yet" in result.stdout

    def test_list_and_show(self, sample_workspace: Path):
        runner.invoke(app, ["scan", str(sample_workspace), "--only", "directory"])

        listed = runner.invoke(app, ["list", "--path", str(sample_workspace)])
        assert listed.exit_code == 0
        assert "directory" in listed.stdout

        shown = runner.invoke(app, ["show", "directory", "--path", str(sample_workspace)])
        assert shown.exit_code == 0
        assert shown.stdout.startswith("# Directory Structure")

    def test_show_missing_artifact(self, sample_workspace: Path):
        result = runner.invoke(app, ["show", "workflow", "--path", str(sample_workspace)])
        assert result.exit_code == 1
        assert "No stored 'workflow' artifact" in result.stdout

    def test_show_unknown_kind(self, sample_workspace: Path):
        result = runner.invoke(app, ["show", "bogus", "--path", str(sample_workspace)])
        assert result.exit_code != 0

    def test_restore(self, sample_workspace: Path):
        missing = runner.invoke(app, ["restore", "summary", "--path", str(sample_workspace)])
        assert missing.exit_code == 1
        assert "No previous version" in missing.stdout

        runner.invoke(app, ["scan", str(sample_workspace), "--only", "summary"])
        runner.invoke(app, ["scan", str(sample_workspace), "--only", "summary"])
        restored = runner.invoke(app, ["restore", "summary", "--path", str(sample_workspace)])

        assert restored.exit_code == 0
        assert "Restored previous 'summary' artifact" in restored.stdout
        assert ArtifactStore(sample_workspace).load_artifact("summary").metadata.version == 1

    def test_context(self, sample_workspace: Path):
        empty = runner.invoke(app, ["context", "--path", str(sample_workspace)])
        assert empty.exit_code == 1

        runner.invoke(app, ["scan", str(sample_workspace), "--only", "summary"])
        result = runner.invoke(app, ["context", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "## Codebase Summary" in result.stdout
        assert "sample-shop" in result.stdout


class TestWorkspaceCommands:
    """Tests for changes and init."""

    def test_changes(self, sample_workspace: Path):
        before = runner.invoke(app, ["changes", "--path", str(sample_workspace)])
        assert "No previous scan recorded." in before.stdout

        runner.invoke(app, ["scan", str(sample_workspace), "--only", "directory"])
        unchanged = runner.invoke(app, ["changes", "--path", str(sample_workspace)])
        assert "No changes since" in unchanged.stdout

        (sample_workspace / "lib" / "extra.ts").write_text("export const extra = 1;\n")
        changed = runner.invoke(app, ["changes", "--path", str(sample_workspace)])
        assert "Changes detected since" in changed.stdout

    def test_init_writes_config_once(self, sample_workspace: Path):
        first = runner.invoke(app, ["init", "--path", str(sample_workspace)])
        assert first.exit_code == 0
        assert "Wrote" in first.stdout
        assert config_path(sample_workspace).is_file()
        assert load_config(sample_workspace).max_depth == 10

        second = runner.invoke(app, ["init", "--path", str(sample_workspace)])
        assert "Config already exists" in second.stdout
