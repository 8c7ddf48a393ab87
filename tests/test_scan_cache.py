"""Tests for change detection between scans."""

import hashlib
from pathlib import Path

from contextscan.models import ScanMetadata
from contextscan.scan_cache import build_scan_metadata, collect_file_hashes, compute_file_hash, has_changes


def test_compute_file_hash(temp_dir: Path):
    path = temp_dir / "a.ts"
    path.write_bytes(b"export {}\n")
    assert compute_file_hash(path) == hashlib.sha256(b"export {}\n").hexdigest()
    assert compute_file_hash(temp_dir / "missing.ts") is None


def test_collect_respects_exclusions(sample_workspace: Path):
    hashes = collect_file_hashes(sample_workspace)
    assert "lib/users.ts" in hashes
    assert "debug.log" not in hashes
    assert "src/types/secret/hidden.ts" not in hashes
    assert "app" not in hashes


class TestHasChanges:
    """Tests for has_changes."""

    def test_no_previous_scan(self, sample_workspace: Path):
        assert has_changes(None, build_scan_metadata(sample_workspace))

    def test_unchanged_workspace(self, sample_workspace: Path):
        old = build_scan_metadata(sample_workspace)
        assert not has_changes(old, build_scan_metadata(sample_workspace))

    def test_modified_file(self, sample_workspace: Path):
        old = build_scan_metadata(sample_workspace)
        (sample_workspace / "lib" / "notify.ts").write_text("export const x = 2;\n")
        assert has_changes(old, build_scan_metadata(sample_workspace))

    def test_added_and_removed_files(self, sample_workspace: Path):
        old = build_scan_metadata(sample_workspace)
        (sample_workspace / "lib" / "extra.ts").write_text("")
        assert has_changes(old, build_scan_metadata(sample_workspace))

    def test_same_count_different_paths(self):
        """Test that a rename is detected even when the count is unchanged."""
        old = ScanMetadata("t", {"a.ts": "1"}, 1)
        new = ScanMetadata("t", {"b.ts": "1"}, 1)
        assert has_changes(old, new)

    def test_ignored_files_do_not_count(self, sample_workspace: Path):
        old = build_scan_metadata(sample_workspace)
        (sample_workspace / "trace.log").write_text("noise")
        assert not has_changes(old, build_scan_metadata(sample_workspace))
