"""Content hashing for change detection between scans."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Dict, Optional

from .config import ScanOptions
from .fs_utils import walk_workspace
from .models import ScanMetadata, utc_now_iso

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def compute_file_hash(path: Path) -> Optional[str]:
    """SHA-256 hex digest of *path*, or None if it cannot be read."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as exc:
        logger.debug("Cannot hash %s: %s", path, exc)
        return None
    return digest.hexdigest()


def collect_file_hashes(root: Path, options: Optional[ScanOptions] = None) -> Dict[str, str]:
    """Hash every non-excluded file in the workspace, keyed by relative path."""
    hashes: Dict[str, str] = {}
    for entry in walk_workspace(root, options):
        if entry.is_dir:
            continue
        digest = compute_file_hash(entry.path)
        if digest is not None:
            hashes[entry.rel_path] = digest
    return hashes


def build_scan_metadata(root: Path, options: Optional[ScanOptions] = None) -> ScanMetadata:
    hashes = collect_file_hashes(root, options)
    return ScanMetadata(timestamp=utc_now_iso(), file_hashes=hashes, file_count=len(hashes))


def has_changes(old: Optional[ScanMetadata], new: ScanMetadata) -> bool:
    """True when *new* differs from *old* in file count, path set or content."""
    if old is None:
        return True
    if old.file_count != new.file_count:
        return True
    if old.file_hashes.keys() != new.file_hashes.keys():
        return True
    return any(old.file_hashes[path] != digest for path, digest in new.file_hashes.items())
