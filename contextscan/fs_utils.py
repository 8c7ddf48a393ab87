"""Fail-closed file-system helpers and the shared workspace walker.

Every helper here swallows I/O errors into empty or ``None`` results:
an unreadable file or directory is skipped, it never aborts a scan.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .config import DEFAULT_MAX_FILE_BYTES, ScanOptions
from .gitignore import GitignoreMatcher

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS: Set[str] = {
    # images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff", ".psd",
    # archives
    ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar",
    # fonts
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    # media
    ".mp3", ".mp4", ".wav", ".ogg", ".flac", ".avi", ".mov", ".webm", ".mkv",
    # compiled / binary data
    ".exe", ".dll", ".so", ".dylib", ".bin", ".o", ".a", ".class", ".pyc",
    ".wasm", ".node", ".sqlite", ".db", ".pdf", ".doc", ".docx", ".xls", ".xlsx",
}


def is_binary_path(path: Path) -> bool:
    return path.suffix.lower() in BINARY_EXTENSIONS


def list_dir(path: Path) -> List[Path]:
    """Return the entries of *path* sorted by name, or ``[]`` on any error."""
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.debug("Cannot list %s: %s", path, exc)
        return []


def is_directory(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def path_exists(path: Path) -> bool:
    try:
        return path.exists()
    except OSError:
        return False


def get_file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None


def read_safe(path: Path, max_bytes: int = DEFAULT_MAX_FILE_BYTES) -> Optional[str]:
    """Read a text file defensively.

    Args:
        path: File to read.
        max_bytes: Files larger than this are refused.

    Returns:
        The decoded text, or ``None`` for binary extensions, oversized
        files and I/O errors.  Content that is not valid UTF-8 is decoded
        as latin-1 so every byte maps to one character.
    """
    if is_binary_path(path):
        return None
    try:
        size = path.stat().st_size
        if size > max_bytes:
            logger.debug("Skipping %s: %d bytes exceeds limit of %d", path, size, max_bytes)
            return None
        data = path.read_bytes()
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def relative_posix(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


class SymlinkGuard:
    """Scan-scoped record of visited directories, keyed by canonical path."""

    def __init__(self) -> None:
        self._visited: Set[str] = set()

    def is_circular(self, path: Path) -> bool:
        """Return True if *path* resolves to a directory that was already visited."""
        real = os.path.realpath(path)
        if real in self._visited:
            return True
        self._visited.add(real)
        return False


@dataclass
class WalkEntry:
    path: Path
    rel_path: str
    is_dir: bool
    depth: int

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def suffix(self) -> str:
        return self.path.suffix.lower()


def walk_workspace(
    root: Path,
    options: Optional[ScanOptions] = None,
    matcher: Optional[GitignoreMatcher] = None,
    start: Optional[str] = None,
) -> Iterator[WalkEntry]:
    """Depth-first walk of *root* yielding non-excluded entries in name order.

    Directories are yielded before their contents.  Excluded names,
    gitignored paths, circular symlinks and anything deeper than
    ``options.max_depth`` are skipped.  When *start* is given only the
    subtree at that relative path is walked, with paths still reported
    relative to *root*.
    """
    options = options or ScanOptions()
    if matcher is None:
        matcher = GitignoreMatcher.for_workspace(root, options)
    guard = SymlinkGuard()
    guard.is_circular(root)

    base = root
    depth = 1
    if start:
        start = start.strip("/")
        if matcher.is_ignored(start, True):
            return
        base = root / start
        depth = start.count("/") + 2
        if not is_directory(base) or guard.is_circular(base):
            return
    yield from _walk(root, base, depth, options, matcher, guard)


def _walk(
    root: Path,
    directory: Path,
    depth: int,
    options: ScanOptions,
    matcher: GitignoreMatcher,
    guard: SymlinkGuard,
) -> Iterator[WalkEntry]:
    for child in list_dir(directory):
        if not options.follow_symlinks and child.is_symlink():
            continue
        is_dir = is_directory(child)
        rel = relative_posix(root, child)
        if matcher.is_ignored(rel, is_dir):
            continue
        if not is_dir:
            if path_exists(child):
                yield WalkEntry(child, rel, False, depth)
            continue
        if guard.is_circular(child):
            logger.debug("Skipping circular symlink %s", child)
            continue
        yield WalkEntry(child, rel, True, depth)
        if depth < options.max_depth:
            yield from _walk(root, child, depth + 1, options, matcher, guard)
