"""Gitignore-style path exclusion layered beneath a static deny-list.

Each glob is compiled by ``pathspec``'s gitwildmatch implementation; the
ordering, negation and basename-versus-path rules are applied here.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from pathspec.patterns import GitWildMatchPattern

from .config import DEFAULT_EXCLUDES, ScanOptions

logger = logging.getLogger(__name__)


def compile_glob(glob: str) -> GitWildMatchPattern:
    """Compile *glob* so it matches a whole root-relative path.

    ``**`` may cross directory separators; ``*`` and ``?`` may not.
    """
    return GitWildMatchPattern("/" + glob)


def _matches(compiled: Optional[GitWildMatchPattern], path: str) -> bool:
    return compiled is not None and bool(compiled.match_file(path))


@dataclass
class GitignorePattern:
    raw: str
    body: str
    negated: bool
    directory_only: bool
    anchored: bool
    rooted: bool
    matcher: GitWildMatchPattern
    anywhere_matcher: Optional[GitWildMatchPattern] = None

    def matches(self, rel_path: str, basename: str) -> bool:
        if not self.anchored:
            return _matches(self.matcher, basename)
        return _matches(self.matcher, rel_path) or _matches(self.anywhere_matcher, rel_path)


def parse_pattern(line: str) -> Optional[GitignorePattern]:
    raw = line.strip()
    if not raw or raw.startswith("#"):
        return None

    body = raw
    negated = body.startswith("!")
    if negated:
        body = body[1:]
    directory_only = body.endswith("/")
    body = body.rstrip("/")
    rooted = body.startswith("/")
    body = body.lstrip("/")
    if not body:
        return None

    anchored = rooted or "/" in body
    try:
        matcher = compile_glob(body)
        anywhere = None if rooted or not anchored else compile_glob("**/" + body)
    except ValueError as exc:
        logger.warning("Skipping invalid gitignore pattern %r: %s", raw, exc)
        return None
    return GitignorePattern(
        raw=raw,
        body=body,
        negated=negated,
        directory_only=directory_only,
        anchored=anchored,
        rooted=rooted,
        matcher=matcher,
        anywhere_matcher=anywhere,
    )


def parse_gitignore(text: str) -> List[GitignorePattern]:
    """Parse gitignore text into ordered patterns, dropping blanks and comments."""
    patterns: List[GitignorePattern] = []
    for line in text.splitlines():
        pattern = parse_pattern(line)
        if pattern is not None:
            patterns.append(pattern)
    return patterns


class GitignoreMatcher:
    """Decide whether a workspace-relative path is excluded from scanning."""

    def __init__(
        self,
        patterns: Optional[List[GitignorePattern]] = None,
        excludes: Optional[Iterable[str]] = None,
    ) -> None:
        self.patterns = patterns or []
        excludes = list(DEFAULT_EXCLUDES if excludes is None else excludes)
        self._exact = {e for e in excludes if not _has_glob(e)}
        self._globs = [e for e in excludes if _has_glob(e)]

    @classmethod
    def for_workspace(cls, root: Path, options: Optional[ScanOptions] = None) -> "GitignoreMatcher":
        options = options or ScanOptions()
        patterns: List[GitignorePattern] = []
        if options.respect_gitignore:
            path = root / ".gitignore"
            try:
                patterns = parse_gitignore(path.read_text(encoding="utf-8", errors="replace"))
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Could not read %s: %s", path, exc)
        return cls(patterns, options.exclude_patterns)

    def is_excluded_name(self, name: str) -> bool:
        if name in self._exact:
            return True
        return any(fnmatch.fnmatchcase(name, g) for g in self._globs)

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        rel_path = rel_path.strip("/")
        if not rel_path:
            return False
        parts = rel_path.split("/")
        if any(self.is_excluded_name(p) for p in parts):
            return True
        if not self.patterns:
            return False
        # A file inside an ignored directory is ignored regardless of negations.
        for i in range(1, len(parts)):
            if self._match(("/".join(parts[:i])), True):
                return True
        return self._match(rel_path, is_dir)

    def _match(self, rel_path: str, is_dir: bool) -> bool:
        basename = rel_path.rsplit("/", 1)[-1]
        ignored = False
        for pattern in self.patterns:
            if pattern.directory_only and not is_dir:
                continue
            if not pattern.matches(rel_path, basename):
                continue
            if pattern.negated:
                return False
            ignored = True
        return ignored


def _has_glob(text: str) -> bool:
    return any(ch in text for ch in "*?[")
