"""Common base for the five extraction engines."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional, Set

from .config import ScanOptions
from .fs_utils import WalkEntry, walk_workspace
from .gitignore import GitignoreMatcher
from .models import ArtifactResult, to_dict, utc_now_iso
from .parser import ParseSession, SourceFile

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


class ExtractionEngine(ABC):
    """One extraction stage producing exactly one artifact kind.

    Subclasses implement :meth:`generate` and bump ``file_count`` /
    ``error_count`` as they go.  There are no retries inside an engine.
    """

    kind: str = ""

    def __init__(
        self,
        workspace: Path,
        options: Optional[ScanOptions] = None,
        session: Optional[ParseSession] = None,
        matcher: Optional[GitignoreMatcher] = None,
    ) -> None:
        self.workspace = workspace
        self.options = options or ScanOptions()
        self.session = session or ParseSession(workspace, self.options)
        self.matcher = matcher or GitignoreMatcher.for_workspace(workspace, self.options)
        self.state = EngineState.IDLE
        self.file_count = 0
        self.error_count = 0
        self._counted: Set[str] = set()
        self._failed: Set[str] = set()

    def run(self) -> ArtifactResult:
        self.state = EngineState.RUNNING
        self.file_count = 0
        self.error_count = 0
        self._counted.clear()
        self._failed.clear()
        logger.info("Running %s engine on %s", self.kind, self.workspace)
        try:
            content = self.generate()
        except Exception:
            self.state = EngineState.FAILED
            raise
        self.state = EngineState.SUCCEEDED
        return ArtifactResult(
            kind=self.kind,
            content=content,
            generated_at_utc=utc_now_iso(),
            file_count=self.file_count,
            error_count=self.error_count,
        )

    @abstractmethod
    def generate(self) -> str:
        """Produce the artifact content."""
        ...

    # ------------------------------------------------------------------
    # Helpers shared by subclasses
    # ------------------------------------------------------------------

    def walk(self, start: Optional[str] = None) -> Iterator[WalkEntry]:
        return walk_workspace(self.workspace, self.options, self.matcher, start=start)

    def parse(self, rel_path: str) -> Optional[SourceFile]:
        """Parsed source for *rel_path*; failures are counted, not raised."""
        source = self.session.get(rel_path)
        if source is None and rel_path not in self._failed:
            self._failed.add(rel_path)
            self.error_count += 1
            logger.debug("%s engine skipped unparsable file %s", self.kind, rel_path)
        return source

    def count_file(self, rel_path: str) -> None:
        """Count *rel_path* towards file_count once per run."""
        if rel_path not in self._counted:
            self._counted.add(rel_path)
            self.file_count += 1

    @staticmethod
    def dump(value: Any) -> str:
        return json.dumps(to_dict(value), indent=2)
