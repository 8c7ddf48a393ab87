"""Scan orchestrator running the five extraction engines in order."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from .architecture_engine import ArchitectureEngine
from .config import ScanOptions
from .data_model_engine import DataModelEngine
from .directory_engine import DirectoryStructureEngine
from .docs_client import DocGenerator
from .engine_base import EngineState, ExtractionEngine
from .errors import ContextScanError
from .gitignore import GitignoreMatcher
from .models import (
    CORE_ARTIFACT_KINDS,
    DOC_ARTIFACT_KINDS,
    ArtifactResult,
    ScanError,
    ScanResult,
    utc_now_iso,
)
from .parser import ParseSession
from .storage import ArtifactStore
from .summary_engine import CodebaseSummaryEngine
from .workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, Optional[str]], None]
EngineFactory = Callable[..., ExtractionEngine]

ENGINE_ORDER: Tuple[Tuple[str, Type[ExtractionEngine]], ...] = (
    ("directory", DirectoryStructureEngine),
    ("summary", CodebaseSummaryEngine),
    ("dataModel", DataModelEngine),
    ("architecture", ArchitectureEngine),
    ("workflow", WorkflowEngine),
)


def _format_duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


def placeholder_result(kind: str, content: str = "{}") -> ArtifactResult:
    """Stand-in artifact for a stage that failed or timed out."""
    return ArtifactResult(
        kind=kind,
        content=content,
        generated_at_utc=utc_now_iso(),
        file_count=0,
        error_count=1,
        incomplete=True,
    )


class ScanOrchestrator:
    """Run the extraction pipeline for one workspace and store the results.

    Engines run one at a time in a fixed order.  A failing or timed-out
    engine is replaced by an incomplete placeholder so every kind always
    has an artifact.  Only workspace initialisation errors propagate out
    of :meth:`scan`; everything else lands in ``ScanResult.errors``.
    """

    def __init__(
        self,
        workspace: Path,
        store: Optional[ArtifactStore] = None,
        options: Optional[ScanOptions] = None,
        progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        doc_generator: Optional[DocGenerator] = None,
        engines: Optional[Dict[str, EngineFactory]] = None,
    ) -> None:
        self.workspace = Path(workspace)
        self.store = store or ArtifactStore(self.workspace)
        self.options = options or ScanOptions()
        self.progress = progress
        self.is_cancelled = is_cancelled or (lambda: False)
        self.doc_generator = doc_generator
        self.engine_factories: Dict[str, EngineFactory] = dict(ENGINE_ORDER)
        if engines:
            self.engine_factories.update(engines)
        self.engine_states: Dict[str, EngineState] = {}

    def _report(self, stage: str, percent: int, message: Optional[str] = None) -> None:
        if self.progress is None:
            return
        try:
            self.progress(stage, percent, message)
        except Exception as exc:
            logger.warning("Progress callback failed: %s", exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def scan(self, kinds: Optional[Iterable[str]] = None) -> ScanResult:
        """Run the engines for *kinds* (all five by default).

        Raises:
            WorkspaceInitError: If the control directory cannot be set up.
            ValueError: If *kinds* names an unknown artifact kind.
        """
        selected = self._select(kinds)
        self.store.init_workspace()

        started = time.monotonic()
        result = ScanResult()
        matcher = GitignoreMatcher.for_workspace(self.workspace, self.options)
        total = len(selected)

        with ParseSession(self.workspace, self.options) as session:
            for index, kind in enumerate(selected):
                if self.is_cancelled():
                    logger.info("Scan cancelled before %s stage", kind)
                    result.cancelled = True
                    break

                self._report(kind, round(index / total * 100), f"Running {kind} generator")
                artifact = self._run_engine(kind, session, matcher, result.errors)
                self._store(kind, artifact, result.errors)
                result.artifacts[kind] = artifact
                self._report(kind, round((index + 1) / total * 100), f"{kind} complete")

        if self.options.generate_docs and self.doc_generator is not None and not result.cancelled:
            self._generate_docs(self.doc_generator, result)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Scan of %s finished in %d ms with %d error(s)",
            self.workspace, result.duration_ms, len(result.errors),
        )
        return result

    def scan_artifact(self, kind: str) -> ScanResult:
        """Regenerate a single artifact kind."""
        return self.scan([kind])

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    def _select(kinds: Optional[Iterable[str]]) -> List[str]:
        if kinds is None:
            return list(CORE_ARTIFACT_KINDS)
        requested = set(kinds)
        unknown = requested - set(CORE_ARTIFACT_KINDS)
        if unknown:
            raise ValueError(f"Unknown artifact kind(s): {', '.join(sorted(unknown))}")
        return [kind for kind in CORE_ARTIFACT_KINDS if kind in requested]

    def _run_engine(
        self,
        kind: str,
        session: ParseSession,
        matcher: GitignoreMatcher,
        errors: List[ScanError],
    ) -> ArtifactResult:
        engine = self.engine_factories[kind](
            self.workspace, options=self.options, session=session, matcher=matcher,
        )
        timeout = self.options.engine_timeout
        outcome: Dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["artifact"] = engine.run()
            except Exception as exc:
                outcome["error"] = exc

        # Daemon thread: a timed-out engine is abandoned and never keeps the
        # process alive at exit.
        worker = threading.Thread(target=target, name=f"contextscan-{kind}", daemon=True)
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            engine.state = EngineState.TIMED_OUT
            message = f"{kind} generator timed out after {_format_duration(timeout)}"
            logger.warning(message)
            errors.append(ScanError(stage=kind, message=message))
            artifact = placeholder_result(kind)
        elif "error" in outcome:
            exc = outcome["error"]
            logger.warning("%s generator failed: %s", kind, exc)
            errors.append(ScanError(stage=kind, message=str(exc) or type(exc).__name__))
            artifact = placeholder_result(kind)
        else:
            artifact = outcome["artifact"]
        self.engine_states[kind] = engine.state
        return artifact

    def _store(self, kind: str, artifact: ArtifactResult, errors: List[ScanError]) -> None:
        try:
            self.store.store_artifact(kind, artifact)
        except ContextScanError as exc:
            logger.error("Could not store %s artifact: %s", kind, exc)
            errors.append(ScanError(stage=kind, message=f"Storage failed: {exc}"))

    def _project_name(self, result: ScanResult) -> str:
        summary = result.artifacts.get("summary")
        if summary is not None and not summary.incomplete:
            try:
                name = json.loads(summary.content).get("name")
            except (json.JSONDecodeError, AttributeError):
                name = None
            if isinstance(name, str) and name:
                return name
        return self.workspace.name

    def _generate_docs(self, generator: DocGenerator, result: ScanResult) -> None:
        """Turn structured artifacts into markdown, one at a time.

        Any failure of the generator is recorded per artifact; it never
        escapes the scan.
        """
        try:
            available = generator.is_available()
        except Exception as exc:
            logger.warning("Documentation availability check failed: %s", exc)
            available = False
        if not available:
            result.errors.append(ScanError(
                stage="summary-docs",
                message="Documentation API not available. Skipping documentation generation.",
            ))
            return

        project_name = self._project_name(result)
        for kind, doc_kind in DOC_ARTIFACT_KINDS.items():
            source = result.artifacts.get(kind)
            if source is None or source.incomplete:
                continue
            self._report(doc_kind, 100, f"Generating {kind} documentation")
            try:
                doc = generator.generate(kind, source.content, project_name)
                artifact = ArtifactResult(
                    kind=doc_kind,
                    content=doc.markdown,
                    generated_at_utc=doc.generated_at_utc,
                    file_count=source.file_count,
                    error_count=0,
                )
            except Exception as exc:
                logger.warning("Documentation for %s failed: %s", kind, exc)
                result.errors.append(ScanError(stage=doc_kind, message=str(exc) or type(exc).__name__))
                artifact = placeholder_result(
                    doc_kind,
                    content=f"# Documentation Generation Failed\n\n{exc}\n",
                )
            self._store(doc_kind, artifact, result.errors)
            result.artifacts[doc_kind] = artifact
