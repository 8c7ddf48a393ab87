"""Durable, versioned artifact storage under the workspace control directory.

Layout (relative to the workspace root)::

    .contextscan/
        artifacts/<kind>.json            current artifact
        artifacts/<kind>.previous.json   single-generation backup
        cache/last-scan.json             change-detection hashes
        requirements.json (+ .bak)
        tasks.json (+ .bak)
        research.json

Every write goes to a ``.tmp`` sibling first and is renamed over the
target.  Every read is validated; corrupt or malformed files are logged
and treated as absent.
"""

from __future__ import annotations

import contextlib
import errno
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ARTIFACTS_DIR_NAME, CACHE_DIR_NAME, CONTROL_DIR_NAME, MAX_RESEARCH_SESSIONS
from .errors import (
    DiskFullError,
    StorageError,
    StoragePermissionError,
    WorkspaceInitError,
)
from .models import (
    ALL_ARTIFACT_KINDS,
    ArtifactMetadata,
    ArtifactResult,
    RequirementsDocument,
    ResearchFinding,
    ResearchSession,
    ScanMetadata,
    StoredArtifact,
    Subtask,
    Task,
    parse_utc,
    to_dict,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

_FINDING_CATEGORIES = {"concept", "best_practice", "pitfall", "edge_case", "technical"}
_FINDING_RELEVANCE = {"high", "medium", "low"}
_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM, errno.EROFS}


def translate_os_error(exc: OSError, path: Path) -> StorageError:
    """Map an OSError onto the store's user-readable error types."""
    if exc.errno == errno.ENOSPC:
        return DiskFullError(f"Disk full: could not write {path.name}")
    if exc.errno in _PERMISSION_ERRNOS:
        return StoragePermissionError(f"Permission denied: {path}")
    return StorageError(f"Storage operation failed for {path}: {exc.strerror or exc}")


# ---------------------------------------------------------------------------
# Structural validators
# ---------------------------------------------------------------------------

def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def parse_stored_artifact(data: Any) -> Optional[StoredArtifact]:
    if not isinstance(data, dict):
        return None
    for key in ("id", "kind", "workspacePath", "content"):
        if not isinstance(data.get(key), str):
            return None
    if data["kind"] not in ALL_ARTIFACT_KINDS:
        return None

    meta = data.get("metadata")
    if not isinstance(meta, dict):
        return None
    generated = meta.get("generatedAtUtc")
    if not isinstance(generated, str) or parse_utc(generated) is None:
        return None
    if not _is_count(meta.get("fileCount")) or not _is_count(meta.get("errorCount")):
        return None
    version = meta.get("version")
    if not _is_count(version) or version < 1:
        return None
    incomplete = meta.get("incomplete")
    if incomplete is not None and not isinstance(incomplete, bool):
        return None

    return StoredArtifact(
        id=data["id"],
        kind=data["kind"],
        workspace_path=data["workspacePath"],
        content=data["content"],
        metadata=ArtifactMetadata(
            generated_at_utc=generated,
            file_count=meta["fileCount"],
            error_count=meta["errorCount"],
            version=version,
            incomplete=incomplete,
        ),
    )


def parse_task(data: Any) -> Optional[Task]:
    if not isinstance(data, dict):
        return None
    for key in ("id", "title", "description"):
        if not isinstance(data.get(key), str):
            return None
    if not isinstance(data.get("completed"), bool):
        return None

    raw_subtasks = data.get("subtasks", [])
    if not isinstance(raw_subtasks, list):
        return None
    subtasks: List[Subtask] = []
    for raw in raw_subtasks:
        if (
            not isinstance(raw, dict)
            or not isinstance(raw.get("id"), str)
            or not isinstance(raw.get("title"), str)
            or not isinstance(raw.get("completed"), bool)
        ):
            return None
        subtasks.append(Subtask(raw["id"], raw["title"], raw["completed"]))

    criteria = data.get("acceptanceCriteria", [])
    if not _is_str_list(criteria):
        return None

    return Task(
        id=data["id"],
        title=data["title"],
        description=data["description"],
        completed=data["completed"],
        subtasks=subtasks,
        acceptance_criteria=list(criteria),
    )


def parse_finding(data: Any) -> Optional[ResearchFinding]:
    if not isinstance(data, dict):
        return None
    for key in ("id", "title", "content"):
        if not isinstance(data.get(key), str):
            return None
    if data.get("category") not in _FINDING_CATEGORIES or data.get("relevance") not in _FINDING_RELEVANCE:
        return None
    source = data.get("source")
    if source is not None and not isinstance(source, str):
        return None
    return ResearchFinding(
        data["id"], data["title"], data["content"], data["category"], data["relevance"], source,
    )


def parse_research_session(data: Any) -> Optional[ResearchSession]:
    if not isinstance(data, dict):
        return None
    for key in ("id", "query", "summary", "timestamp"):
        if not isinstance(data.get(key), str):
            return None
    timestamp = parse_utc(data["timestamp"])
    if timestamp is None or not isinstance(data.get("findings"), list):
        return None
    findings = [parse_finding(f) for f in data["findings"]]
    if any(f is None for f in findings):
        return None
    questions = data.get("suggestedQuestions", [])
    if not _is_str_list(questions):
        return None
    return ResearchSession(
        id=data["id"],
        query=data["query"],
        findings=findings,  # type: ignore[arg-type]
        summary=data["summary"],
        suggested_questions=list(questions),
        timestamp=timestamp,
    )


def parse_scan_metadata(data: Any) -> Optional[ScanMetadata]:
    if not isinstance(data, dict):
        return None
    hashes = data.get("fileHashes")
    if not isinstance(data.get("timestamp"), str) or not isinstance(hashes, dict):
        return None
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in hashes.items()):
        return None
    if not _is_count(data.get("fileCount")):
        return None
    return ScanMetadata(timestamp=data["timestamp"], file_hashes=dict(hashes), file_count=data["fileCount"])


# ===================================================================
# ArtifactStore
# ===================================================================

class ArtifactStore:
    """Persist artifacts and planning documents for one workspace.

    When the workspace is read-only the store falls back to an in-memory
    mode: every operation keeps working but nothing reaches the disk.
    """

    def __init__(self, workspace_root: Path, control_dir_name: str = CONTROL_DIR_NAME) -> None:
        self.workspace_root = Path(workspace_root)
        self.base_dir = self.workspace_root / control_dir_name
        self.artifacts_dir = self.base_dir / ARTIFACTS_DIR_NAME
        self.cache_dir = self.base_dir / CACHE_DIR_NAME
        self.requirements_path = self.base_dir / "requirements.json"
        self.tasks_path = self.base_dir / "tasks.json"
        self.research_path = self.base_dir / "research.json"
        self.scan_cache_path = self.cache_dir / "last-scan.json"

        self._lock = threading.RLock()
        self._memory: Optional[Dict[str, str]] = None
        self._initialized = False

    @property
    def memory_only(self) -> bool:
        return self._memory is not None

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def init_workspace(self) -> None:
        """Create the control directories.

        Raises:
            WorkspaceInitError: If the workspace root does not exist or the
                directories cannot be created for a reason other than the
                workspace being read-only.
        """
        if self._initialized:
            return
        if not self.workspace_root.is_dir():
            raise WorkspaceInitError(f"Workspace does not exist: {self.workspace_root}")

        if not os.access(self.workspace_root, os.W_OK):
            self._enter_memory_mode("workspace is not writable")
        else:
            try:
                self.artifacts_dir.mkdir(parents=True, exist_ok=True)
                self.cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                if exc.errno not in _PERMISSION_ERRNOS:
                    raise WorkspaceInitError(
                        f"Could not initialise {self.base_dir}: {exc.strerror or exc}"
                    ) from exc
                self._enter_memory_mode(str(exc))
        self._initialized = True

    def _enter_memory_mode(self, reason: str) -> None:
        logger.warning("Storing artifacts in memory only (%s): %s", reason, self.workspace_root)
        self._memory = {}

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.init_workspace()

    # ------------------------------------------------------------------
    # Low-level file primitives
    # ------------------------------------------------------------------

    def _atomic_write(self, path: Path, text: str) -> None:
        self._ensure_initialized()
        if self._memory is not None:
            self._memory[str(path)] = text
            return
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise translate_os_error(exc, path) from exc

    def _write_json(self, path: Path, payload: Any) -> None:
        self._atomic_write(path, json.dumps(payload, indent=2))

    def _read_text(self, path: Path) -> Optional[str]:
        if self._memory is not None:
            return self._memory.get(str(path))
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            logger.warning("Corrupt file %s is not valid UTF-8, ignoring: %s", path, exc)
            return None
        except OSError as exc:
            raise translate_os_error(exc, path) from exc

    def _read_json(self, path: Path) -> Optional[Any]:
        text = self._read_text(path)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Corrupt JSON in %s, ignoring: %s", path, exc)
            return None

    def _exists(self, path: Path) -> bool:
        if self._memory is not None:
            return str(path) in self._memory
        return path.exists()

    def _remove(self, path: Path) -> bool:
        if self._memory is not None:
            return self._memory.pop(str(path), None) is not None
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise translate_os_error(exc, path) from exc

    def _backup(self, path: Path, backup: Path) -> None:
        """Best-effort copy of *path* to *backup*; failures are only logged."""
        try:
            text = self._read_text(path)
            if text is not None:
                self._atomic_write(backup, text)
        except StorageError as exc:
            logger.warning("Could not back up %s: %s", path, exc)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def artifact_path(self, kind: str) -> Path:
        return self.artifacts_dir / f"{kind}.json"

    def previous_artifact_path(self, kind: str) -> Path:
        return self.artifacts_dir / f"{kind}.previous.json"

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in ALL_ARTIFACT_KINDS:
            raise ValueError(f"Unknown artifact kind: {kind}")

    def store_artifact(self, kind: str, result: ArtifactResult) -> StoredArtifact:
        """Persist *result* as the current artifact of *kind*.

        The version continues from the stored artifact (or starts at 1) and
        the previous current artifact is kept as the ``.previous`` backup.

        Raises:
            DiskFullError, StoragePermissionError, StorageError: When the
                write itself fails.
        """
        self._check_kind(kind)
        self._ensure_initialized()
        with self._lock:
            existing = self.load_artifact(kind)
            if existing is not None:
                try:
                    self._write_json(self.previous_artifact_path(kind), existing.to_dict())
                except StorageError as exc:
                    logger.warning("Could not back up %s artifact: %s", kind, exc)

            stored = StoredArtifact(
                id=str(uuid.uuid4()),
                kind=kind,
                workspace_path=str(self.workspace_root),
                content=result.content,
                metadata=ArtifactMetadata(
                    generated_at_utc=result.generated_at_utc,
                    file_count=result.file_count,
                    error_count=result.error_count,
                    version=existing.metadata.version + 1 if existing else 1,
                    incomplete=True if result.incomplete else None,
                ),
            )
            self._write_json(self.artifact_path(kind), stored.to_dict())
            logger.debug("Stored %s artifact version %d", kind, stored.metadata.version)
            return stored

    def _load_artifact_file(self, path: Path) -> Optional[StoredArtifact]:
        self._ensure_initialized()
        data = self._read_json(path)
        if data is None:
            return None
        artifact = parse_stored_artifact(data)
        if artifact is None:
            logger.warning("Invalid artifact structure in %s, ignoring", path)
        return artifact

    def load_artifact(self, kind: str) -> Optional[StoredArtifact]:
        self._check_kind(kind)
        return self._load_artifact_file(self.artifact_path(kind))

    def load_previous_artifact(self, kind: str) -> Optional[StoredArtifact]:
        self._check_kind(kind)
        return self._load_artifact_file(self.previous_artifact_path(kind))

    def has_stored_artifact(self, kind: str) -> bool:
        return self.load_artifact(kind) is not None

    def has_previous_artifact(self, kind: str) -> bool:
        return self.load_previous_artifact(kind) is not None

    def get_artifact_timestamp(self, kind: str) -> Optional[str]:
        artifact = self.load_artifact(kind)
        return artifact.metadata.generated_at_utc if artifact is not None else None

    def restore_previous(self, kind: str) -> bool:
        """Promote the ``.previous`` backup of *kind* back to current.

        Returns:
            False when there is no valid backup, True once restored.
        """
        with self._lock:
            previous = self.load_previous_artifact(kind)
            if previous is None:
                return False
            self._write_json(self.artifact_path(kind), previous.to_dict())
            try:
                self._remove(self.previous_artifact_path(kind))
            except StorageError as exc:
                logger.warning("Restored %s but could not remove backup: %s", kind, exc)
            logger.info("Restored %s artifact to version %d", kind, previous.metadata.version)
            return True

    def list_stored_artifacts(self) -> List[StoredArtifact]:
        artifacts = []
        for kind in ALL_ARTIFACT_KINDS:
            artifact = self.load_artifact(kind)
            if artifact is not None:
                artifacts.append(artifact)
        return artifacts

    def delete_artifact(self, kind: str) -> bool:
        """Remove the current artifact and its backup; True if one existed."""
        self._check_kind(kind)
        self._ensure_initialized()
        with self._lock:
            removed = self._remove(self.artifact_path(kind))
            self._remove(self.previous_artifact_path(kind))
            return removed

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    def save_requirements(self, requirements: str) -> RequirementsDocument:
        self._ensure_initialized()
        document = RequirementsDocument(requirements=requirements, updated_at_utc=utc_now_iso())
        with self._lock:
            self._backup(self.requirements_path, _bak(self.requirements_path))
            self._write_json(self.requirements_path, to_dict(document))
        return document

    def load_requirements(self) -> Optional[RequirementsDocument]:
        self._ensure_initialized()
        data = self._read_json(self.requirements_path)
        if data is None:
            return None
        if (
            not isinstance(data, dict)
            or not isinstance(data.get("requirements"), str)
            or not isinstance(data.get("updatedAtUtc"), str)
        ):
            logger.warning("Invalid requirements file %s, ignoring", self.requirements_path)
            return None
        return RequirementsDocument(data["requirements"], data["updatedAtUtc"])

    def has_requirements(self) -> bool:
        return self.load_requirements() is not None

    def get_requirements_timestamp(self) -> Optional[str]:
        document = self.load_requirements()
        return document.updated_at_utc if document is not None else None

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def save_tasks(self, tasks: List[Task]) -> None:
        self._ensure_initialized()
        payload = {"tasks": to_dict(list(tasks)), "updatedAtUtc": utc_now_iso()}
        with self._lock:
            self._backup(self.tasks_path, _bak(self.tasks_path))
            self._write_json(self.tasks_path, payload)

    def load_tasks(self) -> List[Task]:
        """Load persisted tasks, skipping individually invalid records."""
        self._ensure_initialized()
        data = self._read_json(self.tasks_path)
        if data is None:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
            logger.warning("Invalid tasks file %s, ignoring", self.tasks_path)
            return []
        tasks: List[Task] = []
        for index, raw in enumerate(data["tasks"]):
            task = parse_task(raw)
            if task is None:
                logger.warning("Skipping invalid task at index %d in %s", index, self.tasks_path)
                continue
            tasks.append(task)
        return tasks

    def get_tasks_timestamp(self) -> Optional[str]:
        """Return when the task list was last saved, if it exists and is readable."""
        self._ensure_initialized()
        data = self._read_json(self.tasks_path)
        if not isinstance(data, dict) or not isinstance(data.get("updatedAtUtc"), str):
            return None
        return data["updatedAtUtc"]

    # ------------------------------------------------------------------
    # Research sessions
    # ------------------------------------------------------------------

    def save_research_session(
        self,
        query: str,
        findings: List[ResearchFinding],
        summary: str,
        suggested_questions: Optional[List[str]] = None,
    ) -> ResearchSession:
        """Append a research session, evicting the oldest beyond the cap."""
        self._ensure_initialized()
        session = ResearchSession(
            id=str(uuid.uuid4()),
            query=query,
            findings=list(findings),
            summary=summary,
            suggested_questions=list(suggested_questions or []),
            timestamp=datetime.now(timezone.utc),
        )
        with self._lock:
            sessions = self.load_research_sessions()
            sessions.append(session)
            sessions = sessions[-MAX_RESEARCH_SESSIONS:]
            self._write_json(
                self.research_path,
                {"sessions": to_dict(sessions), "updatedAtUtc": utc_now_iso()},
            )
        return session

    def load_research_sessions(self) -> List[ResearchSession]:
        self._ensure_initialized()
        data = self._read_json(self.research_path)
        if data is None:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
            logger.warning("Invalid research file %s, ignoring", self.research_path)
            return []
        sessions = []
        for index, raw in enumerate(data["sessions"]):
            session = parse_research_session(raw)
            if session is None:
                logger.warning("Skipping invalid research session at index %d", index)
                continue
            sessions.append(session)
        return sessions

    def get_latest_research(self) -> Optional[ResearchSession]:
        sessions = self.load_research_sessions()
        return sessions[-1] if sessions else None

    def get_research_count(self) -> int:
        return len(self.load_research_sessions())

    def clear_research_sessions(self) -> None:
        self._ensure_initialized()
        with self._lock:
            self._remove(self.research_path)

    # ------------------------------------------------------------------
    # Change-detection cache
    # ------------------------------------------------------------------

    def save_scan_metadata(self, metadata: ScanMetadata) -> None:
        self._ensure_initialized()
        with self._lock:
            self._write_json(self.scan_cache_path, to_dict(metadata))

    def load_scan_metadata(self) -> Optional[ScanMetadata]:
        self._ensure_initialized()
        data = self._read_json(self.scan_cache_path)
        if data is None:
            return None
        metadata = parse_scan_metadata(data)
        if metadata is None:
            logger.warning("Invalid scan cache %s, ignoring", self.scan_cache_path)
        return metadata

    def clear_scan_cache(self) -> None:
        self._ensure_initialized()
        with self._lock:
            self._remove(self.scan_cache_path)


def _bak(path: Path) -> Path:
    return path.with_name(path.name + ".bak")
