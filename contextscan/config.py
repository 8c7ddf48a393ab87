"""Configuration defaults and per-workspace overrides for contextscan."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

logger = logging.getLogger(__name__)

CONTROL_DIR_NAME = os.environ.get("CONTEXTSCAN_DIR", ".contextscan")
ARTIFACTS_DIR_NAME = "artifacts"
CACHE_DIR_NAME = "cache"
CONFIG_FILE_NAME = "config.toml"

DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_FILE_BYTES = 1024 * 1024
MAX_MANIFEST_BYTES = 1024 * 1024
MAX_README_BYTES = 10 * 1024
MAX_RESEARCH_SESSIONS = 50

ENGINE_TIMEOUT_SECONDS = float(os.environ.get("CONTEXTSCAN_ENGINE_TIMEOUT", "900"))

DOCS_ENDPOINT = os.environ.get(
    "CONTEXTSCAN_DOCS_ENDPOINT", "http://localhost:3000/api/ai-documentation"
)
DOCS_TIMEOUT_SECONDS = 120.0
DOCS_CHECK_TIMEOUT_SECONDS = 5.0

# Directory names that are never scanned, checked before .gitignore.
DEFAULT_EXCLUDES: List[str] = [
    "node_modules", ".git", "dist", "build", "out", ".next",
    "coverage", "__pycache__", ".venv", CONTROL_DIR_NAME,
]

DEFAULT_ALIAS_PREFIXES: List[str] = ["@/", "~"]


@dataclass
class ScanOptions:
    """Knobs shared by the walker, the engines and the orchestrator."""
    max_depth: int = DEFAULT_MAX_DEPTH
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    respect_gitignore: bool = True
    follow_symlinks: bool = True
    engine_timeout: float = ENGINE_TIMEOUT_SECONDS
    generate_docs: bool = False
    docs_endpoint: str = DOCS_ENDPOINT
    alias_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_ALIAS_PREFIXES))


def config_path(workspace: Path) -> Path:
    return workspace / CONTROL_DIR_NAME / CONFIG_FILE_NAME


def load_config(workspace: Path) -> ScanOptions:
    """Load scan options for *workspace*.

    Reads the ``[scan]`` table of ``.contextscan/config.toml`` when present.
    Unknown keys are ignored and ``extra_excludes`` is appended to the
    default deny-list.

    Returns:
        ScanOptions populated from the file, or defaults when the file is
        missing or cannot be parsed.
    """
    path = config_path(workspace)
    if not path.is_file():
        return ScanOptions()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return ScanOptions()

    return options_from_dict(raw.get("scan", {}))


def options_from_dict(section: Dict[str, Any]) -> ScanOptions:
    options = ScanOptions()
    known = {f.name for f in fields(ScanOptions)}
    for key, value in section.items():
        if key == "extra_excludes" and isinstance(value, list):
            options.exclude_patterns.extend(str(v) for v in value)
        elif key in known:
            setattr(options, key, value)
        else:
            logger.debug("Unknown config key '%s' ignored", key)
    return options


def save_config(workspace: Path, options: ScanOptions, extra: Optional[Dict[str, Any]] = None) -> Path:
    """Write *options* to the workspace config file and return its path."""
    path = config_path(workspace)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = {"scan": {f.name: getattr(options, f.name) for f in fields(ScanOptions)}}
    if extra:
        payload.update(extra)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(payload, f)
    return path
