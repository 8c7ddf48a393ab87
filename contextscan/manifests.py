"""Dependency manifest parsers (npm, pip, Go modules, Cargo, pyproject).

Each parser returns a :class:`ManifestInfo` or ``None`` when the manifest
is absent or unparsable.  Parsers never raise.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import toml

from .config import MAX_MANIFEST_BYTES
from .fs_utils import read_safe
from .models import ManifestInfo

logger = logging.getLogger(__name__)

_REQUIREMENT_NAME_SPLIT = re.compile(r"[=<>!~\[;@\s]")
_GO_MODULE = re.compile(r"^module\s+(\S+)", re.MULTILINE)
_GO_REQUIRE_BLOCK = re.compile(r"^require\s*\(([\s\S]*?)^\)", re.MULTILINE)
_GO_REQUIRE_LINE = re.compile(r"^require\s+([^\s(]+)\s+\S+", re.MULTILINE)


def _read_manifest(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return read_safe(path, MAX_MANIFEST_BYTES)


def _requirement_name(spec: str) -> str:
    return _REQUIREMENT_NAME_SPLIT.split(spec.strip(), maxsplit=1)[0].strip()


def _dict_keys(value: Any) -> List[str]:
    return list(value.keys()) if isinstance(value, dict) else []


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


# ---------------------------------------------------------------------------
# Per-ecosystem parsers
# ---------------------------------------------------------------------------

def parse_package_json(root: Path) -> Optional[ManifestInfo]:
    text = _read_manifest(root / "package.json")
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid package.json in %s: %s", root, exc)
        return None
    if not isinstance(data, dict):
        return None
    return ManifestInfo(
        dependencies=_dict_keys(data.get("dependencies")),
        dev_dependencies=_dict_keys(data.get("devDependencies")),
        name=_str_or_none(data.get("name")),
        version=_str_or_none(data.get("version")),
        description=_str_or_none(data.get("description")),
    )


def _parse_requirement_lines(text: str) -> List[str]:
    names: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-"):
            continue
        name = _requirement_name(line)
        if name:
            names.append(name)
    return names


def parse_requirements_txt(root: Path) -> Optional[ManifestInfo]:
    text = _read_manifest(root / "requirements.txt")
    if text is None:
        return None
    dev_text = _read_manifest(root / "requirements-dev.txt")
    return ManifestInfo(
        dependencies=_parse_requirement_lines(text),
        dev_dependencies=_parse_requirement_lines(dev_text) if dev_text else [],
    )


def parse_go_mod(root: Path) -> Optional[ManifestInfo]:
    text = _read_manifest(root / "go.mod")
    if text is None:
        return None
    deps: List[str] = []
    for block in _GO_REQUIRE_BLOCK.findall(text):
        for line in block.splitlines():
            line = line.strip()
            if not line or line.startswith("//"):
                continue
            deps.append(line.split()[0])
    deps.extend(_GO_REQUIRE_LINE.findall(text))
    module = _GO_MODULE.search(text)
    return ManifestInfo(dependencies=deps, name=module.group(1) if module else None)


def _load_toml(path: Path) -> Optional[Dict[str, Any]]:
    text = _read_manifest(path)
    if text is None:
        return None
    try:
        return toml.loads(text)
    except toml.TomlDecodeError as exc:
        logger.warning("Invalid TOML in %s: %s", path, exc)
        return None


def parse_cargo_toml(root: Path) -> Optional[ManifestInfo]:
    data = _load_toml(root / "Cargo.toml")
    if data is None:
        return None
    package = data.get("package") or {}
    return ManifestInfo(
        dependencies=_dict_keys(data.get("dependencies")),
        dev_dependencies=_dict_keys(data.get("dev-dependencies")),
        name=_str_or_none(package.get("name")),
        version=_str_or_none(package.get("version")),
        description=_str_or_none(package.get("description")),
    )


def parse_pyproject_toml(root: Path) -> Optional[ManifestInfo]:
    """Read PEP 621 ``[project]`` metadata, falling back to ``[tool.poetry]``."""
    data = _load_toml(root / "pyproject.toml")
    if data is None:
        return None

    project = data.get("project") or {}
    poetry = (data.get("tool") or {}).get("poetry") or {}

    deps = [_requirement_name(d) for d in project.get("dependencies", []) if isinstance(d, str)]
    dev: List[str] = []
    for group in (project.get("optional-dependencies") or {}).values():
        dev.extend(_requirement_name(d) for d in group if isinstance(d, str))

    deps.extend(k for k in _dict_keys(poetry.get("dependencies")) if k.lower() != "python")
    dev.extend(_dict_keys(poetry.get("dev-dependencies")))
    for group in (poetry.get("group") or {}).values():
        if isinstance(group, dict):
            dev.extend(_dict_keys(group.get("dependencies")))

    return ManifestInfo(
        dependencies=[d for d in deps if d],
        dev_dependencies=[d for d in dev if d],
        name=_str_or_none(project.get("name")) or _str_or_none(poetry.get("name")),
        version=_str_or_none(project.get("version")) or _str_or_none(poetry.get("version")),
        description=_str_or_none(project.get("description")) or _str_or_none(poetry.get("description")),
    )


# Ordered by priority for name / version / description.
MANIFEST_PARSERS: List[Callable[[Path], Optional[ManifestInfo]]] = [
    parse_package_json,
    parse_pyproject_toml,
    parse_requirements_txt,
    parse_go_mod,
    parse_cargo_toml,
]


def _run_parser(parser: Callable[[Path], Optional[ManifestInfo]], root: Path) -> Optional[ManifestInfo]:
    try:
        return parser(root)
    except Exception as exc:
        logger.warning("Manifest parser %s failed: %s", parser.__name__, exc)
        return None


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def merge_manifests(results: Iterable[Optional[ManifestInfo]]) -> ManifestInfo:
    """Union dependency lists; first non-empty name/version/description wins."""
    merged = ManifestInfo()
    deps: List[str] = []
    dev: List[str] = []
    for info in results:
        if info is None:
            continue
        deps.extend(info.dependencies)
        dev.extend(info.dev_dependencies)
        merged.name = merged.name or info.name
        merged.version = merged.version or info.version
        merged.description = merged.description or info.description
    merged.dependencies = _unique(deps)
    merged.dev_dependencies = _unique(dev)
    return merged


def parse_all_manifests(root: Path) -> ManifestInfo:
    """Run every manifest parser concurrently and merge in priority order."""
    with ThreadPoolExecutor(max_workers=len(MANIFEST_PARSERS)) as pool:
        results = list(pool.map(lambda p: _run_parser(p, root), MANIFEST_PARSERS))
    return merge_manifests(results)
