"""Pytest configuration and fixtures for contextscan tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from contextscan.parser import SourceFile, TreeSitterSourceParser
from contextscan.storage import ArtifactStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_workspace(temp_dir: Path) -> Path:
    """Writable copy of the sample Next.js + Prisma workspace.

    The fixture stores its ignore file as ``_gitignore`` so it does not
    affect the repository itself; it is renamed on copy.
    """
    workspace = temp_dir / "sample-shop"
    shutil.copytree(FIXTURES_DIR / "sample_workspace", workspace)
    (workspace / "_gitignore").rename(workspace / ".gitignore")
    return workspace


@pytest.fixture
def store(temp_dir: Path) -> ArtifactStore:
    """An initialised ArtifactStore rooted in an empty workspace."""
    workspace = temp_dir / "workspace"
    workspace.mkdir()
    artifact_store = ArtifactStore(workspace)
    artifact_store.init_workspace()
    return artifact_store


@pytest.fixture(scope="session")
def ts_parser() -> TreeSitterSourceParser:
    return TreeSitterSourceParser()


@pytest.fixture
def parse_source(ts_parser: TreeSitterSourceParser) -> Callable[..., SourceFile]:
    """Parse a snippet as if it lived at ``rel_path``."""

    def _parse(text: str, rel_path: str = "sample.ts") -> SourceFile:
        source = ts_parser.parse(rel_path, text)
        assert source is not None, f"no grammar for {rel_path}"
        return source

    return _parse
