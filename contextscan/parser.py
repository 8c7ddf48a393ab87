"""Tree-sitter source model for the TypeScript / JavaScript files being scanned.

Engines never touch tree-sitter directly.  They ask a :class:`ParseSession`
for a :class:`SourceFile` and hand it to the extraction passes
(``type_parser``, ``import_analyzer``, ``call_graph``), so the parsing
backend can be swapped without touching engine logic.
"""

from __future__ import annotations

import importlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .config import ScanOptions
from .fs_utils import read_safe

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

CODE_EXTENSIONS: Set[str] = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"}


def language_for_path(path: str) -> Optional[str]:
    return LANGUAGE_MAP.get(Path(path).suffix.lower())


@dataclass
class SourceFile:
    """A parsed file: its relative path, text and syntax tree."""
    rel_path: str
    language: str
    text: str
    tree: Any

    @property
    def root(self) -> Any:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return bool(self.root.has_error)


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class SourceParser(ABC):
    """Turns source text into a :class:`SourceFile`."""

    @abstractmethod
    def parse(self, rel_path: str, text: str) -> Optional[SourceFile]:
        """Parse *text*; return None when the language is unsupported."""
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        ...


# ===================================================================
# Tree-sitter Parser
# ===================================================================

class TreeSitterSourceParser(SourceParser):
    """Error-tolerant parser for TypeScript, TSX and JavaScript.

    Tree-sitter keeps every token and recovers from syntax errors, so a
    half-edited file still yields its well-formed declarations.
    """

    # language -> (grammar module, factory attribute)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
        "javascript": ("tree_sitter_javascript", "language"),
    }

    def __init__(self, languages: Optional[List[str]] = None) -> None:
        self._parsers: Dict[str, Any] = {}
        self._requested_languages = languages or list(self._GRAMMAR_MODULES)
        self._init_parsers()

    def _init_parsers(self) -> None:
        from tree_sitter import Language, Parser as TSParser

        for lang in self._requested_languages:
            grammar = self._GRAMMAR_MODULES.get(lang)
            if grammar is None:
                logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, factory = grammar
            try:
                mod = importlib.import_module(mod_name)
                self._parsers[lang] = TSParser(Language(getattr(mod, factory)()))
                logger.debug("Loaded tree-sitter parser for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", lang, exc)

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    def parse(self, rel_path: str, text: str) -> Optional[SourceFile]:
        lang = language_for_path(rel_path)
        if lang is None or lang not in self._parsers:
            return None
        tree = self._parsers[lang].parse(text.encode("utf-8"))
        if tree.root_node.has_error:
            logger.debug("Syntax errors in %s, extracting what parsed", rel_path)
        return SourceFile(rel_path=rel_path, language=lang, text=text, tree=tree)


# ===================================================================
# Parse session
# ===================================================================

class ParseSession:
    """Per-scan cache of parsed files, owned by the orchestrator.

    Several engines read the same sources; the session parses each file
    once and hands out the cached tree.  The lock serialises access
    because a timed-out engine may still be running in the background
    when the next engine starts.
    """

    def __init__(
        self,
        root: Path,
        options: Optional[ScanOptions] = None,
        parser: Optional[SourceParser] = None,
    ) -> None:
        self.root = root
        self.options = options or ScanOptions()
        self._parser = parser
        self._cache: Dict[str, Optional[SourceFile]] = {}
        self._lock = threading.Lock()

    @property
    def parser(self) -> SourceParser:
        if self._parser is None:
            self._parser = TreeSitterSourceParser()
        return self._parser

    def get(self, rel_path: str) -> Optional[SourceFile]:
        """Return the parsed file, or None if it is unreadable or unparsable."""
        with self._lock:
            if rel_path in self._cache:
                return self._cache[rel_path]
            source: Optional[SourceFile] = None
            text = read_safe(self.root / rel_path, self.options.max_file_bytes)
            if text is not None:
                try:
                    source = self.parser.parse(rel_path, text)
                except Exception as exc:
                    logger.warning("Failed to parse %s: %s", rel_path, exc)
            self._cache[rel_path] = source
            return source

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def close(self) -> None:
        with self._lock:
            self._cache.clear()

    def __enter__(self) -> "ParseSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# ===================================================================
# Shared syntax-tree helpers
# ===================================================================

def node_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_of(node: Any) -> int:
    """1-based line number of *node*."""
    return node.start_point[0] + 1


def string_value(node: Any) -> str:
    """Text of a string literal node without its quotes."""
    text = node_text(node)
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def iter_nodes(root: Any, types: Iterable[str]) -> Iterator[Any]:
    """Pre-order traversal yielding every descendant whose type is in *types*."""
    wanted = set(types)
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in wanted:
            yield node
        stack.extend(reversed(node.children))
