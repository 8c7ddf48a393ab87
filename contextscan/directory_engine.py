"""Directory topology rendered as an indented text tree."""

from __future__ import annotations

from typing import Dict, List

from .engine_base import ExtractionEngine
from .fs_utils import get_file_size
from .models import DirectoryNode


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


class DirectoryStructureEngine(ExtractionEngine):
    kind = "directory"

    def build_tree(self) -> DirectoryNode:
        root = DirectoryNode(name=self.workspace.name, path="", is_directory=True)
        nodes: Dict[str, DirectoryNode] = {"": root}
        for entry in self.walk():
            parent_path = entry.rel_path.rsplit("/", 1)[0] if "/" in entry.rel_path else ""
            parent = nodes.get(parent_path)
            if parent is None:
                continue
            node = DirectoryNode(name=entry.name, path=entry.rel_path, is_directory=entry.is_dir)
            if entry.is_dir:
                nodes[entry.rel_path] = node
            else:
                node.size = get_file_size(entry.path) or 0
                node.file_count = 1
            parent.children.append(node)
        _aggregate(root)
        return root

    def generate(self) -> str:
        tree = self.build_tree()
        self.file_count = tree.file_count
        lines = [f"{tree.name}/ ({_counts(tree)})"]
        _render(tree.children, "", lines)
        return (
            "# Directory Structure\n\n```\n"
            + "\n".join(lines)
            + f"\n```\n\n**Total:** {tree.file_count} files, {format_size(tree.size)}\n"
        )


def _aggregate(node: DirectoryNode) -> None:
    if not node.is_directory:
        return
    node.children.sort(key=lambda c: (not c.is_directory, c.name))
    node.size = 0
    node.file_count = 0
    for child in node.children:
        _aggregate(child)
        node.size += child.size
        node.file_count += child.file_count


def _counts(node: DirectoryNode) -> str:
    noun = "file" if node.file_count == 1 else "files"
    return f"{node.file_count} {noun}, {format_size(node.size)}"


def _render(children: List[DirectoryNode], prefix: str, lines: List[str]) -> None:
    for index, child in enumerate(children):
        last = index == len(children) - 1
        connector = "└── " if last else "├── "
        if child.is_directory:
            lines.append(f"{prefix}{connector}{child.name}/ ({_counts(child)})")
            _render(child.children, prefix + ("    " if last else "│   "), lines)
        else:
            lines.append(f"{prefix}{connector}{child.name} ({format_size(child.size)})")
