"""Import/export pass over a parsed source file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .config import DEFAULT_ALIAS_PREFIXES
from .parser import SourceFile, iter_nodes, node_text, string_value

_NAMED_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
}
_VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}


@dataclass
class ImportInfo:
    module: str
    kind: str
    imported_names: List[str] = field(default_factory=list)
    line_number: int = 0


@dataclass
class FileImports:
    rel_path: str
    imports: List[ImportInfo] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)


def classify_specifier(module: str, alias_prefixes: Sequence[str] = DEFAULT_ALIAS_PREFIXES) -> str:
    if module.startswith("."):
        return "relative"
    if any(module.startswith(prefix) for prefix in alias_prefixes):
        return "alias"
    return "external"


def external_package_name(module: str) -> str:
    """``@scope/pkg/sub`` -> ``@scope/pkg``; ``pkg/sub`` -> ``pkg``."""
    parts = module.split("/")
    if module.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def _import_clause_names(statement: Any) -> List[str]:
    names: List[str] = []
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                names.append("default")
            elif part.type == "namespace_import":
                names.append("*")
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type == "import_specifier":
                        names.append(node_text(spec.child_by_field_name("name")))
    return names or ["side-effect"]


def _export_clause_names(statement: Any) -> List[str]:
    names: List[str] = []
    for clause in statement.named_children:
        if clause.type != "export_clause":
            continue
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            target = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
            if target is not None:
                names.append(node_text(target))
    return names


def _declared_names(declaration: Any) -> List[str]:
    if declaration.type in _NAMED_DECLARATIONS:
        name = declaration.child_by_field_name("name")
        return [node_text(name)] if name is not None else []
    if declaration.type in _VARIABLE_DECLARATIONS:
        names = []
        for declarator in declaration.named_children:
            if declarator.type == "variable_declarator":
                name = declarator.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    names.append(node_text(name))
        return names
    return []


def export_names(statement: Any) -> List[str]:
    """Names exported by one ``export_statement`` node."""
    names: List[str] = []
    if any(child.type == "default" for child in statement.children):
        names.append("default")
    declaration = statement.child_by_field_name("declaration")
    if declaration is not None:
        names.extend(_declared_names(declaration))
    names.extend(_export_clause_names(statement))
    return names


def _call_import(call: Any, alias_prefixes: Sequence[str]) -> Optional[ImportInfo]:
    func = call.child_by_field_name("function")
    args = call.child_by_field_name("arguments")
    if func is None or args is None:
        return None
    if func.type == "import":
        label = "dynamic"
    elif func.type == "identifier" and node_text(func) == "require":
        label = "require"
    else:
        return None
    first = args.named_children[0] if args.named_children else None
    if first is None or first.type != "string":
        return None
    module = string_value(first)
    return ImportInfo(module, classify_specifier(module, alias_prefixes), [label], call.start_point[0] + 1)


def analyze_imports(
    source: SourceFile,
    alias_prefixes: Sequence[str] = DEFAULT_ALIAS_PREFIXES,
) -> FileImports:
    """Collect imports, re-exports, ``require()`` calls and exported names."""
    result = FileImports(rel_path=source.rel_path)
    exports: List[str] = []

    for node in iter_nodes(source.root, ("import_statement", "export_statement", "call_expression")):
        if node.type == "call_expression":
            info = _call_import(node, alias_prefixes)
            if info is not None:
                result.imports.append(info)
            continue

        module_node = node.child_by_field_name("source")
        if node.type == "import_statement":
            if module_node is None:
                continue
            module = string_value(module_node)
            result.imports.append(ImportInfo(
                module, classify_specifier(module, alias_prefixes),
                _import_clause_names(node), node.start_point[0] + 1,
            ))
            continue

        # export_statement
        if module_node is not None:
            module = string_value(module_node)
            result.imports.append(ImportInfo(
                module, classify_specifier(module, alias_prefixes),
                _export_clause_names(node) or ["*"], node.start_point[0] + 1,
            ))
        exports.extend(export_names(node))

    result.exports = list(dict.fromkeys(exports))
    return result
