"""Type pass: interfaces, object-shaped type aliases and enums as entities."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple

from .models import EntityDefinition, EnumDefinition, FieldDefinition
from .parser import SourceFile, iter_nodes, node_text, string_value

PRIMITIVE_TYPES = {
    "string", "number", "boolean", "date", "null", "undefined", "any",
    "unknown", "void", "never", "object", "bigint", "symbol",
}

_IMPORT_QUALIFIER = re.compile(r"import\([^)]*\)\.")
_ARRAY_GENERIC = re.compile(r"^(?:Readonly)?Array<(.+)>$")
_WHITESPACE = re.compile(r"\s+")

# Node types an object literal type may hide behind in a type alias.
_ALIAS_WRAPPERS = {"intersection_type", "parenthesized_type"}


def simplify_type(type_text: str) -> str:
    """Drop ``import("...").`` qualifiers and a trailing ``[]``."""
    text = _WHITESPACE.sub(" ", _IMPORT_QUALIFIER.sub("", type_text)).strip()
    generic = _ARRAY_GENERIC.match(text)
    if generic:
        return generic.group(1).strip()
    if text.endswith("[]"):
        text = text[:-2]
    return text


def is_array_type(type_text: str) -> bool:
    text = type_text.strip()
    return text.endswith("[]") or bool(_ARRAY_GENERIC.match(text))


def is_relation_type(type_text: str) -> bool:
    """True when any non-primitive, capitalised token appears in the type."""
    base = simplify_type(type_text).replace("[]", "")
    for token in base.split("|"):
        token = token.strip()
        generic = _ARRAY_GENERIC.match(token)
        if generic:
            token = generic.group(1).strip()
        if token and token.lower() not in PRIMITIVE_TYPES and token[0].isupper():
            return True
    return False


def _property_name(node: Any) -> str:
    if node.type == "string":
        return string_value(node)
    return node_text(node)


def _object_fields(body: Any) -> List[FieldDefinition]:
    fields: List[FieldDefinition] = []
    for member in body.named_children:
        if member.type != "property_signature":
            continue
        name_node = member.child_by_field_name("name")
        if name_node is None:
            continue
        optional = any(child.type == "?" for child in member.children)
        annotation = member.child_by_field_name("type")
        type_node = annotation.named_children[0] if annotation and annotation.named_children else None
        type_text = node_text(type_node) if type_node is not None else "any"
        fields.append(FieldDefinition(
            name=_property_name(name_node),
            type=simplify_type(type_text),
            optional=optional,
            is_array=is_array_type(type_text),
            is_relation=is_relation_type(type_text),
        ))
    return fields


def _object_types(value: Any) -> List[Any]:
    if value.type == "object_type":
        return [value]
    if value.type in _ALIAS_WRAPPERS:
        found: List[Any] = []
        for child in value.named_children:
            found.extend(_object_types(child))
        return found
    return []


def _interface_entity(node: Any, rel_path: str) -> Optional[EntityDefinition]:
    name = node.child_by_field_name("name")
    body = node.child_by_field_name("body")
    if name is None or body is None:
        return None
    return EntityDefinition(node_text(name), _object_fields(body), "interface", rel_path)


def _alias_entity(node: Any, rel_path: str) -> Optional[EntityDefinition]:
    name = node.child_by_field_name("name")
    value = node.child_by_field_name("value")
    if name is None or value is None or "{" not in node_text(value):
        return None
    fields: List[FieldDefinition] = []
    for obj in _object_types(value):
        fields.extend(_object_fields(obj))
    if not fields:
        return None
    return EntityDefinition(node_text(name), fields, "interface", rel_path)


def _enum_definition(node: Any, rel_path: str) -> Optional[EnumDefinition]:
    name = node.child_by_field_name("name")
    body = node.child_by_field_name("body")
    if name is None or body is None:
        return None
    values: List[str] = []
    for member in body.named_children:
        if member.type == "enum_assignment":
            member = member.child_by_field_name("name")
            if member is None:
                continue
        if member.type in ("property_identifier", "identifier"):
            values.append(node_text(member))
        elif member.type == "string":
            values.append(string_value(member))
    return EnumDefinition(node_text(name), values, "interface", rel_path)


def extract_types(source: SourceFile) -> Tuple[List[EntityDefinition], List[EnumDefinition]]:
    """Collect entity-like declarations and enums from *source*."""
    entities: List[EntityDefinition] = []
    enums: List[EnumDefinition] = []
    wanted = ("interface_declaration", "type_alias_declaration", "enum_declaration")
    for node in iter_nodes(source.root, wanted):
        if node.type == "interface_declaration":
            entity = _interface_entity(node, source.rel_path)
        elif node.type == "type_alias_declaration":
            entity = _alias_entity(node, source.rel_path)
        else:
            enum = _enum_definition(node, source.rel_path)
            if enum is not None:
                enums.append(enum)
            continue
        if entity is not None:
            entities.append(entity)
    return entities, enums
