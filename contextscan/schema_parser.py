"""Block-regex parser for Prisma ORM schemas."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .models import EntityDefinition, EnumDefinition, FieldDefinition

logger = logging.getLogger(__name__)

SCHEMA_CANDIDATES = ("prisma/schema.prisma", "schema.prisma")

PRISMA_TYPE_MAP = {
    "String": "string",
    "Int": "number",
    "Float": "number",
    "Boolean": "boolean",
    "DateTime": "Date",
    "Json": "object",
    "Bytes": "Buffer",
    "BigInt": "bigint",
    "Decimal": "number",
}

_BLOCK_HEADER = re.compile(r"^\s*(model|enum)\s+(\w+)\s*\{", re.MULTILINE)
_FIELD_LINE = re.compile(r"^(\w+)\s+(\w+)(\[\])?(\?)?")


def find_schema_file(root: Path) -> Optional[Path]:
    for candidate in SCHEMA_CANDIDATES:
        path = root / candidate
        if path.is_file():
            return path
    return None


def _iter_blocks(text: str) -> Iterator[Tuple[str, str, str]]:
    """Yield ``(keyword, name, body)`` using balanced-brace matching."""
    for match in _BLOCK_HEADER.finditer(text):
        start = match.end()
        depth = 1
        i = start
        while i < len(text) and depth:
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
            i += 1
        if depth:
            logger.debug("Unbalanced braces in %s %s", match.group(1), match.group(2))
            continue
        yield match.group(1), match.group(2), text[start:i - 1]


def _body_lines(body: str) -> Iterator[str]:
    for line in body.splitlines():
        line = line.strip()
        if not line or line.startswith("//") or line.startswith("@@"):
            continue
        yield line


def _parse_field(line: str) -> Optional[FieldDefinition]:
    match = _FIELD_LINE.match(line)
    if not match:
        return None
    name, prisma_type, array, optional = match.groups()
    is_relation = "@relation" in line or (
        prisma_type not in PRISMA_TYPE_MAP and prisma_type[0].isupper()
    )
    return FieldDefinition(
        name=name,
        type=PRISMA_TYPE_MAP.get(prisma_type, prisma_type),
        optional=bool(optional),
        is_array=bool(array),
        is_relation=is_relation,
    )


def parse_prisma_schema(
    text: str,
    file_path: Optional[str] = None,
) -> Tuple[List[EntityDefinition], List[EnumDefinition]]:
    entities: List[EntityDefinition] = []
    enums: List[EnumDefinition] = []

    for keyword, name, body in _iter_blocks(text):
        if keyword == "model":
            fields = [f for f in (_parse_field(line) for line in _body_lines(body)) if f]
            entities.append(EntityDefinition(name, fields, "schema", file_path))
        else:
            values = [line.split()[0] for line in _body_lines(body)]
            enums.append(EnumDefinition(name, values, "schema", file_path))

    return entities, enums
