"""Data model: entities and enums from type declarations and the ORM schema."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set

from .engine_base import ExtractionEngine
from .fs_utils import is_directory, read_safe, relative_posix
from .models import DataModel, EntityDefinition, EnumDefinition, FieldDefinition, Relationship
from .schema_parser import find_schema_file, parse_prisma_schema
from .type_parser import extract_types

logger = logging.getLogger(__name__)

MODEL_DIRECTORIES = (
    "models", "entities", "types", "schema", "schemas",
    "src/models", "src/entities", "src/types", "src/schema", "src/schemas",
    "lib/models", "lib/entities", "lib/types",
    "app/models", "app/entities",
)
TYPE_SOURCE_EXTENSIONS = {".ts", ".tsx"}


def _base_type(type_text: str) -> str:
    for token in type_text.replace("[]", "").split("|"):
        token = token.strip()
        if token and token not in ("null", "undefined"):
            return token
    return ""


def _has_back_reference(
    target: EntityDefinition, source: EntityDefinition, exclude: FieldDefinition, is_array: bool,
) -> bool:
    """True if *target* has any field of the given arity pointing back at *source*."""
    return any(
        candidate is not exclude
        and candidate.is_array == is_array
        and _base_type(candidate.type) == source.name
        for candidate in target.fields
    )


def derive_relationships(entities: Sequence[EntityDefinition]) -> List[Relationship]:
    """Infer relationship cardinality from fields that point at other entities.

    An array field is many-to-many when the target has any array field back
    to the source, otherwise one-to-many.  A scalar field is one-to-one when
    the target has any scalar field back, otherwise many-to-one.
    """
    by_name = {e.name: e for e in entities}
    relationships: List[Relationship] = []
    for entity in entities:
        for field in entity.fields:
            if not field.is_relation:
                continue
            target = by_name.get(_base_type(field.type))
            if target is None:
                continue
            if field.is_array:
                many = _has_back_reference(target, entity, field, is_array=True)
                kind = "many-to-many" if many else "one-to-many"
            else:
                single = _has_back_reference(target, entity, field, is_array=False)
                kind = "one-to-one" if single else "many-to-one"
            relationships.append(Relationship(entity.name, target.name, kind, field.name))
    return relationships


class DataModelEngine(ExtractionEngine):
    kind = "dataModel"

    def build_model(self) -> DataModel:
        entities: Dict[str, EntityDefinition] = {}
        enums: Dict[str, EnumDefinition] = {}
        seen: Set[str] = set()

        for directory in MODEL_DIRECTORIES:
            if not is_directory(self.workspace / directory):
                continue
            for entry in self.walk(start=directory):
                if entry.is_dir or entry.suffix not in TYPE_SOURCE_EXTENSIONS or entry.rel_path in seen:
                    continue
                seen.add(entry.rel_path)
                source = self.parse(entry.rel_path)
                if source is None:
                    continue
                self.file_count += 1
                found_entities, found_enums = extract_types(source)
                for entity in found_entities:
                    entities[entity.name] = entity
                for enum in found_enums:
                    enums[enum.name] = enum

        # Schema declarations are ground truth and replace code-derived ones.
        schema_path = find_schema_file(self.workspace)
        if schema_path is not None:
            rel = relative_posix(self.workspace, schema_path)
            if not self.matcher.is_ignored(rel):
                text = read_safe(schema_path, self.options.max_file_bytes)
                if text is None:
                    self.error_count += 1
                else:
                    self.file_count += 1
                    schema_entities, schema_enums = parse_prisma_schema(text, rel)
                    for entity in schema_entities:
                        entities[entity.name] = entity
                    for enum in schema_enums:
                        enums[enum.name] = enum

        merged = list(entities.values())
        return DataModel(
            entities=merged,
            enums=list(enums.values()),
            relationships=derive_relationships(merged),
        )

    def generate(self) -> str:
        model = self.build_model()
        logger.debug(
            "Data model: %d entities, %d enums, %d relationships",
            len(model.entities), len(model.enums), len(model.relationships),
        )
        return self.dump(model)
