"""Architecture: layers, entry points and the import graph."""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from .engine_base import ExtractionEngine
from .import_analyzer import analyze_imports, external_package_name
from .models import ArchitectureModel, DependencyEdge, EntryPoint, LayerInfo
from .parser import CODE_EXTENSIONS
from .patterns import LAYER_ORDER, classify_entry_point, classify_layer


class ArchitectureEngine(ExtractionEngine):
    kind = "architecture"

    def build_model(self) -> ArchitectureModel:
        layers: Dict[str, LayerInfo] = {}
        dir_layers: Dict[str, Optional[str]] = {}
        entry_points: List[EntryPoint] = []
        edges: List[DependencyEdge] = []
        externals: Set[str] = set()

        for entry in self.walk():
            if entry.is_dir:
                layer = classify_layer(entry.rel_path)
                dir_layers[entry.rel_path] = layer
                if layer is not None:
                    layers.setdefault(layer, LayerInfo(layer=layer)).directories.append(entry.rel_path)
                continue

            parent = entry.rel_path.rsplit("/", 1)[0] if "/" in entry.rel_path else ""
            parent_layer = dir_layers.get(parent)
            if parent_layer is not None:
                layers[parent_layer].file_count += 1

            match = classify_entry_point(entry.rel_path)
            if match is not None:
                kind, name = match
                entry_points.append(EntryPoint(entry.rel_path, kind, name))

            if entry.suffix not in CODE_EXTENSIONS:
                continue
            source = self.parse(entry.rel_path)
            if source is None:
                continue
            self.file_count += 1
            for info in analyze_imports(source, self.options.alias_prefixes).imports:
                edges.append(DependencyEdge(entry.rel_path, info.module, info.kind))
                if info.kind == "external" and not info.module.startswith("node:"):
                    externals.add(external_package_name(info.module))

        return ArchitectureModel(
            layers=[layers[name] for name in LAYER_ORDER if name in layers],
            entry_points=entry_points,
            dependency_graph=edges,
            external_dependencies=sorted(externals),
        )

    def generate(self) -> str:
        return self.dump(self.build_model())
