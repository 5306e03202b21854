# src/gradle_api_deps/serialization.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gradle_api_deps.graph_model import DependencyGraph, DependencyInfo
from gradle_api_deps.identity import DependencyId


class RawDependencies(BaseModel):
    """Classpath listing produced by the environment extractor: role -> jar paths."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    gradle_version: str = Field(alias="gradleVersion")
    sources_archive_file: str = Field(alias="sourcesArchiveFile")
    dependencies: dict[str, list[str]] = Field(default_factory=dict)


class DependencyInfoDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    root: bool = False
    synthetic_group: bool = Field(default=False, alias="syntheticGroup")
    path: str | None = None
    bom: str | None = None
    dependencies: list[str] = Field(default_factory=list)


class GraphDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    gradle_version: str = Field(alias="gradleVersion")
    sources_archive_file: str = Field(alias="sourcesArchiveFile")
    dependencies: dict[str, DependencyInfoDocument]


def load_raw_dependencies(path: str | Path) -> RawDependencies:
    return RawDependencies.model_validate_json(Path(path).read_text(encoding="utf-8"))


def graph_from_document(doc: GraphDocument) -> DependencyGraph:
    graph = DependencyGraph(doc.gradle_version, doc.sources_archive_file)
    for key, info_doc in doc.dependencies.items():
        dep_id = graph.intern(DependencyId.parse(key))
        info = DependencyInfo(
            root=info_doc.root,
            synthetic_group=info_doc.synthetic_group,
            path=info_doc.path,
            bom=DependencyId.parse(info_doc.bom) if info_doc.bom else None,
        )
        for dep in info_doc.dependencies:
            info.add_dependency(graph.intern(DependencyId.parse(dep)).name)
        graph.entries[dep_id.name] = info
    return graph


def graph_to_document(graph: DependencyGraph) -> GraphDocument:
    entries: dict[str, DependencyInfoDocument] = {}
    for name, info in graph.entries.items():
        entries[str(graph.identity(name))] = DependencyInfoDocument(
            root=info.root,
            synthetic_group=info.synthetic_group,
            path=info.path,
            bom=str(info.bom) if info.bom else None,
            dependencies=[str(graph.identity(dep)) for dep in info.dependencies],
        )
    return GraphDocument(
        gradle_version=graph.gradle_version,
        sources_archive_file=graph.sources_archive_file,
        dependencies=entries,
    )


def graph_to_json_obj(graph: DependencyGraph, *, reduce: bool = True) -> dict[str, Any]:
    """Wire form of the graph; default-valued fields are omitted."""
    if reduce:
        graph.reduce_redundant_dependencies()
    doc = graph_to_document(graph)
    return {
        "gradleVersion": doc.gradle_version,
        "sourcesArchiveFile": doc.sources_archive_file,
        "dependencies": {
            key: info.model_dump(by_alias=True, exclude_defaults=True)
            for key, info in doc.dependencies.items()
        },
    }


def load_graph(path: str | Path) -> DependencyGraph:
    doc = GraphDocument.model_validate_json(Path(path).read_text(encoding="utf-8"))
    return graph_from_document(doc)


def dump_graph(graph: DependencyGraph, path: str | Path, *, reduce: bool = True) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(graph_to_json_obj(graph, reduce=reduce), indent=2) + "\n", encoding="utf-8")
