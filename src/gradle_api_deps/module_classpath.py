# src/gradle_api_deps/module_classpath.py
from __future__ import annotations

import logging
import re
from pathlib import Path

from gradle_api_deps.context import PipelineContext
from gradle_api_deps.graph_model import DependencyGraph

logger = logging.getLogger(__name__)

GRADLE_MODULE_PREFIX = "gradle-"

# Jars bundled with every Gradle runtime; represented by other roles or irrelevant.
BUNDLED_RUNTIME_PREFIXES = (
    "gradle-",
    "groovy-",
    "kotlin-",
    "native-platform-",
    "file-events-",
    "jansi-",
)

NATIVE_LIBRARY_RE = re.compile(r"\.(so|dll|[^.]*lib)$")


def is_essential_entry(entry_name: str) -> bool:
    """Class files (module descriptors excluded) and native libraries."""
    if entry_name.endswith(".class"):
        return entry_name != "module-info.class" and not entry_name.endswith("/module-info.class")
    return NATIVE_LIBRARY_RE.search(entry_name) is not None


def _candidate_base_dir(ctx: PipelineContext, artifact: Path) -> Path:
    base_dir = artifact.parent
    if base_dir.resolve() == ctx.gradle_files_dir:
        base_dir = base_dir / "lib"
    return base_dir


def process_module_classpath(graph: DependencyGraph, ctx: PipelineContext) -> DependencyGraph:
    """
    Link Gradle module jars to the jars their embedded classpath manifests declare.

    A declared jar only counts if it contributes class/native entries that the module
    jar itself ships (its "essential" entries); anything else is ignored.
    """
    added_edges = 0
    added_entries = 0

    for name, info in graph.items():
        ctx.cancellation.raise_if_cancelled()
        if info.path is None:
            continue

        artifact = ctx.project_file(info.path)
        if not artifact.name.startswith(GRADLE_MODULE_PREFIX):
            continue

        essential = {e for e in ctx.archives.entry_names(artifact) if is_essential_entry(e)}

        candidate_paths: dict[str, None] = {}
        for module in ctx.archives.classpath_modules(artifact).values():
            for p in module.all_paths():
                if p.endswith(".jar"):
                    candidate_paths.setdefault(p, None)

        base_dir = _candidate_base_dir(ctx, artifact)
        for candidate_path in candidate_paths:
            if Path(candidate_path).name.startswith(BUNDLED_RUNTIME_PREFIXES):
                continue

            candidate = base_dir / candidate_path
            if not candidate.is_file():
                logger.debug("%s: classpath entry %s not found, skipping", name, candidate_path)
                continue

            if not any(e in essential for e in ctx.archives.entry_names(candidate)):
                logger.debug("%s: %s shares no essential entries, skipping", name, candidate_path)
                continue

            dep_id = graph.id_for_path_or_name(candidate.name)
            if graph.add_edge(name, dep_id):
                added_edges += 1
                logger.debug("%s -> %s (module classpath)", name, dep_id)
            if graph.register_if_absent(dep_id, ctx.project_relative_path(candidate)):
                added_entries += 1

    logger.info("Module classpath: %d new edges, %d new entries", added_edges, added_entries)
    return graph
