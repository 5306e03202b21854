# src/gradle_api_deps/module_registry.py
from __future__ import annotations

import logging
import os
import re
import zipfile
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator

from gradle_api_deps.classfile import MethodCall, iter_method_calls
from gradle_api_deps.context import PipelineContext
from gradle_api_deps.graph_model import DependencyGraph
from gradle_api_deps.identity import GraphError
from gradle_api_deps.module_classpath import GRADLE_MODULE_PREFIX

logger = logging.getLogger(__name__)

# Modules legitimately looked up by name at runtime; everything else matching the
# call signature is a false positive.
ALLOWED_MODULES: frozenset[str] = frozenset({
    "gradle-runtime-api-info",
})

EXTRA_MODULES_ENV = "GRADLE_API_DEPS_EXTRA_REGISTRY_MODULES"

MODULE_NAME_ARG_DESCRIPTOR_PREFIX = "(Ljava/lang/String;)"
MODULE_RETURN_DESCRIPTOR_SUFFIX = "/Module;"


class ModuleFileNotFoundError(GraphError):
    pass


def allowed_modules_from_env() -> frozenset[str]:
    raw = os.environ.get(EXTRA_MODULES_ENV, "")
    extra = {m.strip() for m in raw.split(",") if m.strip()}
    return ALLOWED_MODULES | extra


def is_module_registry_call(call: MethodCall) -> bool:
    return (
        call.owner.startswith("org/gradle/")
        and call.owner.endswith("/ModuleRegistry")
        and call.descriptor.startswith(MODULE_NAME_ARG_DESCRIPTOR_PREFIX)
        and call.descriptor.endswith(MODULE_RETURN_DESCRIPTOR_SUFFIX)
    )


def iter_module_lookups(ctx: PipelineContext, jar: Path) -> Iterator[tuple[str, str]]:
    """(class name, module name) for every ModuleRegistry lookup with a literal name."""
    with zipfile.ZipFile(jar) as zf:
        class_entries = [i for i in zf.infolist() if not i.is_dir() and i.filename.endswith(".class")]
        for entry in class_entries:
            ctx.cancellation.raise_if_cancelled()
            for call in iter_method_calls(zf.read(entry)):
                if call.preceding_constant is not None and is_module_registry_call(call):
                    yield call.class_name, call.preceding_constant


def find_module_file(gradle_files_dir: Path, module_name: str) -> Path | None:
    """First "<module>-<digit>...jar" under the extraction dir (walk order is sorted)."""
    pattern = re.compile(re.escape(module_name) + r"-\d.*\.jar")
    for dirpath, dirnames, filenames in os.walk(gradle_files_dir):
        dirnames.sort()
        for file_name in sorted(filenames):
            if pattern.fullmatch(file_name):
                return Path(dirpath) / file_name
    return None


def process_module_registry(
        graph: DependencyGraph,
        ctx: PipelineContext,
        allowed_modules: Iterable[str] | None = None,
) -> DependencyGraph:
    """
    Breadth-first scan of Gradle module jars for ModuleRegistry lookups.

    Seeded with every current entry; a module discovered this way is registered once
    and then scanned itself.
    """
    allowed = frozenset(allowed_modules) if allowed_modules is not None else allowed_modules_from_env()
    frontier: deque[str] = deque(graph.entries)
    discovered = 0

    while frontier:
        ctx.cancellation.raise_if_cancelled()
        name = frontier.popleft()
        info = graph.entries[name]
        if info.path is None:
            continue

        artifact = ctx.project_file(info.path)
        if not artifact.name.startswith(GRADLE_MODULE_PREFIX):
            continue

        pending: list[str] = []
        for class_name, module_name in iter_module_lookups(ctx, artifact):
            if module_name == name or module_name not in allowed:
                continue

            module_file = find_module_file(ctx.gradle_files_dir, module_name)
            if module_file is None:
                raise ModuleFileNotFoundError(
                    f"{class_name}: ModuleRegistry usage scan: module file not found for module: {module_name}"
                )

            dep_id = graph.id_for_path_or_name(module_file.name)
            if graph.add_edge(name, dep_id):
                logger.debug("%s -> %s (ModuleRegistry lookup in %s)", name, dep_id, class_name)
            if graph.register_if_absent(dep_id, ctx.project_relative_path(module_file)):
                pending.append(dep_id.name)

        # merged after the jar is fully scanned
        frontier.extend(pending)
        discovered += len(pending)

    logger.info("Module registry: %d new module(s) discovered", discovered)
    return graph
