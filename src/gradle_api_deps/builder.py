# src/gradle_api_deps/builder.py
from __future__ import annotations

import logging

from gradle_api_deps.graph_model import DependencyGraph, DependencyInfo
from gradle_api_deps.identity import GraphError
from gradle_api_deps.serialization import RawDependencies
from gradle_api_deps.utils import norm_relpath

logger = logging.getLogger(__name__)


class MultiplePrimaryPathsError(GraphError):
    pass


def build_graph(raw: RawDependencies) -> DependencyGraph:
    """
    Initial graph from the raw classpath listing.

    - every role (gradleApi, localGroovy, gradleTestKit, ...) becomes a root entry
    - the role's own jar (same name as the role) becomes its artifact path
    - every other jar of the role becomes a direct dependency
    - every jar mentioned anywhere gets an entry of its own
    """
    graph = DependencyGraph(raw.gradle_version, raw.sources_archive_file)

    for role_name, paths in raw.dependencies.items():
        role_id = graph.id_for_role(role_name)
        role_info = graph.register(role_id, DependencyInfo(root=True))

        for path in paths:
            path_id = graph.id_for_path_or_name(path)
            if path_id.name == role_id.name:
                if role_info.path is not None:
                    raise MultiplePrimaryPathsError(
                        f"Multiple primary paths for {role_name} ({graph.identity(role_id.name)}): {paths}"
                    )
                role_info.path = norm_relpath(path)
            else:
                graph.add_edge(role_id.name, path_id)

    for paths in raw.dependencies.values():
        for path in paths:
            path_id = graph.id_for_path_or_name(path)
            graph.register_if_absent(path_id, norm_relpath(path))

    logger.info("Built initial graph: %d entries, %d edges", len(graph), graph.edge_count())
    return graph
