# src/gradle_api_deps/graph_model.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from gradle_api_deps.identity import DependencyId, IdentityCatalog

logger = logging.getLogger(__name__)


@dataclass
class DependencyInfo:
    root: bool = False
    synthetic_group: bool = False
    path: str | None = None
    bom: DependencyId | None = None
    # ordered set of dependency names (dict keys keep insertion order)
    dependencies: dict[str, None] = field(default_factory=dict)

    @property
    def has_artifact(self) -> bool:
        return self.path is not None

    def add_dependency(self, name: str) -> None:
        self.dependencies.setdefault(name, None)


class DependencyGraph:
    """
    Dependency entries keyed by name.

    Coordinates (version/group) live in the graph's IdentityCatalog; keys and edges are
    plain names, so coordinates can change at any time without re-keying anything.
    """

    def __init__(self, gradle_version: str, sources_archive_file: str) -> None:
        self.gradle_version = gradle_version
        self.sources_archive_file = sources_archive_file
        self.catalog = IdentityCatalog(gradle_version)
        self.entries: dict[str, DependencyInfo] = {}

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def items(self) -> list[tuple[str, DependencyInfo]]:
        # snapshot, so passes may register new entries while iterating
        return list(self.entries.items())

    def identity(self, name: str) -> DependencyId:
        return self.catalog.get(name)

    def intern(self, dep_id: DependencyId) -> DependencyId:
        return self.catalog.intern(dep_id)

    def id_for_path_or_name(
            self,
            path_or_name: str,
            version: str | None = None,
            group: str | None = None,
    ) -> DependencyId:
        return self.catalog.from_path_or_name(path_or_name, version=version, group=group)

    def id_for_role(self, role_name: str) -> DependencyId:
        return self.catalog.from_role_name(role_name)

    def register(self, dep_id: DependencyId, info: DependencyInfo) -> DependencyInfo:
        """Insert or replace the entry for dep_id (interning it first)."""
        name = self.intern(dep_id).name
        self.entries[name] = info
        return info

    def register_if_absent(self, dep_id: DependencyId, path: str | None) -> bool:
        name = self.intern(dep_id).name
        if name in self.entries:
            return False
        self.entries[name] = DependencyInfo(path=path)
        return True

    def add_edge(self, source: str, target: DependencyId) -> bool:
        target_name = self.intern(target).name
        if target_name == source:
            return False
        deps = self.entries[source].dependencies
        if target_name in deps:
            return False
        deps[target_name] = None
        return True

    def edge_count(self) -> int:
        return sum(len(info.dependencies) for info in self.entries.values())

    def all_dependencies(self, name: str) -> list[str]:
        """Ordered transitive closure: direct dependencies first, then their closures."""
        if name not in self.entries:
            raise KeyError(f"Not registered dependency: {name}")

        result: dict[str, None] = {}
        visiting = {name}

        def collect(current: str) -> None:
            direct = self.entries[current].dependencies
            for dep in direct:
                result.setdefault(dep, None)
            for dep in direct:
                if dep in visiting or dep not in self.entries:
                    continue
                visiting.add(dep)
                collect(dep)

        collect(name)
        result.pop(name, None)
        return list(result)

    def ungrouped(self) -> list[DependencyId]:
        return [self.identity(name) for name in self.entries if not self.identity(name).group]

    # -----------------------------
    # Redundancy reduction
    # -----------------------------

    def reduce_redundant_dependencies(self) -> None:
        """
        Drop direct edges that are already implied by another direct edge.

        1. If B depends on A, edges of B that A also has are removed (reachable via A).
           Repeated until nothing changes; every single removal keeps reachability.
        2. If B depends on everything an artifact-less (aggregate) entry A depends on,
           those edges of B collapse into one edge to A. Aggregates are tried with the
           largest edge set first, ties in insertion order.
        3. Step 1 once more, for edges made redundant by the collapse.
        """
        self._prune_transitive_edges()
        self._collapse_into_aggregates()
        self._prune_transitive_edges()

    def _prune_transitive_edges(self) -> None:
        changed = True
        while changed:
            changed = False
            for name, info in self.entries.items():
                if not info.dependencies:
                    continue
                for other_name, other in self.entries.items():
                    if other_name == name or name not in other.dependencies:
                        continue
                    redundant = [d for d in other.dependencies if d in info.dependencies and d != name]
                    if not redundant:
                        continue
                    for d in redundant:
                        del other.dependencies[d]
                    logger.debug("%s: dropped %d edge(s) reachable via %s", other_name, len(redundant), name)
                    changed = True

    def _collapse_into_aggregates(self) -> None:
        order = {name: i for i, name in enumerate(self.entries)}
        aggregates = sorted(
            (name for name, info in self.entries.items() if info.dependencies and not info.has_artifact),
            key=lambda n: (-len(self.entries[n].dependencies), order[n]),
        )
        for name in aggregates:
            info = self.entries[name]
            if not info.dependencies:
                continue
            for other_name, other in self.entries.items():
                if other_name == name or name in other.dependencies:
                    continue
                if not all(d in other.dependencies for d in info.dependencies):
                    continue
                collapsed: dict[str, None] = {}
                for d in other.dependencies:
                    collapsed.setdefault(name if d in info.dependencies else d, None)
                other.dependencies = collapsed
                logger.debug("%s: collapsed %d edge(s) into %s", other_name, len(info.dependencies), name)
