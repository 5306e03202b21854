# src/gradle_api_deps/validate_basic.py
from __future__ import annotations

from gradle_api_deps.graph_model import DependencyGraph
from gradle_api_deps.identity import GraphError


class GraphValidationError(GraphError):
    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Completed graph is invalid:\n  " + "\n  ".join(problems))


def collect_problems(graph: DependencyGraph) -> list[str]:
    problems: list[str] = []

    for name, info in graph.entries.items():
        dep_id = graph.identity(name)
        if not dep_id.group:
            problems.append(f"{dep_id}: empty group")
        if not dep_id.version:
            problems.append(f"{dep_id}: empty version")
        if name in info.dependencies:
            problems.append(f"{dep_id}: depends on itself")

        for dep in info.dependencies:
            if dep not in graph.entries:
                target = graph.identity(dep) if dep in graph.catalog else dep
                problems.append(f"{dep_id}: dependency {target} is not registered")

        if info.bom is not None and not info.bom.group:
            problems.append(f"{dep_id}: BOM {info.bom} without group")

    return problems


def validate_completed_graph(graph: DependencyGraph) -> None:
    """
    End-of-pipeline invariants: every entry grouped and versioned, every edge target
    registered, no self edges. Keys are names, so names are unique by construction.
    """
    problems = collect_problems(graph)
    if problems:
        raise GraphValidationError(problems)
