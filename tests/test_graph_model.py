import itertools
import json

import pytest

from gradle_api_deps.graph_model import DependencyGraph, DependencyInfo
from gradle_api_deps.identity import DependencyId
from gradle_api_deps.serialization import dump_graph, graph_to_json_obj, load_graph


def _graph(edges: dict[str, list[str]], artifactless: set[str] = frozenset()) -> DependencyGraph:
    graph = DependencyGraph("7.0", "gradle-7.0-src.zip")
    for name in edges:
        path = None if name in artifactless else f"lib/{name}-1.0.jar"
        graph.register(DependencyId(name, "1.0", "g"), DependencyInfo(path=path))
    for name, targets in edges.items():
        for target in targets:
            graph.add_edge(name, DependencyId(target))
    return graph


def _closures(graph: DependencyGraph, names=None) -> dict[str, set[str]]:
    keep = set(names) if names is not None else set(graph.entries)
    return {n: set(graph.all_dependencies(n)) & keep for n in graph.entries}


def test_add_edge_refuses_self_and_duplicates():
    graph = _graph({"a": [], "b": []})
    assert graph.add_edge("a", DependencyId("b"))
    assert not graph.add_edge("a", DependencyId("b"))
    assert not graph.add_edge("a", DependencyId("a"))
    assert list(graph.entries["a"].dependencies) == ["b"]


def test_all_dependencies_is_ordered_and_cycle_safe():
    graph = _graph({"a": ["b", "c"], "b": ["d"], "c": ["a"], "d": []})
    assert graph.all_dependencies("a") == ["b", "c", "d"]
    assert graph.all_dependencies("c") == ["a", "b", "d"]
    with pytest.raises(KeyError):
        graph.all_dependencies("missing")


def test_reduce_drops_edges_reachable_through_dependency():
    graph = _graph({"app": ["lib", "util", "other"], "lib": ["util"], "util": [], "other": []})
    graph.reduce_redundant_dependencies()
    assert list(graph.entries["app"].dependencies) == ["lib", "other"]


def test_reduce_collapses_into_artifactless_aggregate():
    graph = _graph(
        {"api": ["x", "y"], "consumer": ["x", "y", "z"], "x": [], "y": [], "z": []},
        artifactless={"api"},
    )
    graph.reduce_redundant_dependencies()
    assert list(graph.entries["consumer"].dependencies) == ["api", "z"]
    assert list(graph.entries["api"].dependencies) == ["x", "y"]


def test_reduce_keeps_superset_when_aggregate_has_artifact():
    graph = _graph({"api": ["x", "y"], "consumer": ["x", "y", "z"], "x": [], "y": [], "z": []})
    graph.reduce_redundant_dependencies()
    assert list(graph.entries["consumer"].dependencies) == ["x", "y", "z"]


GRAPHS = [
    {"a": ["b", "c", "d"], "b": ["c"], "c": ["d"], "d": []},
    {"a": ["b", "c"], "b": ["a", "c"], "c": []},
    {"a": ["b", "c", "d"], "b": ["d"], "c": ["d"], "d": ["a"]},
    {"r": ["m", "n", "o", "p"], "m": ["n", "o"], "n": ["o"], "o": [], "p": ["m", "o"]},
]


@pytest.mark.parametrize("edges", GRAPHS)
def test_reduce_preserves_reachability(edges):
    graph = _graph(edges)
    before = _closures(graph)
    edge_count = graph.edge_count()

    graph.reduce_redundant_dependencies()

    assert _closures(graph) == before
    assert graph.edge_count() <= edge_count


def test_reduce_preserves_reachability_of_artifacts_with_aggregates():
    edges = {"agg": ["x", "y"], "a": ["x", "y", "z"], "b": ["a", "x"], "x": ["z"], "y": [], "z": []}
    graph = _graph(edges, artifactless={"agg"})
    artifacts = [n for n in edges if n != "agg"]
    before = _closures(graph, artifacts)

    graph.reduce_redundant_dependencies()

    assert _closures(graph, artifacts) == before


def test_reduce_is_deterministic_across_insertion_of_equal_graphs():
    results = set()
    for _ in range(3):
        graph = _graph({"a": ["b", "c", "d"], "b": ["c"], "c": ["d"], "d": []})
        graph.reduce_redundant_dependencies()
        results.add(json.dumps(graph_to_json_obj(graph)))
    assert len(results) == 1


def test_json_omits_default_fields_and_keeps_order(tmp_path):
    graph = DependencyGraph("7.0", "gradle-7.0-src.zip")
    graph.register(DependencyId("gradle-api", "7.0", "name.remal.gradle-api"), DependencyInfo(root=True))
    graph.register(DependencyId("groovy", "3.0.9", "org.codehaus.groovy"), DependencyInfo(path="lib/groovy-3.0.9.jar"))
    graph.entries["groovy"].bom = DependencyId("groovy-bom", "3.0.9", "org.codehaus.groovy")
    graph.add_edge("gradle-api", DependencyId("groovy"))

    out = tmp_path / "graph.json"
    dump_graph(graph, out)
    obj = json.loads(out.read_text(encoding="utf-8"))

    assert obj["gradleVersion"] == "7.0"
    assert obj["sourcesArchiveFile"] == "gradle-7.0-src.zip"
    assert list(obj["dependencies"]) == [
        "name.remal.gradle-api:gradle-api:7.0",
        "org.codehaus.groovy:groovy:3.0.9",
    ]
    assert obj["dependencies"]["name.remal.gradle-api:gradle-api:7.0"] == {
        "root": True,
        "dependencies": ["org.codehaus.groovy:groovy:3.0.9"],
    }
    assert obj["dependencies"]["org.codehaus.groovy:groovy:3.0.9"] == {
        "path": "lib/groovy-3.0.9.jar",
        "bom": "org.codehaus.groovy:groovy-bom:3.0.9",
    }

    loaded = load_graph(out)
    assert list(loaded.entries) == ["gradle-api", "groovy"]
    assert loaded.entries["gradle-api"].root
    assert loaded.entries["groovy"].bom == DependencyId("groovy-bom")
    assert str(loaded.identity("groovy")) == "org.codehaus.groovy:groovy:3.0.9"


def test_loading_interns_edge_targets_by_name(tmp_path):
    out = tmp_path / "graph.json"
    out.write_text(
        json.dumps(
            {
                "gradleVersion": "7.0",
                "sourcesArchiveFile": "src.zip",
                "dependencies": {
                    ":a:1.0": {"path": "a-1.0.jar", "dependencies": ["g:b:2.0"]},
                    ":b:": {"path": "b-2.0.jar"},
                },
            }
        ),
        encoding="utf-8",
    )
    graph = load_graph(out)
    assert list(graph.entries) == ["a", "b"]
    assert str(graph.identity("b")) == "g:b:2.0"
    assert list(itertools.chain.from_iterable(i.dependencies for i in graph.entries.values())) == ["b"]
