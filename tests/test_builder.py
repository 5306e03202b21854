import pytest

from gradle_api_deps.builder import MultiplePrimaryPathsError, build_graph
from gradle_api_deps.serialization import RawDependencies


def _raw(dependencies: dict[str, list[str]], gradle_version: str = "7.0") -> RawDependencies:
    return RawDependencies.model_validate(
        {
            "gradleVersion": gradle_version,
            "sourcesArchiveFile": f"gradle-{gradle_version}-src.zip",
            "dependencies": dependencies,
        }
    )


def test_roles_become_roots_with_edges():
    graph = build_graph(
        _raw(
            {
                "gradleApi": ["lib/gradle-api-7.0.jar", "lib/groovy-3.0.9.jar", "lib/guava-31.1-jre.jar"],
                "localGroovy": ["lib/groovy-3.0.9.jar"],
            }
        )
    )

    api = graph.entries["gradle-api"]
    assert api.root
    assert api.path == "lib/gradle-api-7.0.jar"
    assert list(api.dependencies) == ["groovy", "guava"]

    local = graph.entries["local-groovy"]
    assert local.root
    assert local.path is None
    assert list(local.dependencies) == ["groovy"]
    assert str(graph.identity("local-groovy")) == ":local-groovy:7.0"


def test_every_path_gets_an_entry():
    graph = build_graph(_raw({"gradleApi": ["lib/groovy-3.0.9.jar", "lib\\plugins\\guava-31.1-jre.jar"]}))

    assert list(graph.entries) == ["gradle-api", "groovy", "guava"]
    assert graph.entries["groovy"].path == "lib/groovy-3.0.9.jar"
    assert graph.entries["guava"].path == "lib/plugins/guava-31.1-jre.jar"
    assert not graph.entries["guava"].root
    assert str(graph.identity("guava")) == ":guava:31.1-jre"


def test_role_jar_is_not_a_dependency_of_itself():
    graph = build_graph(_raw({"gradleCoreApi": ["gradle-core-api-7.0.jar", "groovy-3.0.9.jar"]}))
    core = graph.entries["gradle-core-api"]
    assert core.root
    assert core.path == "gradle-core-api-7.0.jar"
    assert list(core.dependencies) == ["groovy"]
    assert graph.edge_count() == 1


def test_multiple_primary_paths():
    with pytest.raises(MultiplePrimaryPathsError, match="gradleApi"):
        build_graph(_raw({"gradleApi": ["a/gradle-api-7.0.jar", "b/gradle-api-7.0.jar"]}))


def test_empty_role():
    graph = build_graph(_raw({"gradleTestKit": []}))
    assert list(graph.entries) == ["gradle-test-kit"]
    assert graph.entries["gradle-test-kit"].root
