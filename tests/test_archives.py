from gradle_api_deps.archives import ArchiveCache, parse_properties

from jar_builders import make_jar


def test_parse_properties_separators_comments_and_escapes():
    text = "\n".join(
        [
            "# comment",
            "! another comment",
            "",
            "groupId=com.google.guava",
            "artifactId : guava",
            "version 31.1-jre",
            "key\\ with\\ spaces = value",
            "multi = a,\\",
            "    b,\\",
            "    c",
            "unicode=caf\\u00e9",
            "tab=a\\tb",
        ]
    )
    props = parse_properties(text)
    assert props == {
        "groupId": "com.google.guava",
        "artifactId": "guava",
        "version": "31.1-jre",
        "key with spaces": "value",
        "multi": "a,b,c",
        "unicode": "café",
        "tab": "a\tb",
    }


def test_parse_properties_empty_value_and_escaped_backslash():
    props = parse_properties("empty=\npath=C:\\\\tmp\n")
    assert props == {"empty": "", "path": "C:\\tmp"}


def test_entry_names_sorted_and_files_only(tmp_path):
    jar = make_jar(tmp_path / "a-1.0.jar", {"b/B.class": b"x", "a/A.class": b"y", "META-INF/": b""})
    cache = ArchiveCache()
    assert cache.entry_names(jar) == ("a/A.class", "b/B.class")


def test_entry_names_are_memoized_per_run(tmp_path):
    jar = make_jar(tmp_path / "a-1.0.jar", {"a/A.class": b"y"})
    cache = ArchiveCache()
    first = cache.entry_names(jar)

    make_jar(jar, {"other/Other.class": b"z"})
    assert cache.entry_names(jar) is first
    assert ArchiveCache().entry_names(jar) == ("other/Other.class",)


def test_classpath_modules(tmp_path):
    jar = make_jar(
        tmp_path / "gradle-runtime-api-info-7.0.jar",
        {
            "gradle-core-api-classpath.properties": "projects=gradle-base-services, gradle-logging\n"
                                                    "runtime=groovy-3.0.9.jar,,groovy-3.0.9.jar\n",
            "nested/gradle-ignored-classpath.properties": "projects=x\n",
            "gradle-cli-classpath.properties": "runtime=\n",
        },
    )
    modules = ArchiveCache().classpath_modules(jar)

    assert list(modules) == ["gradle-cli", "gradle-core-api"]
    core = modules["gradle-core-api"]
    assert core.scope_paths == {
        "projects": ("gradle-base-services", "gradle-logging"),
        "runtime": ("groovy-3.0.9.jar",),
    }
    assert core.all_paths() == ["gradle-base-services", "gradle-logging", "groovy-3.0.9.jar"]
    assert modules["gradle-cli"].all_paths() == []


def test_pom_properties(tmp_path):
    jar = make_jar(
        tmp_path / "guava-31.1-jre.jar",
        {
            "META-INF/maven/com.google.guava/guava/pom.properties": "groupId=com.google.guava\n"
                                                                     "artifactId=guava\n"
                                                                     "version=31.1-jre\n",
            "META-INF/maven/com.google.guava/failureaccess/pom.properties": "groupId=other\n",
        },
    )
    cache = ArchiveCache()
    assert cache.pom_properties(jar, "guava") == {
        "groupId": "com.google.guava",
        "artifactId": "guava",
        "version": "31.1-jre",
    }
    assert cache.pom_properties(jar, "missing") is None


def test_properties_resources_are_read_as_latin_1(tmp_path):
    jar = make_jar(
        tmp_path / "caf-1.0.jar",
        {
            "META-INF/maven/com.acme/caf/pom.properties": "groupId=com.acme\nname=caf\xe9\n".encode("latin-1"),
            "gradle-caf-classpath.properties": "runtime=na\xefve-1.0.jar\n".encode("latin-1"),
        },
    )
    cache = ArchiveCache()
    assert cache.pom_properties(jar, "caf")["name"] == "café"
    assert cache.classpath_modules(jar)["gradle-caf"].all_paths() == ["naïve-1.0.jar"]
