# src/gradle_api_deps/completion.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from gradle_api_deps.context import PipelineContext
from gradle_api_deps.graph_model import DependencyGraph, DependencyInfo
from gradle_api_deps.identity import DependencyId, GraphError
from gradle_api_deps.utils import substring_before
from gradle_api_deps.versions import is_at_least

logger = logging.getLogger(__name__)

GRADLE_API_PUBLISH_GROUP = "name.remal.gradle-api"

SNAPSHOT_SUFFIX = "-SNAPSHOT"

# name prefix -> group, first match wins
DEP_NAME_TO_GROUP: dict[str, str] = {
    "kotlin": "org.jetbrains.kotlin",
    "ant": "org.apache.ant",
    "jspecify": "org.jspecify",
    "jsr305": "com.google.code.findbugs",
    "javax.inject": "javax.inject",
    "xml-apis": "xml-apis",
    "asm": "org.ow2.asm",
    "jarjar": "com.googlecode.jarjar",
    "jna": "net.java.dev.jna",
    "objenesis": "org.objenesis",
    "ivy": "org.apache.ivy",
    "jcip-annotations": "net.jcip",
    "gson": "com.google.code.gson",
    "bcprov": "org.bouncycastle",
    "bcpg": "org.bouncycastle",
    "nekohtml": "net.sourceforge.nekohtml",
    "jcifs": "jcifs",
    "xercesImpl": "xerces",
    "junit": "junit",
    "hamcrest": "org.hamcrest",
    "rhino": "org.mozilla",
    "bndlib": "biz.aQute.bnd",
    "bsh": "org.beanshell",
}

GRADLE_OWNED_PREFIXES = ("gradle-", "local-groovy-", "native-platform-")

APACHE_GROOVY_GROUP = "org.apache.groovy"
CODEHAUS_GROOVY_GROUP = "org.codehaus.groovy"
APACHE_GROOVY_MIN_VERSION = "3"

# Groovy builds shipped by Gradle itself, e.g. "1.8-2.3.4"
PREBUILT_GROOVY_VERSION_RE = re.compile(r"^\d+\.\d+-2\..+$")


@dataclass(frozen=True)
class ContentMarker:
    group: str
    matches: Callable[[str], bool]


# Generic names resolved by looking inside the jar.
CONTENT_MARKERS: dict[str, tuple[ContentMarker, ...]] = {
    "annotations": (
        ContentMarker("org.jetbrains", lambda e: e == "org/jetbrains/annotations/NotNull.class"),
    ),
    "core": (
        ContentMarker("org.eclipse.jdt", lambda e: e.startswith("org/eclipse/jdt/core/") and e.endswith(".class")),
    ),
}


@dataclass(frozen=True)
class BomFamily:
    groups: tuple[str, ...]
    bom_name: str
    min_version: str


BOM_FAMILIES: tuple[BomFamily, ...] = (
    BomFamily((APACHE_GROOVY_GROUP, CODEHAUS_GROOVY_GROUP), "groovy-bom", "2.4.19"),
    BomFamily(("org.jetbrains.kotlin",), "kotlin-bom", "1.3.20"),
    BomFamily(("org.slf4j",), "slf4j-bom", "2.0.8"),
    BomFamily(("org.ow2.asm",), "asm-bom", "9.3"),
)


class UngroupedDependenciesError(GraphError):
    def __init__(self, ids: list[DependencyId]):
        self.ids = [str(i) for i in ids]
        super().__init__("Can't determine groups for:\n  " + "\n  ".join(self.ids))


class DependencyCompleter:
    """
    Fills in what the classpath alone can't tell: groups, BOMs, non-snapshot versions.

    Passes run in a fixed order over all entries; later passes rely on fields set by
    earlier ones.
    """

    def __init__(self, graph: DependencyGraph, ctx: PipelineContext) -> None:
        self.graph = graph
        self.ctx = ctx

    def run(self) -> DependencyGraph:
        for step in (
            self.update_from_pom_properties,
            self.fix_version,
            self.update_group,
            self.update_bom,
        ):
            for name, info in self.graph.items():
                step(name, info)

        ungrouped = self.graph.ungrouped()
        if ungrouped:
            raise UngroupedDependenciesError(ungrouped)

        self.fix_snapshot_dependencies()
        self.graph.reduce_redundant_dependencies()

        logger.info("Completed graph: %d entries, %d edges", len(self.graph), self.graph.edge_count())
        return self.graph

    def _pom_properties(self, name: str, info: DependencyInfo) -> dict[str, str] | None:
        if info.path is None:
            return None
        return self.ctx.archives.pom_properties(self.ctx.project_file(info.path), name)

    def _entry_names(self, info: DependencyInfo) -> tuple[str, ...]:
        if info.path is None:
            return ()
        return self.ctx.archives.entry_names(self.ctx.project_file(info.path))

    def update_from_pom_properties(self, name: str, info: DependencyInfo) -> None:
        props = self._pom_properties(name, info)
        group = (props or {}).get("groupId")
        if group:
            self.graph.catalog.set_group(name, group)

    def fix_version(self, name: str, info: DependencyInfo) -> None:
        dep_id = self.graph.identity(name)
        if f"{name}-".startswith("jspecify-"):
            self.graph.catalog.set_version(name, substring_before(dep_id.version, "-no-module-annotation"))

    def update_group(self, name: str, info: DependencyInfo) -> None:
        dep_id = self.graph.identity(name)
        if dep_id.group:
            return

        group = self._group_for(dep_id, info)
        if group:
            self.graph.catalog.set_group(name, group)
            logger.debug("%s: group %s inferred", name, group)

    def _group_for(self, dep_id: DependencyId, info: DependencyInfo) -> str | None:
        name_prefix = f"{dep_id.name}-"

        for base_name, group in DEP_NAME_TO_GROUP.items():
            if name_prefix.startswith(f"{base_name}-"):
                return group

        if name_prefix.startswith("groovy-"):
            if PREBUILT_GROOVY_VERSION_RE.match(dep_id.version):
                info.synthetic_group = True
                return GRADLE_API_PUBLISH_GROUP
            if is_at_least(dep_id.version, APACHE_GROOVY_MIN_VERSION):
                return APACHE_GROOVY_GROUP
            return CODEHAUS_GROOVY_GROUP

        if name_prefix.startswith(GRADLE_OWNED_PREFIXES):
            return GRADLE_API_PUBLISH_GROUP

        for base_name, markers in CONTENT_MARKERS.items():
            if not name_prefix.startswith(f"{base_name}-"):
                continue
            entries = self._entry_names(info)
            for marker in markers:
                if any(marker.matches(e) for e in entries):
                    return marker.group
            return None

        return None

    def update_bom(self, name: str, info: DependencyInfo) -> None:
        if info.bom is not None:
            return

        dep_id = self.graph.identity(name)
        for family in BOM_FAMILIES:
            if dep_id.group not in family.groups:
                continue
            if is_at_least(dep_id.version, family.min_version):
                info.bom = dep_id.with_name(family.bom_name)
            return

    def fix_snapshot_dependencies(self) -> None:
        """
        Snapshot artifacts can't be published under their own coordinates: strip the
        marker and re-home them under the Gradle API group.
        """
        snapshot_names: list[str] = []
        for name, info in self.graph.items():
            if self.graph.identity(name).version.endswith(SNAPSHOT_SUFFIX):
                snapshot_names.append(name)
                continue
            props = self._pom_properties(name, info)
            if props and props.get("version", "").endswith(SNAPSHOT_SUFFIX):
                snapshot_names.append(name)

        for name in snapshot_names:
            version = self.graph.identity(name).version
            self.graph.catalog.set_version(name, substring_before(version, SNAPSHOT_SUFFIX))
            self.graph.catalog.set_group(name, GRADLE_API_PUBLISH_GROUP)
            self.graph.entries[name].synthetic_group = True
            logger.debug("%s: snapshot re-homed as %s", name, self.graph.identity(name))


def complete_dependencies(graph: DependencyGraph, ctx: PipelineContext) -> DependencyGraph:
    return DependencyCompleter(graph, ctx).run()
