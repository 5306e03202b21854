# src/gradle_api_deps/identity.py
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath

from gradle_api_deps.utils import camel_to_hyphen


class GraphError(RuntimeError):
    """Base class for fatal dependency graph errors."""


class InvalidArtifactNameError(GraphError):
    pass


# jsp-2.1-6.1.14 / jsp-api-2.1-6.1.14: the "2.1" belongs to the name.
FIXED_VERSION_RE = re.compile(r"^(?P<name>jsp(-\w+)?-2[^-]*)-(?P<version>\d+.*)$")

DEFAULT_VERSION_RE = re.compile(r"^(?P<name>.+?)-(?P<version>\d+.*)$")


@dataclass(frozen=True)
class DependencyId:
    """
    (group, name, version) coordinates of a dependency.

    Equality and hashing use the name only: two ids with the same name denote the
    same dependency, whatever version/group each of them happens to know about.
    """

    name: str
    version: str = field(default="", compare=False)
    group: str = field(default="", compare=False)

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"

    @classmethod
    def parse(cls, text: str) -> "DependencyId":
        parts = text.split(":")
        if len(parts) != 3:
            raise ValueError(f"Dependency id must have exactly 3 ':'-separated parts: {text!r}")
        group, name, version = parts
        if not name:
            raise ValueError(f"Dependency id without name: {text!r}")
        return cls(name=name, version=version, group=group)

    @classmethod
    def from_file_name(cls, path: str) -> "DependencyId":
        file_name = PurePosixPath(path.replace("\\", "/")).name
        if not file_name.endswith(".jar"):
            raise InvalidArtifactNameError(f"Not a JAR file path: {path}")
        base = file_name[: -len(".jar")]

        m = FIXED_VERSION_RE.match(base) or DEFAULT_VERSION_RE.match(base)
        if m is None:
            raise InvalidArtifactNameError(f"JAR file without version: {path}")
        return cls(name=m.group("name"), version=m.group("version"))

    def with_name(self, name: str) -> "DependencyId":
        return replace(self, name=name)


@dataclass
class _Coordinates:
    version: str = ""
    group: str = ""


class IdentityCatalog:
    """
    Canonical version/group per dependency name.

    The first id registered under a name becomes canonical. Later registrations only
    fill in fields the canonical id is still missing; they never erase or replace them.
    Explicit updates (set_version/set_group) are how later pipeline passes change
    coordinates after the name is already used as a key.
    """

    def __init__(self, gradle_version: str) -> None:
        self.gradle_version = gradle_version
        self._coordinates: dict[str, _Coordinates] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._coordinates

    def __len__(self) -> int:
        return len(self._coordinates)

    def intern(self, dep_id: DependencyId) -> DependencyId:
        coords = self._coordinates.get(dep_id.name)
        if coords is None:
            self._coordinates[dep_id.name] = _Coordinates(dep_id.version, dep_id.group)
        else:
            if dep_id.version and not coords.version:
                coords.version = dep_id.version
            if dep_id.group and not coords.group:
                coords.group = dep_id.group
        return self.get(dep_id.name)

    def get(self, name: str) -> DependencyId:
        coords = self._coordinates[name]
        return DependencyId(name=name, version=coords.version, group=coords.group)

    def set_version(self, name: str, version: str) -> None:
        self._coordinates[name].version = version

    def set_group(self, name: str, group: str) -> None:
        self._coordinates[name].group = group

    def from_path_or_name(
            self,
            path_or_name: str,
            version: str | None = None,
            group: str | None = None,
    ) -> DependencyId:
        """
        "lib/guava-31.1-jre.jar" -> guava:31.1-jre
        "gradle-api" -> gradle-api:<gradle version>

        Explicit version/group override whatever the catalog knows so far.
        """
        if path_or_name.endswith(".jar"):
            file_name = path_or_name
        else:
            file_name = f"{path_or_name}-{self.gradle_version}.jar"

        dep_id = self.intern(DependencyId.from_file_name(file_name))
        if version is not None:
            self.set_version(dep_id.name, version)
        if group is not None:
            self.set_group(dep_id.name, group)
        return self.get(dep_id.name)

    def from_role_name(self, role_name: str) -> DependencyId:
        # gradleApi -> gradle-api
        return self.from_path_or_name(camel_to_hyphen(role_name))
