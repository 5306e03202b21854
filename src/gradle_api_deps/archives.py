# src/gradle_api_deps/archives.py
from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass
from pathlib import Path

CLASSPATH_ENTRY_RE = re.compile(r"^(?P<include>[^/]+)-classpath\.properties$")


@dataclass(frozen=True)
class ClasspathModule:
    # scope -> paths, both in declaration order
    scope_paths: dict[str, tuple[str, ...]]

    def all_paths(self) -> list[str]:
        out: list[str] = []
        for paths in self.scope_paths.values():
            out.extend(paths)
        return out


def _unescape_properties(s: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(s):
        ch = s[i]
        if ch != "\\" or i + 1 >= len(s):
            out.append(ch)
            i += 1
            continue
        nxt = s[i + 1]
        if nxt == "u" and i + 6 <= len(s):
            try:
                out.append(chr(int(s[i + 2 : i + 6], 16)))
                i += 6
                continue
            except ValueError:
                pass
        out.append({"t": "\t", "n": "\n", "r": "\r", "f": "\f"}.get(nxt, nxt))
        i += 2
    return "".join(out)


def _logical_lines(text: str) -> list[str]:
    """Join continuation lines (odd number of trailing backslashes) and drop comments."""
    lines: list[str] = []
    pending: str | None = None
    for raw in text.splitlines():
        line = raw.lstrip()
        if pending is None and (not line or line[0] in "#!"):
            continue

        trailing = len(line) - len(line.rstrip("\\"))
        continued = trailing % 2 == 1
        if continued:
            line = line[:-1]

        pending = line if pending is None else pending + line
        if not continued:
            lines.append(pending)
            pending = None

    if pending is not None:
        lines.append(pending)
    return lines


def parse_properties(text: str) -> dict[str, str]:
    """
    Java .properties reader (deterministic, no external deps).
    Supports:
      - '#' and '!' comment lines
      - '=', ':' or whitespace key/value separators
      - backslash line continuations
      - escapes (\\t, \\n, \\uXXXX, escaped separators)
    """
    props: dict[str, str] = {}
    for line in _logical_lines(text):
        key_chars: list[str] = []
        i = 0
        while i < len(line):
            ch = line[i]
            if ch == "\\" and i + 1 < len(line):
                key_chars.append(line[i : i + 2])
                i += 2
                continue
            if ch in "=:" or ch.isspace():
                break
            key_chars.append(ch)
            i += 1

        rest = line[i:].lstrip()
        if rest[:1] in ("=", ":"):
            rest = rest[1:].lstrip()

        props[_unescape_properties("".join(key_chars))] = _unescape_properties(rest)
    return props


class ArchiveCache:
    """
    Per-run memoization of archive listings and embedded metadata.

    Keyed by resolved file path. Create one per pipeline run and pass it to every
    stage that needs it; listings never depend on graph state.
    """

    def __init__(self) -> None:
        self._entry_names: dict[Path, tuple[str, ...]] = {}
        self._classpath_modules: dict[Path, dict[str, ClasspathModule]] = {}

    @staticmethod
    def _key(path: str | Path) -> Path:
        return Path(path).resolve()

    def entry_names(self, path: str | Path) -> tuple[str, ...]:
        key = self._key(path)
        cached = self._entry_names.get(key)
        if cached is None:
            with zipfile.ZipFile(key) as zf:
                cached = tuple(sorted(info.filename for info in zf.infolist() if not info.is_dir()))
            self._entry_names[key] = cached
        return cached

    def read_properties(self, path: str | Path, entry_name: str) -> dict[str, str]:
        # .properties resources are ISO-8859-1
        with zipfile.ZipFile(self._key(path)) as zf:
            return parse_properties(zf.read(entry_name).decode("latin-1"))

    def classpath_modules(self, path: str | Path) -> dict[str, ClasspathModule]:
        """
        Parse "<include>-classpath.properties" entries: scope -> comma-separated paths.
        """
        key = self._key(path)
        cached = self._classpath_modules.get(key)
        if cached is not None:
            return cached

        result: dict[str, ClasspathModule] = {}
        for entry_name in self.entry_names(key):
            m = CLASSPATH_ENTRY_RE.match(entry_name)
            if not m:
                continue

            props = self.read_properties(key, entry_name)
            scope_paths: dict[str, tuple[str, ...]] = {}
            for scope, value in props.items():
                paths = [p.strip() for p in value.split(",")]
                scope_paths[scope] = tuple(dict.fromkeys(p for p in paths if p))
            result[m.group("include")] = ClasspathModule(scope_paths=scope_paths)

        self._classpath_modules[key] = result
        return result

    def pom_properties(self, path: str | Path, artifact_name: str) -> dict[str, str] | None:
        """
        First META-INF/maven/<group>/<artifact_name>/pom.properties of the archive, if any.
        """
        suffix = f"/{artifact_name}/pom.properties"
        for entry_name in self.entry_names(path):
            if entry_name.startswith("META-INF/maven/") and entry_name.endswith(suffix):
                return self.read_properties(path, entry_name)
        return None
