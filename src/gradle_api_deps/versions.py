# src/gradle_api_deps/versions.py
from __future__ import annotations

import re

# Qualifier ranks relative to arbitrary text (which ranks 0).
SPECIAL_MEANINGS: dict[str, int] = {
    "dev": -1,
    "rc": 1,
    "snapshot": 2,
    "final": 3,
    "ga": 4,
    "release": 5,
    "sp": 6,
}

_PART_RE = re.compile(r"\d+|[^\d.\-_+]+")


def version_parts(version: str) -> list[str]:
    """
    "1.0-rc1" -> ["1", "0", "rc", "1"]

    Separators are ".", "-", "_" and "+"; digit/letter boundaries split as well.
    """
    return _PART_RE.findall(version or "")


def _compare_parts(p1: str, p2: str) -> int:
    n1 = p1.isdigit()
    n2 = p2.isdigit()
    if n1 and n2:
        return (int(p1) > int(p2)) - (int(p1) < int(p2))
    if n1:
        return 1
    if n2:
        return -1

    sm1 = SPECIAL_MEANINGS.get(p1.lower())
    sm2 = SPECIAL_MEANINGS.get(p2.lower())
    if sm1 is not None:
        return sm1 - (sm2 or 0)
    if sm2 is not None:
        return -sm2
    return (p1 > p2) - (p1 < p2)


def compare_versions(version1: str, version2: str) -> int:
    """Negative, zero or positive, like a comparator over version strings."""
    if version1 == version2:
        return 0

    parts1 = version_parts(version1)
    parts2 = version_parts(version2)

    for p1, p2 in zip(parts1, parts2):
        if p1 == p2:
            continue
        return _compare_parts(p1, p2)

    common = min(len(parts1), len(parts2))
    if len(parts1) > common:
        return 1 if parts1[common].isdigit() else -1
    if len(parts2) > common:
        return -1 if parts2[common].isdigit() else 1
    return 0


def is_at_least(version: str, minimum: str) -> bool:
    return compare_versions(version, minimum) >= 0
