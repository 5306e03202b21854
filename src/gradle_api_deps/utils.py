# src/gradle_api_deps/utils.py
from __future__ import annotations

import hashlib
import json
import re
from typing import Any


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def sha256_text(s: str) -> str:
    return sha256_bytes(s.encode("utf-8"))


def substring_before(s: str, needle: str) -> str:
    """
    Text before the first occurrence of needle.
    A needle found at index 0 (or not found at all) leaves the string unchanged.
    """
    pos = s.find(needle)
    return s[:pos] if pos > 0 else s


_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_hyphen(name: str) -> str:
    # "gradleTestKit" -> "gradle-test-kit"
    return _CAMEL_BOUNDARY_RE.sub("-", name).lower()


# -----------------------------
# Stable fingerprint helpers
# -----------------------------
# Used to build deterministic job ids and graph fingerprints.
# They MUST be stable across processes/reruns for the same logical input.

VOLATILE_KEYS_DEFAULT: set[str] = {
    "generated_at",
    "job_id",
}


def _strip_volatile(obj: Any, volatile_keys: set[str]) -> Any:
    """
    Recursively remove volatile keys from dicts/lists.
    Used to build stable fingerprints across reruns.
    """
    if isinstance(obj, dict):
        out: dict[str, Any] = {}
        for k, v in obj.items():
            if k in volatile_keys:
                continue
            out[k] = _strip_volatile(v, volatile_keys)
        return out
    if isinstance(obj, list):
        return [_strip_volatile(x, volatile_keys) for x in obj]
    return obj


def stable_json_dumps(obj: Any) -> str:
    """
    Deterministic JSON serialization for JSON-like objects.
    - sort keys
    - stable separators
    - no ASCII-forcing (keep unicode stable)
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def stable_json_fingerprint_sha256(obj: Any, volatile_keys: set[str] | None = None) -> str:
    """
    Stable hash for JSON-like objects where only volatile keys differ between reruns.
    - strips volatile keys recursively
    - canonicalizes JSON (sort_keys + stable separators)
    """
    vk = set(VOLATILE_KEYS_DEFAULT) if volatile_keys is None else set(volatile_keys)
    stripped = _strip_volatile(obj, vk)
    canonical = stable_json_dumps(stripped)
    return sha256_text(canonical)


# -----------------------------
# Deterministic normalization helpers
# -----------------------------

_PATH_SEP_RE = re.compile(r"[\\]+")


def norm_relpath(path: str) -> str:
    """
    Deterministic path normalization for graph artifact paths.
    - converts backslashes to forward slashes
    - strips leading "./"
    - collapses duplicate slashes
    - does NOT resolve ".." (artifacts may legitimately live outside the project dir)
    """
    p = (path or "").strip()
    p = _PATH_SEP_RE.sub("/", p)
    while p.startswith("./"):
        p = p[2:]
    p = re.sub(r"/{2,}", "/", p)
    return p

