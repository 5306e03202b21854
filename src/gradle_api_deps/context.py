# src/gradle_api_deps/context.py
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

from gradle_api_deps.archives import ArchiveCache


class PipelineCancelled(RuntimeError):
    pass


class CancellationToken:
    """Cooperative cancel flag, polled between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("Pipeline run was cancelled")


@dataclass
class PipelineContext:
    """
    Everything a stage needs besides the graph itself.

    project_dir: base directory of every relative artifact path stored in the graph.
    gradle_files_dir: root of the extracted Gradle distribution.
    """

    project_dir: Path
    gradle_files_dir: Path
    archives: ArchiveCache = field(default_factory=ArchiveCache)
    cancellation: CancellationToken = field(default_factory=CancellationToken)

    def __post_init__(self) -> None:
        self.project_dir = Path(self.project_dir).resolve()
        self.gradle_files_dir = Path(self.gradle_files_dir).resolve()

    def project_file(self, relative_path: str) -> Path:
        return self.project_dir / relative_path

    def project_relative_path(self, file: str | Path) -> str:
        rel = os.path.relpath(Path(file).resolve(), self.project_dir)
        return rel.replace("\\", "/")
