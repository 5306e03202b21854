# src/gradle_api_deps/main.py
from __future__ import annotations

from typing import Any, Dict, Optional

from gradle_api_deps.context import CancellationToken


def run(
        job_payload: Dict[str, Any],
        dry_run: bool = False,
        *,
        payload_src: str = "unknown",
        cancellation: Optional[CancellationToken] = None,
) -> Dict[str, Any]:
    """
    Core entrypoint used by gradle_api_deps.cli.

    gradle_api_deps.graph owns the full workflow
    (parse job -> build graph -> module classpath -> module registry -> complete -> validate -> emit result).
    """
    from gradle_api_deps.graph import run_pipeline_graph

    # Let PipelineStageError bubble up so the CLI can render stage-aware JSON.
    return run_pipeline_graph(
        payload=job_payload,
        payload_src=payload_src,
        dry_run=dry_run,
        cancellation=cancellation,
    )
