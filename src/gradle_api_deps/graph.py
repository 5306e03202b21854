# src/gradle_api_deps/graph.py
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TypedDict

from gradle_api_deps.builder import build_graph
from gradle_api_deps.completion import complete_dependencies
from gradle_api_deps.context import CancellationToken, PipelineContext
from gradle_api_deps.graph_model import DependencyGraph
from gradle_api_deps.job import Job
from gradle_api_deps.module_classpath import process_module_classpath
from gradle_api_deps.module_registry import process_module_registry
from gradle_api_deps.serialization import dump_graph, graph_to_json_obj, load_graph, load_raw_dependencies
from gradle_api_deps.utils import stable_json_fingerprint_sha256
from gradle_api_deps.validate_basic import validate_completed_graph

try:
    from langgraph.graph import END, StateGraph
except Exception as e:  # pragma: no cover
    raise RuntimeError("LangGraph is required. Install 'langgraph'.") from e

logger = logging.getLogger(__name__)


# -----------------------------
# Stages (canonical)
# -----------------------------
STAGE_INIT = "init"
STAGE_PARSE_JOB = "parse_job"
STAGE_BUILD_GRAPH = "build_graph"
STAGE_MODULE_CLASSPATH = "process_module_classpath"
STAGE_MODULE_REGISTRY = "process_module_registry"
STAGE_COMPLETE = "complete_dependencies"
STAGE_VALIDATE = "validate_completed"
STAGE_EMIT_RESULT = "emit_result"
STAGE_DONE = "done"
STAGE_DONE_DRY_RUN = "done_dry_run"

# stage -> snapshot file written by it (inside the job's run dir)
SNAPSHOT_FILES = {
    STAGE_BUILD_GRAPH: "01-simple-gradle-dependencies.json",
    STAGE_MODULE_CLASSPATH: "02-process-gradle-module-classpath.json",
    STAGE_MODULE_REGISTRY: "03-process-module-registry.json",
    STAGE_COMPLETE: "04-complete-dependencies.json",
}


class PipelineStageError(RuntimeError):
    def __init__(self, stage: str, inner: Exception):
        super().__init__(str(inner))
        self.stage = stage
        self.inner = inner


@dataclass(frozen=True)
class RuntimeConfig:
    dry_run: bool
    cancellation: CancellationToken = field(default_factory=CancellationToken)


class PipelineState(TypedDict, total=False):
    payload: dict[str, Any]
    payload_src: str
    config: RuntimeConfig
    stage: str

    job: Job
    context: PipelineContext
    run_dir: str

    # stage -> snapshot path
    snapshots: dict[str, str]

    result: dict[str, Any]


def _run_mapping_stage(
        state: PipelineState,
        stage: str,
        previous_stage: str,
        mapper: Callable[[DependencyGraph, PipelineContext], DependencyGraph],
) -> PipelineState:
    """Read the previous snapshot, map it, write this stage's snapshot."""
    try:
        ctx = state["context"]
        ctx.cancellation.raise_if_cancelled()

        graph = load_graph(state["snapshots"][previous_stage])
        graph = mapper(graph, ctx)
        ctx.cancellation.raise_if_cancelled()

        out_path = Path(state["run_dir"]) / SNAPSHOT_FILES[stage]
        dump_graph(graph, out_path)

        state["stage"] = stage
        state["snapshots"] = {**state["snapshots"], stage: str(out_path)}
        logger.info("Stage %s wrote %s", stage, out_path)
        return state
    except Exception as e:
        raise PipelineStageError(stage, e) from e


def node_load_job(state: PipelineState) -> PipelineState:
    stage = STAGE_PARSE_JOB
    try:
        job = Job.model_validate(state["payload"]).finalize()
        cfg = state["config"]

        run_dir = job.run_dir()
        run_dir.mkdir(parents=True, exist_ok=True)

        state["stage"] = stage
        state["job"] = job
        state["run_dir"] = str(run_dir)
        state["snapshots"] = {}
        state["context"] = PipelineContext(
            project_dir=Path(job.inputs.project_dir),
            gradle_files_dir=Path(job.inputs.project_dir) / job.inputs.gradle_files_dir,
            cancellation=cfg.cancellation,
        )
        return state
    except Exception as e:
        raise PipelineStageError(stage, e) from e


def node_build_graph(state: PipelineState) -> PipelineState:
    stage = STAGE_BUILD_GRAPH
    try:
        job = state["job"]
        ctx = state["context"]
        raw = load_raw_dependencies(ctx.project_file(job.inputs.raw_dependencies_file))
        graph = build_graph(raw)

        out_path = Path(state["run_dir"]) / SNAPSHOT_FILES[stage]
        dump_graph(graph, out_path)

        state["stage"] = stage
        state["snapshots"] = {stage: str(out_path)}
        return state
    except Exception as e:
        raise PipelineStageError(stage, e) from e


def node_process_module_classpath(state: PipelineState) -> PipelineState:
    return _run_mapping_stage(state, STAGE_MODULE_CLASSPATH, STAGE_BUILD_GRAPH, process_module_classpath)


def node_process_module_registry(state: PipelineState) -> PipelineState:
    return _run_mapping_stage(state, STAGE_MODULE_REGISTRY, STAGE_MODULE_CLASSPATH, process_module_registry)


def node_complete_dependencies(state: PipelineState) -> PipelineState:
    return _run_mapping_stage(state, STAGE_COMPLETE, STAGE_MODULE_REGISTRY, complete_dependencies)


def node_validate_completed(state: PipelineState) -> PipelineState:
    stage = STAGE_VALIDATE
    try:
        graph = load_graph(state["snapshots"][STAGE_COMPLETE])
        validate_completed_graph(graph)
        state["stage"] = stage
        return state
    except Exception as e:
        raise PipelineStageError(stage, e) from e


def node_emit_result(state: PipelineState) -> PipelineState:
    stage = STAGE_EMIT_RESULT
    try:
        job = state["job"]
        cfg = state["config"]
        completed_path = state["snapshots"][STAGE_COMPLETE]

        graph = load_graph(completed_path)
        fingerprint = stable_json_fingerprint_sha256(graph_to_json_obj(graph))

        output_file: str | None = None
        if not cfg.dry_run and job.output.completed_graph_file:
            target = Path(job.output.completed_graph_file)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(completed_path, target)
            output_file = str(target)

        state["result"] = {
            "ok": True,
            "stage": STAGE_DONE_DRY_RUN if cfg.dry_run else STAGE_DONE,
            "job_id": job.job_id,
            "job_payload_source": state.get("payload_src", "unknown"),
            "gradle_version": graph.gradle_version,
            "snapshots": dict(state["snapshots"]),
            "completed_graph_file": output_file,
            "counts": {
                "entries": len(graph),
                "edges": graph.edge_count(),
                "roots": sum(1 for info in graph.entries.values() if info.root),
            },
            "hashes": {"completed_graph_sha256": fingerprint},
        }
        state["stage"] = stage
        return state
    except Exception as e:
        raise PipelineStageError(stage, e) from e


def build_pipeline_graph():
    g = StateGraph(PipelineState)

    g.add_node("load_job", node_load_job)
    g.add_node("build_graph", node_build_graph)
    g.add_node("process_module_classpath", node_process_module_classpath)
    g.add_node("process_module_registry", node_process_module_registry)
    g.add_node("complete_dependencies", node_complete_dependencies)
    g.add_node("validate_completed", node_validate_completed)
    g.add_node("emit_result", node_emit_result)

    g.set_entry_point("load_job")
    g.add_edge("load_job", "build_graph")
    g.add_edge("build_graph", "process_module_classpath")
    g.add_edge("process_module_classpath", "process_module_registry")
    g.add_edge("process_module_registry", "complete_dependencies")
    g.add_edge("complete_dependencies", "validate_completed")
    g.add_edge("validate_completed", "emit_result")
    g.add_edge("emit_result", END)

    return g.compile()


def run_pipeline_graph(
        *,
        payload: dict[str, Any],
        payload_src: str,
        dry_run: bool,
        cancellation: CancellationToken | None = None,
) -> dict[str, Any]:
    app = build_pipeline_graph()
    state: PipelineState = {
        "payload": payload,
        "payload_src": payload_src,
        "config": RuntimeConfig(dry_run=dry_run, cancellation=cancellation or CancellationToken()),
        "stage": STAGE_INIT,
    }
    final_state = app.invoke(state)
    return final_state["result"]
