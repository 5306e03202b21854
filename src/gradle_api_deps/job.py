# src/gradle_api_deps/job.py
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from gradle_api_deps.utils import stable_json_fingerprint_sha256


class Inputs(BaseModel):
    raw_dependencies_file: str
    gradle_files_dir: str
    # base of every relative artifact path (raw listing and graph snapshots)
    project_dir: str = "."


class Output(BaseModel):
    out_dir: str = "build/gradle-api-deps"
    completed_graph_file: str | None = None


class Job(BaseModel):
    job_id: str | None = None
    inputs: Inputs
    output: Output = Field(default_factory=Output)

    def finalize(self) -> "Job":
        """
        Contract:
        - No randomness.
        - If job_id is not provided, derive a deterministic id from the job's canonical content.
        """
        if not self.job_id:
            fp = stable_json_fingerprint_sha256(self.model_dump(mode="python"))
            self.job_id = fp[:12]

        return self

    def run_dir(self) -> Path:
        assert self.job_id
        return Path(self.output.out_dir) / self.job_id
