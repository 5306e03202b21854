import json
import os
import subprocess
import sys

import pytest

from gradle_api_deps import cli
from gradle_api_deps.cli import JOB_JSON_ENV, _parse_dotenv_line


def run_cli(env: dict[str, str], args: list[str] | None = None) -> subprocess.CompletedProcess:
    cmd = [sys.executable, "-m", "gradle_api_deps.cli"]
    if args:
        cmd.extend(args)
    return subprocess.run(cmd, capture_output=True, text=True, env=env)


def test_cli_errors_when_no_payload(tmp_path):
    env = os.environ.copy()
    env.pop(JOB_JSON_ENV, None)
    proc = run_cli(env, ["--dotenv", str(tmp_path / "missing.env")])
    assert proc.returncode == 1
    payload = json.loads(proc.stdout.strip())
    assert payload["ok"] is False
    assert payload["stage"] == "parse_job"
    assert payload["error_code"] == "GRADLE_API_DEPS_FAILED_PARSE_JOB"
    assert JOB_JSON_ENV in payload["error_message"]


def test_cli_reports_failing_stage(tmp_path, monkeypatch, capsys):
    job = {
        "job_id": "broken",
        "inputs": {"raw_dependencies_file": "missing.json", "gradle_files_dir": "gradle", "project_dir": str(tmp_path)},
        "output": {"out_dir": str(tmp_path / "out")},
    }
    monkeypatch.setenv(JOB_JSON_ENV, json.dumps(job))

    assert cli.main([]) == 1
    payload = json.loads(capsys.readouterr().out.strip())
    assert payload["ok"] is False
    assert payload["stage"] == "build_graph"
    assert payload["error_code"] == "GRADLE_API_DEPS_FAILED_BUILD_GRAPH"


def test_cli_rejects_non_object_payload(monkeypatch, capsys):
    monkeypatch.setenv(JOB_JSON_ENV, "[1, 2]")
    assert cli.main([]) == 1
    payload = json.loads(capsys.readouterr().out.strip())
    assert payload["stage"] == "parse_job"


def test_cli_reads_payload_from_dotenv(tmp_path, monkeypatch, capsys):
    # empty counts as unset; override lets the .env value replace it
    monkeypatch.setenv(JOB_JSON_ENV, "")
    job = {"inputs": {"raw_dependencies_file": "missing.json", "gradle_files_dir": "gradle", "project_dir": str(tmp_path)},
           "output": {"out_dir": str(tmp_path / "out")}}
    dotenv = tmp_path / ".env"
    dotenv.write_text(f"# local run\nexport {JOB_JSON_ENV}='{json.dumps(job)}'\n", encoding="utf-8")

    assert cli.main(["--dotenv", str(dotenv), "--dotenv-override"]) == 1
    payload = json.loads(capsys.readouterr().out.strip())
    # payload was parsed; failure comes from the missing raw listing
    assert payload["stage"] == "build_graph"


@pytest.mark.parametrize(
    "line,expected",
    [
        ("", None),
        ("# comment", None),
        ("KEY=value", ("KEY", "value")),
        ("export KEY=value # trailing", ("KEY", "value")),
        ('KEY="a \\"quoted\\" value"', ("KEY", 'a "quoted" value')),
        ("KEY='single # not a comment'", ("KEY", "single # not a comment")),
        ("KEY=", ("KEY", "")),
        ("NO_SEPARATOR", None),
    ],
)
def test_parse_dotenv_line(line, expected):
    assert _parse_dotenv_line(line) == expected
