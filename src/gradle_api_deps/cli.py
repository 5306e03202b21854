# src/gradle_api_deps/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from . import __version__
from . import main as main_module
from .context import CancellationToken

STAGE_PARSE_JOB = "parse_job"

JOB_JSON_ENV = "GRADLE_API_DEPS_JOB_JSON"
LOG_LEVEL_ENV = "GRADLE_API_DEPS_LOG_LEVEL"


def _parse_dotenv_line(line: str) -> tuple[str, str] | None:
    """
    Minimal .env parser (deterministic, no external deps).
    Supports:
      - KEY=VALUE
      - export KEY=VALUE
      - comments (#...) when not inside quotes
      - quoted values with '...' or "..."
    Does NOT do variable expansion (${...}).
    """
    s = line.strip()
    if not s or s.startswith("#"):
        return None

    if s.startswith("export "):
        s = s[len("export ") :].lstrip()
        if not s:
            return None

    if "=" not in s:
        return None

    key, rest = s.split("=", 1)
    key = key.strip()
    if not key:
        return None

    val = rest.strip()
    if not val:
        return key, ""

    if val[0] in ("'", '"'):
        quote = val[0]
        out = []
        escaped = False
        i = 1
        while i < len(val):
            ch = val[i]
            if escaped:
                out.append(ch)
                escaped = False
            elif quote == '"' and ch == "\\":
                escaped = True
            elif ch == quote:
                break
            else:
                out.append(ch)
            i += 1
        # anything after the closing quote (including comments) is ignored
        return key, "".join(out)

    # unquoted: strip trailing comment
    value = val.split("#", 1)[0].strip()
    return key, value


def _load_dotenv_file(path: str, *, override: bool = False) -> bool:
    """
    Loads key/value pairs from a .env file into os.environ.
    Returns True if the file existed and was read.
    """
    p = Path(path)
    if not p.exists() or not p.is_file():
        return False

    for raw_line in p.read_text(encoding="utf-8").splitlines():
        parsed = _parse_dotenv_line(raw_line)
        if not parsed:
            continue
        k, v = parsed
        if not override and k in os.environ:
            continue
        os.environ[k] = v
    return True


def _read_job_payload_required(payload_src_hint: str | None) -> tuple[dict[str, Any], str]:
    """
    Contract (hard):
      - Canonical job input is GRADLE_API_DEPS_JOB_JSON (env JSON string).
      - For local runs, env may be populated from a .env file if explicitly requested via CLI.

    Returns: (payload_dict, payload_src_string)
    """
    raw = os.environ.get(JOB_JSON_ENV)
    if not raw or not raw.strip():
        raise RuntimeError(f"Missing required job payload: set {JOB_JSON_ENV} to a JSON object string.")

    payload = json.loads(raw)

    if not isinstance(payload, dict):
        raise TypeError(f"{JOB_JSON_ENV} must decode to a JSON object (dict).")

    src = payload_src_hint or f"env:{JOB_JSON_ENV}"
    return payload, src


def _configure_logging(level_name: str | None) -> None:
    level_name = (level_name or os.environ.get(LOG_LEVEL_ENV) or "WARNING").upper()
    # stdout carries the JSON result only
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_success(obj: dict[str, Any]) -> None:
    print(json.dumps(obj, separators=(",", ":")), file=sys.stdout)


def _print_failure(stage: str, err: Exception) -> None:
    out = {
        "ok": False,
        "stage": stage,
        "error_code": f"GRADLE_API_DEPS_FAILED_{stage.upper()}",
        "error_message": str(err),
    }
    print(json.dumps(out, separators=(",", ":")), file=sys.stdout)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gradle-api-deps",
        description="Gradle distribution dependency graph builder",
    )
    parser.add_argument(
        "--dotenv",
        nargs="?",
        const=".env",
        default=None,
        metavar="PATH",
        help="Optional: load env vars from a local .env file (default: ./.env).",
    )
    parser.add_argument(
        "--dotenv-override",
        action="store_true",
        help="Optional: allow .env values to override already-set environment variables.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build all snapshots but do not write output.completed_graph_file.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        metavar="LEVEL",
        help=f"Logging level for stderr (default: ${LOG_LEVEL_ENV} or WARNING).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"gradle-api-deps {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    dry_run = bool(args.dry_run)

    payload_src_hint: str | None = None
    had_payload_before = bool(os.environ.get(JOB_JSON_ENV, "").strip())

    if args.dotenv:
        loaded = _load_dotenv_file(str(args.dotenv), override=bool(args.dotenv_override))
        if loaded and not had_payload_before and bool(os.environ.get(JOB_JSON_ENV, "").strip()):
            payload_src_hint = f"dotenv:{args.dotenv}#{JOB_JSON_ENV}"

    _configure_logging(args.log_level)

    cancellation = CancellationToken()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancellation.cancel())

    try:
        payload, payload_src = _read_job_payload_required(payload_src_hint)

        result = main_module.run(
            job_payload=payload,
            dry_run=dry_run,
            payload_src=payload_src,
            cancellation=cancellation,
        )
        _print_success(result)
        return 0

    except Exception as e:  # noqa: BLE001 - top-level CLI error handler
        from gradle_api_deps.graph import PipelineStageError

        if isinstance(e, PipelineStageError):
            _print_failure(e.stage, e)
            return 1

        # Payload / argument issues are parse_job
        if isinstance(e, (json.JSONDecodeError, RuntimeError, TypeError)):
            _print_failure(STAGE_PARSE_JOB, e)
            return 1

        _print_failure("unknown", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
