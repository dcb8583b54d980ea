from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_LOG_DIR_ENV = "RUN_LOG_DIR"
_LLM_IO_ENV = "AGENT_LOG_LLM_IO"
_TOOL_IO_ENV = "AGENT_LOG_TOOL_IO"
_write_lock = threading.Lock()


def _env_bool(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    content = json.dumps(data, ensure_ascii=False, indent=2, default=str)
    with _write_lock:
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)


def is_llm_io_logging_enabled() -> bool:
    return _env_bool(_LLM_IO_ENV, default=True)


def is_tool_io_logging_enabled() -> bool:
    return _env_bool(_TOOL_IO_ENV, default=True)


def get_log_root() -> Path:
    env_dir = os.getenv(_LOG_DIR_ENV)
    return Path(env_dir).expanduser().resolve() if env_dir else _project_root() / "logs"


def get_run_dir(run_id: str) -> Path:
    run_dir = get_log_root() / "runs" / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def write_llm_io_files(
    *,
    run_id: str,
    iteration: int,
    request_record: dict[str, Any],
    answer_json: Any | None = None,
) -> None:
    """Persist one model request/answer pair; never raises."""
    if not is_llm_io_logging_enabled():
        return
    try:
        request_dir = get_run_dir(run_id) / f"iteration_{iteration:03d}"
        atomic_write_json(request_dir / "request_payload.json", request_record)
        if answer_json is not None:
            atomic_write_json(request_dir / "answer.json", answer_json)
    except Exception as exc:
        logger.warning("Could not write model IO log for run %s: %s", run_id, exc)


def write_tool_io_file(
    *,
    run_id: str,
    iteration: int,
    tool_call_index: int,
    tool_name: str,
    tool_use_id: str | None,
    arguments: Any,
    result: Any = None,
    error: Any = None,
    duplicate: bool = False,
    latency_ms: int | None = None,
) -> None:
    if not is_tool_io_logging_enabled():
        return
    record = {
        "tool_name": tool_name,
        "tool_call_index": tool_call_index,
        "tool_use_id": tool_use_id,
        "status": "duplicate" if duplicate else ("error" if error is not None else "ok"),
        "context": {"run_id": run_id, "iteration": iteration, "latency_ms": latency_ms},
        "arguments": arguments,
        "result": result,
        "error": error,
    }
    try:
        path = get_run_dir(run_id) / f"iteration_{iteration:03d}" / "tools" / f"{tool_name}_{tool_call_index:04d}.json"
        atomic_write_json(path, record)
    except Exception as exc:
        logger.warning("Could not write tool IO log for run %s: %s", run_id, exc)


def write_run_summary(*, run_id: str, summary: dict[str, Any]) -> None:
    if not (is_llm_io_logging_enabled() or is_tool_io_logging_enabled()):
        return
    try:
        atomic_write_json(get_run_dir(run_id) / "run_summary.json", summary)
    except Exception as exc:
        logger.warning("Could not write run summary for run %s: %s", run_id, exc)
