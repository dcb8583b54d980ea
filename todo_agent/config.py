from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


MAX_ITERATIONS_CEILING = 5

_ENV_LOADED = False


def _load_env_file() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    # Resolve project root: todo_agent/config.py -> project root
    project_root = Path(__file__).resolve().parents[1]
    load_dotenv(project_root / ".env", override=False)
    _ENV_LOADED = True


@dataclass(frozen=True)
class Settings:
    database_url: str
    anthropic_api_key: str | None
    claude_model: str
    claude_max_tokens: int
    mock_llm: bool
    max_iterations: int
    run_deadline_seconds: float
    tool_timeout_seconds: float
    progress_drain_seconds: float
    max_conversations: int
    conversation_ttl_seconds: int
    log_level: str
    run_log_dir: Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except Exception:
        return default
    return value if value >= 0 else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except Exception:
        return default
    return value if value > 0 else default


def clamp_max_iterations(value: int | None, default: int = 3) -> int:
    if value is None:
        return default
    return max(1, min(int(value), MAX_ITERATIONS_CEILING))


def _normalize_log_level(value: str | None) -> str:
    normalized = (value or "INFO").strip().upper()
    if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return normalized
    return "INFO"


def get_settings() -> Settings:
    _load_env_file()
    project_root = Path(__file__).resolve().parents[1]
    run_log_dir = Path(os.getenv("RUN_LOG_DIR", str(project_root / "logs"))).expanduser().resolve()

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./todos.db"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        claude_model=os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5"),
        claude_max_tokens=int(_env_int("CLAUDE_MAX_TOKENS", default=1024) or 1024),
        mock_llm=_env_bool("MOCK_LLM", default=False),
        max_iterations=clamp_max_iterations(_env_int("AGENT_MAX_ITERATIONS", default=3)),
        run_deadline_seconds=_env_float("AGENT_RUN_DEADLINE_SECONDS", 20.0),
        tool_timeout_seconds=_env_float("AGENT_TOOL_TIMEOUT_SECONDS", 10.0),
        progress_drain_seconds=_env_float("AGENT_PROGRESS_DRAIN_SECONDS", 2.0),
        max_conversations=int(_env_int("AGENT_MAX_CONVERSATIONS", default=500) or 500),
        conversation_ttl_seconds=int(_env_int("AGENT_CONVERSATION_TTL_SECONDS", default=3600) or 3600),
        log_level=_normalize_log_level(os.getenv("LOG_LEVEL")),
        run_log_dir=run_log_dir,
    )
