from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="todo-agent-tests-"))

# Must be set before todo_agent.persistence.db builds its module-level engine.
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR / 'todos.db'}")
os.environ["MOCK_LLM"] = "true"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["AGENT_LOG_LLM_IO"] = "false"
os.environ["AGENT_LOG_TOOL_IO"] = "false"
os.environ["RUN_LOG_DIR"] = str(_TMP_DIR / "logs")

import pytest_asyncio  # noqa: E402

from todo_agent.persistence.db import build_engine, build_sessionmaker, init_db  # noqa: E402


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'todos.db'}")
    await init_db(engine)
    try:
        yield build_sessionmaker(engine)
    finally:
        await engine.dispose()
