from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from todo_agent.api.chat import router as chat_router
from todo_agent.config import get_settings
from todo_agent.persistence.db import init_db

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Todo Agent Core API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def _startup() -> None:
    settings = get_settings()
    await init_db()
    logger.info(
        "Todo agent ready model=%s mock=%s max_iterations=%s deadline_s=%s",
        settings.claude_model,
        settings.mock_llm or not settings.anthropic_api_key,
        settings.max_iterations,
        settings.run_deadline_seconds,
    )


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(chat_router)
