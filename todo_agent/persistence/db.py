from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from todo_agent.config import get_settings
from todo_agent.persistence.models import Base


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, future=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


_settings = get_settings()
_engine = build_engine(_settings.database_url)
SessionLocal = build_sessionmaker(_engine)


async def init_db(engine: AsyncEngine | None = None) -> None:
    async with (engine or _engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
