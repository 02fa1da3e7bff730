# qrtrace/db/session.py
# 异步会话工厂 + FastAPI 依赖（get_session）
from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from qrtrace.core.config import get_settings

log = logging.getLogger("qrtrace.db")


# ---- DSN 归一：postgres 统一到 psycopg3，sqlite 统一到 aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql+psycopg://..."'，统一剥掉两侧引号
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def make_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    return create_async_engine(normalize_async_dsn(url), future=True, pool_pre_ping=True, echo=echo)


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


_settings = get_settings()
ASYNC_URL = normalize_async_dsn(_settings.DATABASE_URL)
log.info("[DB] Using DSN (async): %s", ASYNC_URL)

async_engine: AsyncEngine = make_engine(ASYNC_URL, echo=_settings.SQL_ECHO)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = make_session_maker(async_engine)


# ---- FastAPI 依赖 ----
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def close_engines() -> None:
    await async_engine.dispose()
