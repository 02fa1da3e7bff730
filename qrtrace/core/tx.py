# qrtrace/core/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def tx_probe(session: AsyncSession):
    """
    Probe 事务：被测函数跑完（无论成败）整体回滚，什么都不落库。
    """
    try:
        yield
    finally:
        await session.rollback()


@asynccontextmanager
async def tx_commit(session: AsyncSession):
    """
    Commit 事务：成功 commit，异常 rollback 后继续抛出。
    """
    try:
        yield
    except BaseException:
        await session.rollback()
        raise
    await session.commit()


class TxManager:
    """
    统一的事务执行器：根据 probe 标志选择事务上下文。
    Handler 内部不得控事务（只 flush）。
    """

    @staticmethod
    async def run(session: AsyncSession, *, probe: bool, fn, **kwargs):
        ctx = tx_probe if probe else tx_commit
        async with ctx(session):
            return await fn(session=session, **kwargs)
