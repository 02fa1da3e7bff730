# qrtrace/core/audit.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.models.event_log import EventLog

logger = logging.getLogger("qrtrace.audit")


@dataclass
class TraceContext:
    """
    轻量级 Trace 上下文：

    - trace_id: 全局唯一字符串（UUID4 hex）
    - source: 生成来源（例如 'http:/scan/process'）
    """

    trace_id: str
    source: Optional[str] = None


def new_trace(source: str) -> TraceContext:
    return TraceContext(trace_id=uuid4().hex, source=source)


class AuditWriter:
    """
    扫码 / 对账事件统一写入 event_log：

    - 事件源名固定为 scan_<action>_<result>，例如 scan_process_commit
    - 写完立即 commit（审计可见性与主事务解耦）；
      审计写失败只记日志，不影响主流程
    """

    @staticmethod
    async def _write(
        session: AsyncSession,
        source: str,
        level: str,
        message: Mapping[str, Any],
        trace_id: Optional[str] = None,
    ) -> Optional[int]:
        try:
            ev = EventLog(
                source=source,
                level=level,
                message=dict(message),
                meta={},
                trace_id=trace_id,
            )
            session.add(ev)
            await session.flush()
            await session.commit()
            return int(ev.id)
        except SQLAlchemyError:
            logger.exception("audit write failed: %s", source)
            await session.rollback()
            return None

    async def commit(
        self, session: AsyncSession, action: str, payload: Mapping[str, Any], *, trace_id: str
    ) -> Optional[int]:
        return await self._write(session, f"scan_{action}_commit", "INFO", payload, trace_id)

    async def probe(
        self, session: AsyncSession, action: str, payload: Mapping[str, Any], *, trace_id: str
    ) -> Optional[int]:
        return await self._write(session, f"scan_{action}_probe", "INFO", payload, trace_id)

    async def error(
        self, session: AsyncSession, action: str, err: Mapping[str, Any], *, trace_id: str
    ) -> Optional[int]:
        return await self._write(session, f"scan_{action}_error", "ERROR", err, trace_id)

    async def other(
        self, session: AsyncSession, source: str, payload: Mapping[str, Any], *, trace_id: Optional[str] = None
    ) -> Optional[int]:
        return await self._write(session, source, "INFO", payload, trace_id)
