# qrtrace/services/completion_status.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.domain.errors import AlreadyScanned, CompletionNotFound
from qrtrace.domain.ports import LookupIndexPort
from qrtrace.domain.types import CompletionStatus
from qrtrace.models.completion import Completion
from qrtrace.services.lookup_index import LookupIndex

UTC = timezone.utc
logger = logging.getLogger("qrtrace.completion_status")


class SqlCompletionStatusStore:
    """
    完工单消费状态（共享可变资源，跨会话协调只走这里的条件写）：

    - get_status：直查，无缓存
    - mark_scanned：UPDATE ... WHERE scanned = false，rowcount=0 即 AlreadyScanned
      （false/null → true/<id> 只发生一次，不回退、不改挂）

    不控事务：由调用方（TxManager）决定 commit / rollback。
    """

    def __init__(self, session: AsyncSession, lookup: LookupIndexPort | None = None):
        self.session = session
        self.lookup: LookupIndexPort = lookup or LookupIndex(session)

    async def get_status(self, completion_id: str) -> CompletionStatus:
        row = await self.lookup.lookup(
            "completion", completion_id, ["scanned", "linked_downstream_id"]
        )
        if row is None:
            return CompletionStatus(scanned=False, linked_downstream_id=None)
        return CompletionStatus(
            scanned=bool(row["scanned"]),
            linked_downstream_id=row["linked_downstream_id"] or None,
        )

    async def mark_scanned(self, completion_id: str, downstream_id: str) -> None:
        try:
            pk = int(completion_id)
        except (TypeError, ValueError):
            raise CompletionNotFound(completion_id) from None

        stmt = (
            sa.update(Completion)
            .where(Completion.id == pk, Completion.scanned.is_(False))
            .values(
                scanned=True,
                linked_downstream_id=str(downstream_id),
                scanned_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        if res.rowcount == 1:
            logger.info("completion %s marked scanned → %s", completion_id, downstream_id)
            return

        current = await self.get_status(completion_id)
        if not current.scanned and await self.lookup.lookup("completion", completion_id, ["id"]) is None:
            raise CompletionNotFound(completion_id)
        raise AlreadyScanned(completion_id, current.linked_downstream_id)
