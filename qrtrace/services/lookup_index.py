# qrtrace/services/lookup_index.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.db.base import Base
from qrtrace.models.completion import Completion
from qrtrace.models.downstream import DownstreamDoc
from qrtrace.models.inventory_number import InventoryNumber

# entity_type → ORM 模型（名字沿用 ERP 的记录类型）
ENTITIES: Dict[str, Type[Base]] = {
    "completion": Completion,
    "inventorynumber": InventoryNumber,
    "downstream": DownstreamDoc,
}

Filter = Tuple[str, str, Any]


def _model(entity_type: str) -> Type[Base]:
    try:
        return ENTITIES[entity_type.lower()]
    except KeyError:
        raise ValueError(f"unknown entity type: {entity_type}") from None


def _column(model: Type[Base], name: str) -> sa.ColumnElement:
    col = getattr(model, name, None)
    if col is None:
        raise ValueError(f"{model.__tablename__} has no field {name!r}")
    return col


def _where(model: Type[Base], f: Filter) -> sa.ColumnElement:
    name, op, value = f
    col = _column(model, name)
    op = op.lower()
    if op == "is":
        return col == value
    if op == "isnot":
        return col != value
    if op == "anyof":
        return col.in_(list(value))
    if op == "isempty":
        return col.is_(None)
    if op == "isnotempty":
        return col.is_not(None)
    raise ValueError(f"unsupported filter operator: {op}")


def _pk(entity_id: str) -> Any:
    try:
        return int(entity_id)
    except (TypeError, ValueError):
        return None


class LookupIndex:
    """
    只读查询入口：
      - lookup(entity_type, id, fields)  主键取若干字段
      - query(entity_type, filters)      条件查询，filters 为 (field, op, value)
    无缓存，每次直查（状态检查要看到最新已提交写入）。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lookup(
        self, entity_type: str, entity_id: str, fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        model = _model(entity_type)
        pk = _pk(entity_id)
        if pk is None:
            return None
        cols = [_column(model, f) for f in fields]
        row = (await self.session.execute(sa.select(*cols).where(model.id == pk))).first()
        if row is None:
            return None
        return dict(zip(fields, row))

    async def query(self, entity_type: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        model = _model(entity_type)
        stmt = sa.select(model).order_by(model.id.asc())
        for f in filters:
            stmt = stmt.where(_where(model, f))
        rows = (await self.session.execute(stmt)).scalars().all()
        return [
            {c.key: getattr(r, c.key) for c in sa.inspect(model).column_attrs}
            for r in rows
        ]


class SqlInventoryNumberIndex:
    """
    批号 / 序列号文本 → inventory_numbers.id

    同号多条时：库位相同优先，其次不限库位的记录，再其次第一条。
    """

    def __init__(self, lookup: LookupIndex):
        self.lookup = lookup

    async def resolve(
        self,
        number: str,
        *,
        item_id: str,
        location_id: Optional[str] = None,
    ) -> Optional[str]:
        if not number or not item_id:
            return None

        rows = await self.lookup.query(
            "inventorynumber",
            [("number", "is", number), ("item_id", "is", str(item_id))],
        )
        if not rows:
            return None

        if location_id:
            for r in rows:
                if r["location_id"] == str(location_id):
                    return str(r["id"])
        for r in rows:
            if r["location_id"] is None:
                return str(r["id"])
        return str(rows[0]["id"])
