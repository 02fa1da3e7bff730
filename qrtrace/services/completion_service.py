# qrtrace/services/completion_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.core.config import get_settings
from qrtrace.domain.errors import CompletionNotFound
from qrtrace.domain.types import (
    AssignmentKind,
    CompletionRecord,
    InventoryAssignment,
    ItemRef,
    LocationRef,
)
from qrtrace.gateway import payload_codec
from qrtrace.models.completion import Completion, CompletionAssignment
from qrtrace.models.inventory_number import InventoryNumber

logger = logging.getLogger("qrtrace.completions")


@dataclass
class NewAssignment:
    number: str
    quantity: Decimal
    number_id: Optional[str] = None
    bin_display: Optional[str] = None
    bin_id: Optional[str] = None
    kind: Optional[str] = None


@dataclass
class NewCompletion:
    item_id: str
    quantity: Decimal
    item_name: str = ""
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    source_order_id: Optional[str] = None
    transaction_date: Optional[str] = None
    transaction_number: Optional[str] = None
    assignments: List[NewAssignment] = field(default_factory=list)


def to_record(row: Completion) -> CompletionRecord:
    location = None
    if row.location_id:
        location = LocationRef(id=row.location_id, display_name=row.location_name or "")
    return CompletionRecord(
        id=str(row.id),
        item=ItemRef(id=row.item_id, display_name=row.item_name or ""),
        quantity=row.quantity,
        location=location,
        source_order_id=row.source_order_id,
        transaction_date=row.transaction_date,
        transaction_number=row.transaction_number,
        inventory_detail=[
            InventoryAssignment(
                lot_or_serial_number=a.number,
                quantity=a.quantity,
                lot_or_serial_internal_id=a.number_id,
                bin_display=a.bin_display,
                bin_id=a.bin_id,
                kind=AssignmentKind(a.kind) if a.kind else None,
            )
            for a in row.assignments
        ],
        scanned=bool(row.scanned),
        linked_downstream_id=row.linked_downstream_id,
    )


def render_payload(record: CompletionRecord) -> str:
    settings = get_settings()
    return payload_codec.dumps(payload_codec.encode(record, type_tag=settings.PAYLOAD_TYPE_TAG))


async def _ensure_number(
    session: AsyncSession, *, number: str, item_id: str, location_id: Optional[str]
) -> str:
    """完工入库即登记批号 / 序列号（同 item+number+location 复用）。"""
    stmt = sa.select(InventoryNumber.id).where(
        InventoryNumber.item_id == item_id,
        InventoryNumber.number == number,
        InventoryNumber.location_id.is_(None)
        if location_id is None
        else InventoryNumber.location_id == location_id,
    )
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        return str(existing)

    row = InventoryNumber(number=number, item_id=item_id, location_id=location_id)
    session.add(row)
    await session.flush()
    return str(row.id)


async def create_completion(
    session: AsyncSession,
    data: NewCompletion,
    *,
    register_numbers: bool = True,
) -> Completion:
    """
    记录一张完工单并生成扫码载荷（只 flush，不 commit）。

    register_numbers=True 时，缺 number_id 的批号 / 序列号会登记到 inventory_numbers。
    """
    assignments: List[CompletionAssignment] = []
    for pos, a in enumerate(data.assignments):
        number_id = a.number_id
        if not number_id and register_numbers and a.number:
            number_id = await _ensure_number(
                session, number=a.number, item_id=data.item_id, location_id=data.location_id
            )
        assignments.append(
            CompletionAssignment(
                position=pos,
                number=a.number,
                number_id=number_id,
                quantity=a.quantity,
                bin_display=a.bin_display,
                bin_id=a.bin_id,
                kind=a.kind,
            )
        )

    row = Completion(
        item_id=data.item_id,
        item_name=data.item_name,
        quantity=data.quantity,
        location_id=data.location_id,
        location_name=data.location_name,
        source_order_id=data.source_order_id,
        transaction_date=data.transaction_date,
        transaction_number=data.transaction_number,
        scanned=False,
        assignments=assignments,
    )
    session.add(row)
    await session.flush()

    row.payload = render_payload(to_record(row))
    await session.flush()
    logger.info("completion %s recorded (item=%s qty=%s)", row.id, row.item_id, row.quantity)
    return row


async def get_completion(session: AsyncSession, completion_id: str) -> Completion:
    try:
        pk = int(completion_id)
    except (TypeError, ValueError):
        raise CompletionNotFound(completion_id) from None
    row = await session.get(Completion, pk, populate_existing=True)
    if row is None:
        raise CompletionNotFound(completion_id)
    return row


async def load_records(session: AsyncSession, completion_ids: Sequence[str]) -> List[CompletionRecord]:
    """按传入顺序加载完工单；任一不存在抛 CompletionNotFound。"""
    out: List[CompletionRecord] = []
    for cid in completion_ids:
        out.append(to_record(await get_completion(session, cid)))
    return out


async def regenerate_payload(session: AsyncSession, completion_id: str) -> str:
    """
    完工单编辑后重算载荷。

    scanned / linked_downstream_id 不受影响（状态只前进不回退）。
    """
    row = await get_completion(session, completion_id)
    row.payload = render_payload(to_record(row))
    await session.flush()
    return row.payload
