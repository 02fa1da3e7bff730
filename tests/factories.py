# tests/factories.py
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.domain.types import DocumentLine, DownstreamDocument
from qrtrace.models.completion import Completion
from qrtrace.models.inventory_number import InventoryNumber
from qrtrace.models.source_order import SourceOrder, SourceOrderLine
from qrtrace.services.completion_service import NewAssignment, NewCompletion, create_completion
from qrtrace.services.document_store import SqlDocumentStore

# (item_id, location_id, quantity)
LineSpec = Tuple[str, Optional[str], int]


async def make_number(
    session: AsyncSession, number: str, item_id: str, location_id: Optional[str] = None
) -> str:
    row = InventoryNumber(number=number, item_id=item_id, location_id=location_id)
    session.add(row)
    await session.flush()
    return str(row.id)


async def make_completion(
    session: AsyncSession,
    *,
    item_id: str = "I1",
    quantity: int = 10,
    location_id: Optional[str] = "L1",
    lots: Sequence[Tuple[str, int]] = (),
    serials: Sequence[str] = (),
    register_numbers: bool = False,
) -> Completion:
    assignments = [NewAssignment(number=n, quantity=Decimal(q), kind="lot") for n, q in lots]
    assignments += [NewAssignment(number=n, quantity=Decimal(1), kind="serial") for n in serials]
    return await create_completion(
        session,
        NewCompletion(
            item_id=item_id,
            item_name=f"Item {item_id}",
            quantity=Decimal(quantity),
            location_id=location_id,
            transaction_number=f"WOC-{item_id}",
            assignments=assignments,
        ),
        register_numbers=register_numbers,
    )


async def make_document(
    session: AsyncSession,
    lines: Iterable[LineSpec],
    *,
    doc_type: str = "itemfulfillment",
) -> str:
    doc = DownstreamDocument(
        doc_type=doc_type,
        lines=[
            DocumentLine(item_id=item, location_id=loc, item_name=f"Item {item}", quantity=Decimal(qty))
            for item, loc, qty in lines
        ],
    )
    return await SqlDocumentStore(session).save(doc)


async def make_source_order(
    session: AsyncSession,
    lines: Iterable[LineSpec],
    *,
    order_type: str = "salesorder",
) -> str:
    order = SourceOrder(
        order_type=order_type,
        tran_number="SO-1",
        lines=[
            SourceOrderLine(
                line_no=i,
                item_id=item,
                item_name=f"Item {item}",
                location_id=loc,
                quantity=Decimal(qty),
            )
            for i, (item, loc, qty) in enumerate(lines)
        ],
    )
    session.add(order)
    await session.flush()
    return str(order.id)
