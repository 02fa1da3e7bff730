# qrtrace/services/document_store.py
from __future__ import annotations

import logging
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from qrtrace.domain.errors import DocumentNotFound
from qrtrace.domain.types import DocumentLine, DownstreamDocument, LineAssignment
from qrtrace.models.downstream import DownstreamDoc, DownstreamLine, DownstreamLineAssignment
from qrtrace.models.source_order import SourceOrder

logger = logging.getLogger("qrtrace.documents")


def _to_int(doc_id: Optional[str]) -> Optional[int]:
    try:
        return int(doc_id) if doc_id is not None else None
    except (TypeError, ValueError):
        return None


def _line_to_domain(row: DownstreamLine) -> DocumentLine:
    return DocumentLine(
        item_id=row.item_id,
        location_id=row.location_id,
        item_name=row.item_name or "",
        quantity=row.quantity,
        fulfilled=bool(row.fulfilled),
        inventory_assignments=[
            LineAssignment(
                internal_id=a.inventory_number_id,
                quantity=a.quantity,
                bin_id=a.bin_id,
                lot_or_serial_number=a.number,
            )
            for a in row.assignments
        ],
    )


def to_domain(row: DownstreamDoc) -> DownstreamDocument:
    return DownstreamDocument(
        id=str(row.id),
        doc_type=row.doc_type,
        source_order_id=row.source_order_id,
        scan_refs=row.scan_refs,
        lines=[_line_to_domain(ln) for ln in row.lines],
    )


def _assignment_rows(line: DocumentLine) -> List[DownstreamLineAssignment]:
    return [
        DownstreamLineAssignment(
            position=pos,
            inventory_number_id=a.internal_id,
            number=a.lot_or_serial_number,
            quantity=a.quantity,
            bin_id=a.bin_id,
        )
        for pos, a in enumerate(line.inventory_assignments)
    ]


def _same_assignments(row: DownstreamLine, line: DocumentLine) -> bool:
    old = [(a.inventory_number_id, a.quantity, a.bin_id) for a in row.assignments]
    new = [(a.internal_id, a.quantity, a.bin_id) for a in line.inventory_assignments]
    return old == new


class SqlDocumentStore:
    """
    下游单据存取：
      - load(doc_type, id)
      - save(doc) → id（新建或覆盖行；只 flush，不 commit）
      - transform(from_type, from_id, to_type)：按来源订单预填一张新单据（未保存）
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_row(self, doc_type: Optional[str], doc_id: str) -> DownstreamDoc:
        pk = _to_int(doc_id)
        row = None
        if pk is not None:
            stmt = (
                sa.select(DownstreamDoc)
                .where(DownstreamDoc.id == pk)
                .options(selectinload(DownstreamDoc.lines).selectinload(DownstreamLine.assignments))
                .execution_options(populate_existing=True)
            )
            row = (await self.session.execute(stmt)).scalar_one_or_none()
        if row is None or (doc_type and row.doc_type != doc_type):
            raise DocumentNotFound(doc_type or "document", str(doc_id))
        return row

    async def load(self, doc_type: str, doc_id: str) -> DownstreamDocument:
        return to_domain(await self._get_row(doc_type, doc_id))

    async def save(self, doc: DownstreamDocument) -> str:
        if doc.id is None:
            row = DownstreamDoc(
                doc_type=doc.doc_type,
                source_order_id=doc.source_order_id,
                scan_refs=doc.scan_refs,
                lines=[
                    DownstreamLine(
                        line_no=i,
                        item_id=ln.item_id,
                        item_name=ln.item_name,
                        location_id=ln.location_id,
                        quantity=ln.quantity,
                        fulfilled=ln.fulfilled,
                        assignments=_assignment_rows(ln),
                    )
                    for i, ln in enumerate(doc.lines)
                ],
            )
            self.session.add(row)
            await self.session.flush()
            logger.info("created %s %s (%d lines)", doc.doc_type, row.id, len(doc.lines))
            return str(row.id)

        row = await self._get_row(doc.doc_type, doc.id)
        row.scan_refs = doc.scan_refs

        by_no = {ln.line_no: ln for ln in row.lines}
        for i, ln in enumerate(doc.lines):
            existing = by_no.pop(i, None)
            if existing is None:
                row.lines.append(
                    DownstreamLine(
                        line_no=i,
                        item_id=ln.item_id,
                        item_name=ln.item_name,
                        location_id=ln.location_id,
                        quantity=ln.quantity,
                        fulfilled=ln.fulfilled,
                        assignments=_assignment_rows(ln),
                    )
                )
                continue
            existing.fulfilled = ln.fulfilled
            if not _same_assignments(existing, ln):
                existing.assignments = _assignment_rows(ln)

        for extra in by_no.values():
            row.lines.remove(extra)

        await self.session.flush()
        logger.info("saved %s %s", doc.doc_type, row.id)
        return str(row.id)

    async def transform(self, from_type: str, from_id: str, to_type: str) -> DownstreamDocument:
        pk = _to_int(from_id)
        order = None
        if pk is not None:
            order = (
                await self.session.execute(
                    sa.select(SourceOrder)
                    .where(SourceOrder.id == pk)
                    .options(selectinload(SourceOrder.lines))
                )
            ).scalar_one_or_none()
        if order is None or order.order_type != from_type:
            raise DocumentNotFound(from_type, str(from_id))

        return DownstreamDocument(
            doc_type=to_type,
            source_order_id=str(order.id),
            lines=[
                DocumentLine(
                    item_id=ln.item_id,
                    location_id=ln.location_id,
                    item_name=ln.item_name or "",
                    quantity=ln.quantity,
                )
                for ln in order.lines
            ],
        )
