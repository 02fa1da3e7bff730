# qrtrace/schemas/document.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from qrtrace.domain.types import DownstreamDocument
from qrtrace.schemas._base import CamelModel


class LineAssignmentOut(CamelModel):
    internal_id: str
    quantity: Decimal
    bin_id: Optional[str] = None
    lot_or_serial_number: Optional[str] = None


class DocumentLineOut(CamelModel):
    line_index: int
    item_id: str
    item_name: str = ""
    location_id: Optional[str] = None
    quantity: Decimal = Decimal("0")
    fulfilled: bool = False
    inventory_assignments: List[LineAssignmentOut] = Field(default_factory=list)


class DocumentOut(CamelModel):
    """下游单据快照（客户端扫码时做行匹配用）。"""

    id: Optional[str] = None
    doc_type: str
    source_order_id: Optional[str] = None
    scan_refs: Optional[str] = None
    lines: List[DocumentLineOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, doc: DownstreamDocument) -> "DocumentOut":
        return cls(
            id=doc.id,
            doc_type=doc.doc_type,
            source_order_id=doc.source_order_id,
            scan_refs=doc.scan_refs,
            lines=[
                DocumentLineOut(
                    line_index=i,
                    item_id=ln.item_id,
                    item_name=ln.item_name,
                    location_id=ln.location_id,
                    quantity=ln.quantity,
                    fulfilled=ln.fulfilled,
                    inventory_assignments=[
                        LineAssignmentOut(
                            internal_id=a.internal_id,
                            quantity=a.quantity,
                            bin_id=a.bin_id,
                            lot_or_serial_number=a.lot_or_serial_number,
                        )
                        for a in ln.inventory_assignments
                    ],
                )
                for i, ln in enumerate(doc.lines)
            ],
        )
