# qrtrace/domain/types.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

try:
    from enum import StrEnum  # Python 3.11+
except ImportError:  # 3.10
    from enum import Enum

    class StrEnum(str, Enum):  # type: ignore[no-redef]
        def __str__(self) -> str:
            return str(self.value)


SERIAL_QTY = Decimal("1")


class AssignmentKind(StrEnum):
    LOT = "lot"
    SERIAL = "serial"


@dataclass(frozen=True)
class ItemRef:
    id: str
    display_name: str = ""


@dataclass(frozen=True)
class LocationRef:
    id: str
    display_name: str = ""


@dataclass
class InventoryAssignment:
    """
    一条批次 / 序列号 / 库位分配。

    kind 为空时按 quantity == 1 判定为序列号（非可合并），否则为批次。
    注意：数量恰为 1 的批次与序列号无法区分，这是沿用的启发式规则；
    需要消除歧义时请显式传入 kind。
    """

    lot_or_serial_number: str
    quantity: Decimal
    lot_or_serial_internal_id: Optional[str] = None
    bin_display: Optional[str] = None
    bin_id: Optional[str] = None
    kind: Optional[AssignmentKind] = None

    @property
    def is_serial(self) -> bool:
        if self.kind is not None:
            return self.kind == AssignmentKind.SERIAL
        return self.quantity == SERIAL_QTY

    @property
    def is_resolved(self) -> bool:
        iid = self.lot_or_serial_internal_id
        # 旧数据里 numId 有时直接存的是批号文本本身，视同未解析
        return bool(iid) and iid != self.lot_or_serial_number


@dataclass
class CompletionRecord:
    id: str
    item: ItemRef
    quantity: Decimal
    location: Optional[LocationRef] = None
    source_order_id: Optional[str] = None
    transaction_date: Optional[str] = None
    transaction_number: Optional[str] = None
    inventory_detail: List[InventoryAssignment] = field(default_factory=list)
    scanned: bool = False
    linked_downstream_id: Optional[str] = None


@dataclass
class ScanPayload:
    """解码后的扫码载荷（与 schema 版本无关的统一形态）。"""

    type: str
    completion_id: str
    item: ItemRef
    quantity: Decimal
    location: Optional[LocationRef] = None
    source_order_id: Optional[str] = None
    date: Optional[str] = None
    transaction_number: Optional[str] = None
    inventory_detail: List[InventoryAssignment] = field(default_factory=list)
    schema_version: int = 2

    @property
    def location_id(self) -> Optional[str]:
        return self.location.id if self.location else None


@dataclass(frozen=True)
class CompletionStatus:
    scanned: bool = False
    linked_downstream_id: Optional[str] = None


@dataclass
class LineAssignment:
    """已写到发货单行上的库存分配（internal_id 已解析）。"""

    internal_id: str
    quantity: Decimal
    bin_id: Optional[str] = None
    lot_or_serial_number: Optional[str] = None


@dataclass
class DocumentLine:
    item_id: str
    location_id: Optional[str] = None
    item_name: str = ""
    quantity: Decimal = Decimal("0")
    fulfilled: bool = False
    inventory_assignments: List[LineAssignment] = field(default_factory=list)


@dataclass
class DownstreamDocument:
    doc_type: str
    lines: List[DocumentLine] = field(default_factory=list)
    id: Optional[str] = None
    source_order_id: Optional[str] = None
    scan_refs: Optional[str] = None

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def get_line(self, index: int) -> DocumentLine:
        return self.lines[index]

    def set_line(self, index: int, line: DocumentLine) -> None:
        self.lines[index] = line

    def clone(self) -> "DownstreamDocument":
        return copy.deepcopy(self)
