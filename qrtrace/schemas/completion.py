# qrtrace/schemas/completion.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from qrtrace.domain.types import CompletionRecord
from qrtrace.schemas._base import CamelModel


class AssignmentIn(CamelModel):
    lot_or_serial_number: str = Field(..., min_length=1, description="批号 / 序列号文本")
    quantity: Decimal = Field(..., gt=0)
    lot_or_serial_internal_id: Optional[str] = None
    bin_display: Optional[str] = None
    bin_id: Optional[str] = None
    kind: Optional[Literal["lot", "serial"]] = Field(
        None, description="缺省时按 quantity == 1 判定序列号"
    )

    @field_validator("lot_or_serial_number", mode="before")
    @classmethod
    def _trim(cls, v):
        return v.strip() if isinstance(v, str) else v


class CompletionCreate(CamelModel):
    """
    完工入库：记录完工单并生成扫码载荷。

    - itemId + quantity 必填
    - inventoryDetail：批次 / 序列号分配，按录入顺序保存
    """

    item_id: str = Field(..., min_length=1)
    item_name: str = ""
    quantity: Decimal = Field(..., gt=0)
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    source_order_id: Optional[str] = None
    transaction_date: Optional[str] = None
    transaction_number: Optional[str] = None
    inventory_detail: List[AssignmentIn] = Field(default_factory=list)

    @field_validator("item_id", "location_id", "source_order_id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class AssignmentOut(CamelModel):
    lot_or_serial_number: str
    quantity: Decimal
    lot_or_serial_internal_id: Optional[str] = None
    bin_display: Optional[str] = None
    bin_id: Optional[str] = None
    kind: Optional[str] = None


class CompletionOut(CamelModel):
    id: str
    item_id: str
    item_name: str = ""
    quantity: Decimal
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    source_order_id: Optional[str] = None
    transaction_date: Optional[str] = None
    transaction_number: Optional[str] = None
    inventory_detail: List[AssignmentOut] = Field(default_factory=list)
    scanned: bool = False
    linked_downstream_id: Optional[str] = None
    payload: Optional[str] = None

    @classmethod
    def from_record(cls, rec: CompletionRecord, payload: Optional[str] = None) -> "CompletionOut":
        return cls(
            id=rec.id,
            item_id=rec.item.id,
            item_name=rec.item.display_name,
            quantity=rec.quantity,
            location_id=rec.location.id if rec.location else None,
            location_name=rec.location.display_name if rec.location else None,
            source_order_id=rec.source_order_id,
            transaction_date=rec.transaction_date,
            transaction_number=rec.transaction_number,
            inventory_detail=[
                AssignmentOut(
                    lot_or_serial_number=a.lot_or_serial_number,
                    quantity=a.quantity,
                    lot_or_serial_internal_id=a.lot_or_serial_internal_id,
                    bin_display=a.bin_display,
                    bin_id=a.bin_id,
                    kind=str(a.kind.value) if a.kind else None,
                )
                for a in rec.inventory_detail
            ],
            scanned=rec.scanned,
            linked_downstream_id=rec.linked_downstream_id,
            payload=payload,
        )


class CompletionStatusOut(CamelModel):
    scanned: bool
    linked_downstream_id: Optional[str] = None


class PayloadOut(CamelModel):
    payload: str = Field(..., description="扫码载荷 JSON 文本")
    encoded: str = Field(..., description="base64 形式（二维码内容）")
