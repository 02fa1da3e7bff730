# qrtrace/gateway/payload_codec.py
from __future__ import annotations

import base64
import binascii
import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

from qrtrace.domain.errors import DecodeCode, PayloadDecodeError
from qrtrace.domain.types import (
    AssignmentKind,
    CompletionRecord,
    InventoryAssignment,
    ItemRef,
    LocationRef,
    ScanPayload,
)

DEFAULT_TYPE_TAG = "WO_COMPLETION"

# 当前输出的 schema 版本。
#   v1（旧版，无版本标记）：id / wo / item / itemName / qty / loc / locName / date / tranNum
#   v2（当前）：completionId / sourceOrderId / itemId / itemName / quantity / locationId ...
SCHEMA_VERSION = 2
SUPPORTED_VERSIONS = {1, 2}


# ============================ encode ============================


def encode(completion: CompletionRecord, *, type_tag: str = DEFAULT_TYPE_TAG) -> ScanPayload:
    """
    完工单 → 扫码载荷（纯函数）。

    库存明细按 quantity == 1 规则（或显式 kind）拆成批次 / 序列号两组，
    批次在前、序列号在后，与线上格式 lots[] / serials[] 的顺序一致。
    """
    lots: List[InventoryAssignment] = []
    serials: List[InventoryAssignment] = []
    for a in completion.inventory_detail:
        if a.is_serial:
            serials.append(
                InventoryAssignment(
                    lot_or_serial_number=a.lot_or_serial_number,
                    quantity=Decimal("1"),
                    lot_or_serial_internal_id=a.lot_or_serial_internal_id,
                    bin_display=a.bin_display,
                    bin_id=a.bin_id,
                    kind=AssignmentKind.SERIAL,
                )
            )
        else:
            lots.append(
                InventoryAssignment(
                    lot_or_serial_number=a.lot_or_serial_number,
                    quantity=a.quantity,
                    lot_or_serial_internal_id=a.lot_or_serial_internal_id,
                    bin_display=a.bin_display,
                    bin_id=a.bin_id,
                    kind=AssignmentKind.LOT,
                )
            )

    return ScanPayload(
        type=type_tag,
        completion_id=str(completion.id),
        item=completion.item,
        quantity=completion.quantity,
        location=completion.location,
        source_order_id=completion.source_order_id,
        date=completion.transaction_date,
        transaction_number=completion.transaction_number,
        inventory_detail=lots + serials,
        schema_version=SCHEMA_VERSION,
    )


def _num(v: Decimal) -> Any:
    d = Decimal(v)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def _entry_to_wire(a: InventoryAssignment, *, with_qty: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {"num": a.lot_or_serial_number}
    if a.lot_or_serial_internal_id:
        out["numId"] = a.lot_or_serial_internal_id
    if with_qty:
        out["qty"] = _num(a.quantity)
    if a.bin_display:
        out["bin"] = a.bin_display
    if a.bin_id:
        out["binId"] = a.bin_id
    return out


def to_wire(payload: ScanPayload) -> Dict[str, Any]:
    """ScanPayload → v2 线上 dict（空字段省略，保持二维码紧凑）。"""
    out: Dict[str, Any] = {
        "type": payload.type,
        "v": SCHEMA_VERSION,
        "completionId": payload.completion_id,
    }
    if payload.source_order_id:
        out["sourceOrderId"] = payload.source_order_id
    out["itemId"] = payload.item.id
    if payload.item.display_name:
        out["itemName"] = payload.item.display_name
    out["quantity"] = _num(payload.quantity)
    if payload.location is not None:
        out["locationId"] = payload.location.id
        if payload.location.display_name:
            out["locationName"] = payload.location.display_name
    if payload.date:
        out["date"] = payload.date
    if payload.transaction_number:
        out["transactionNumber"] = payload.transaction_number

    lots = [a for a in payload.inventory_detail if not a.is_serial]
    serials = [a for a in payload.inventory_detail if a.is_serial]
    if lots:
        out["lots"] = [_entry_to_wire(a, with_qty=True) for a in lots]
    if serials:
        out["serials"] = [_entry_to_wire(a, with_qty=False) for a in serials]
    return out


def dumps(payload: ScanPayload) -> str:
    return json.dumps(to_wire(payload), ensure_ascii=False, separators=(",", ":"))


def to_base64(text: str) -> str:
    """供 HTML / JS 内嵌的安全传输形态。"""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def from_base64(b64: str) -> str:
    try:
        return base64.b64decode(b64, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise PayloadDecodeError(DecodeCode.MALFORMED_PAYLOAD, f"Invalid QR code format: {e}") from e


# ============================ decode ============================


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def _opt_str(v: Any) -> Optional[str]:
    if _blank(v):
        return None
    return str(v).strip()


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)


def _positive(v: Any) -> bool:
    # NaN / Infinity 能被 json 解析出来，这里一并拒绝
    return _is_number(v) and Decimal(str(v)).is_finite() and v > 0


def _malformed(msg: str) -> PayloadDecodeError:
    return PayloadDecodeError(DecodeCode.MALFORMED_PAYLOAD, f"Invalid QR code format: {msg}")


def _parse_entry(e: Any, *, kind: Optional[AssignmentKind], path: str) -> InventoryAssignment:
    if not isinstance(e, dict):
        raise _malformed(f"{path} is not an object")

    number = _opt_str(e.get("num") if "num" in e else e.get("lotNumber", e.get("number")))
    number_id = _opt_str(e.get("numId") if "numId" in e else e.get("lotInternalId"))
    if number is None and number_id is None:
        raise _malformed(f"{path} has neither number nor internal id")

    if kind == AssignmentKind.SERIAL:
        qty = Decimal("1")
    else:
        raw_qty = e.get("qty", e.get("quantity"))
        if not _positive(raw_qty):
            raise _malformed(f"{path} has invalid quantity")
        qty = Decimal(str(raw_qty))

    return InventoryAssignment(
        lot_or_serial_number=number or "",
        quantity=qty,
        lot_or_serial_internal_id=number_id,
        bin_display=_opt_str(e.get("bin")),
        bin_id=_opt_str(e.get("binId")),
        kind=kind,
    )


def _parse_entries(obj: Dict[str, Any]) -> List[InventoryAssignment]:
    out: List[InventoryAssignment] = []
    for key, kind in (("lots", AssignmentKind.LOT), ("serials", AssignmentKind.SERIAL)):
        seq = obj.get(key)
        if seq is None:
            continue
        if not isinstance(seq, list):
            raise _malformed(f"{key} is not a list")
        for i, e in enumerate(seq):
            out.append(_parse_entry(e, kind=kind, path=f"{key}[{i}]"))

    # 另一种变体：inventoryDetail[] 平铺，kind 交给 quantity == 1 规则
    detail = obj.get("inventoryDetail")
    if detail is not None:
        if not isinstance(detail, list):
            raise _malformed("inventoryDetail is not a list")
        for i, e in enumerate(detail):
            out.append(_parse_entry(e, kind=None, path=f"inventoryDetail[{i}]"))
    return out


def _detect_version(obj: Dict[str, Any]) -> int:
    v = obj.get("v")
    if v is not None:
        if isinstance(v, bool) or v not in SUPPORTED_VERSIONS:
            raise _malformed(f"unsupported payload schema version {v!r}")
        return int(v)
    if "completionId" in obj:
        return 2
    if "id" in obj:
        return 1
    return 2


def decode(raw: str, *, type_tag: str = DEFAULT_TYPE_TAG) -> ScanPayload:
    """
    扫码文本 → ScanPayload；失败抛 PayloadDecodeError。

    校验顺序固定，只报第一个失败：
      EMPTY_INPUT → MALFORMED_PAYLOAD → WRONG_TYPE → MALFORMED_PAYLOAD（版本）
      → MISSING_IDENTIFIER → MISSING_ITEM → INVALID_QUANTITY
    """
    s = (raw or "").strip()
    if not s:
        raise PayloadDecodeError(DecodeCode.EMPTY_INPUT, "QR scan data is empty")

    try:
        obj = json.loads(s, parse_float=Decimal)
    except (ValueError, RecursionError) as e:
        raise _malformed(str(e)) from e
    if not isinstance(obj, dict):
        raise _malformed("payload is not an object")

    if obj.get("type") != type_tag:
        raise PayloadDecodeError(DecodeCode.WRONG_TYPE, "Invalid QR code type")

    version = _detect_version(obj)

    if version == 1:
        completion_id = obj.get("id")
        item_id = obj.get("item")
        qty = obj.get("qty")
        loc_id, loc_name = obj.get("loc"), obj.get("locName")
        source_order_id = obj.get("wo")
        tran_number = obj.get("tranNum")
    else:
        completion_id = obj.get("completionId")
        item_id = obj.get("itemId")
        if item_id is None and isinstance(obj.get("item"), dict):
            item_id = obj["item"].get("id")
        qty = obj.get("quantity")
        loc_id, loc_name = obj.get("locationId"), obj.get("locationName")
        source_order_id = obj.get("sourceOrderId")
        tran_number = obj.get("transactionNumber")

    if _blank(completion_id) or isinstance(completion_id, (dict, list, bool)):
        raise PayloadDecodeError(DecodeCode.MISSING_IDENTIFIER, "Missing completion ID in QR code")

    if _blank(item_id) or isinstance(item_id, (dict, list, bool)):
        raise PayloadDecodeError(DecodeCode.MISSING_ITEM, "Missing item in QR code")

    if not _positive(qty):
        raise PayloadDecodeError(DecodeCode.INVALID_QUANTITY, "Invalid quantity in QR code")

    loc_id = _opt_str(loc_id)
    location = LocationRef(id=loc_id, display_name=_opt_str(loc_name) or "") if loc_id else None

    return ScanPayload(
        type=type_tag,
        completion_id=str(completion_id).strip(),
        item=ItemRef(id=str(item_id).strip(), display_name=_opt_str(obj.get("itemName")) or ""),
        quantity=Decimal(str(qty)),
        location=location,
        source_order_id=_opt_str(source_order_id),
        date=_opt_str(obj.get("date")),
        transaction_number=_opt_str(tran_number),
        inventory_detail=_parse_entries(obj),
        schema_version=version,
    )
