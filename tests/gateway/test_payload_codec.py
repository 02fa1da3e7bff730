# tests/gateway/test_payload_codec.py
from __future__ import annotations

import json
from decimal import Decimal

import pytest

from qrtrace.domain.errors import DecodeCode, PayloadDecodeError
from qrtrace.domain.types import (
    AssignmentKind,
    CompletionRecord,
    InventoryAssignment,
    ItemRef,
    LocationRef,
)
from qrtrace.gateway import payload_codec as codec

pytestmark = pytest.mark.grp_scan


def _completion(**kw) -> CompletionRecord:
    base = dict(
        id="C1",
        item=ItemRef(id="I1", display_name="Widget"),
        quantity=Decimal("10"),
        location=LocationRef(id="L1", display_name="Main"),
        source_order_id="WO-7",
        transaction_date="2026-10-01",
        transaction_number="WOC-100",
        inventory_detail=[InventoryAssignment(lot_or_serial_number="LOT-A", quantity=Decimal("10"))],
    )
    base.update(kw)
    return CompletionRecord(**base)


def _code(raw) -> str:
    with pytest.raises(PayloadDecodeError) as ei:
        codec.decode(raw)
    return ei.value.code


# ---------------- round trip ----------------


def test_round_trip_keeps_identity_fields():
    c = _completion()
    p = codec.decode(codec.dumps(codec.encode(c)))

    assert p.completion_id == "C1"
    assert p.item.id == "I1"
    assert p.quantity == Decimal("10")
    assert p.location_id == "L1"
    assert p.source_order_id == "WO-7"
    assert p.schema_version == 2
    assert [(a.lot_or_serial_number, a.quantity) for a in p.inventory_detail] == [
        ("LOT-A", Decimal("10"))
    ]


def test_round_trip_without_location():
    p = codec.decode(codec.dumps(codec.encode(_completion(location=None))))
    assert p.location is None
    assert p.location_id is None


def test_encode_orders_lots_before_serials():
    c = _completion(
        quantity=Decimal("7"),
        inventory_detail=[
            InventoryAssignment(lot_or_serial_number="SN-1", quantity=Decimal("1")),
            InventoryAssignment(lot_or_serial_number="LOT-B", quantity=Decimal("5")),
            InventoryAssignment(lot_or_serial_number="SN-2", quantity=Decimal("1")),
        ],
    )
    p = codec.encode(c)
    assert [a.lot_or_serial_number for a in p.inventory_detail] == ["LOT-B", "SN-1", "SN-2"]
    assert [a.kind for a in p.inventory_detail] == [
        AssignmentKind.LOT,
        AssignmentKind.SERIAL,
        AssignmentKind.SERIAL,
    ]

    wire = codec.to_wire(p)
    assert wire["lots"] == [{"num": "LOT-B", "qty": 5}]
    assert wire["serials"] == [{"num": "SN-1"}, {"num": "SN-2"}]


def test_explicit_kind_overrides_quantity_heuristic():
    c = _completion(
        quantity=Decimal("1"),
        inventory_detail=[
            InventoryAssignment(
                lot_or_serial_number="LOT-ONE", quantity=Decimal("1"), kind=AssignmentKind.LOT
            )
        ],
    )
    wire = codec.to_wire(codec.encode(c))
    assert wire["lots"] == [{"num": "LOT-ONE", "qty": 1}]
    assert "serials" not in wire


def test_wire_is_compact_and_versioned():
    text = codec.dumps(codec.encode(_completion()))
    obj = json.loads(text)
    assert obj["type"] == "WO_COMPLETION"
    assert obj["v"] == 2
    assert obj["completionId"] == "C1"
    assert " " not in text


def test_decimal_quantity_survives():
    c = _completion(
        quantity=Decimal("2.5"),
        inventory_detail=[InventoryAssignment(lot_or_serial_number="LOT-H", quantity=Decimal("2.5"))],
    )
    p = codec.decode(codec.dumps(codec.encode(c)))
    assert p.quantity == Decimal("2.5")
    assert p.inventory_detail[0].quantity == Decimal("2.5")


# ---------------- rejection ordering ----------------


@pytest.mark.parametrize("raw", [None, "", "   \n"])
def test_empty_input(raw):
    assert _code(raw) == DecodeCode.EMPTY_INPUT


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"WO_COMPLETION"', "42"])
def test_malformed(raw):
    assert _code(raw) == DecodeCode.MALFORMED_PAYLOAD


def test_missing_type_and_id_reports_wrong_type_first():
    assert _code(json.dumps({"itemId": "I1", "quantity": 3})) == DecodeCode.WRONG_TYPE


def test_wrong_type_tag():
    assert _code(json.dumps({"type": "PO_RECEIPT", "completionId": "C1"})) == DecodeCode.WRONG_TYPE


def test_missing_identifier_before_item():
    raw = json.dumps({"type": "WO_COMPLETION", "v": 2, "quantity": 3})
    assert _code(raw) == DecodeCode.MISSING_IDENTIFIER


def test_missing_item_before_quantity():
    raw = json.dumps({"type": "WO_COMPLETION", "v": 2, "completionId": "C1", "quantity": 0})
    assert _code(raw) == DecodeCode.MISSING_ITEM


@pytest.mark.parametrize("qty", [0, -1, "10", None, True, float("nan"), float("inf"), float("-inf")])
def test_invalid_quantity(qty):
    raw = json.dumps(
        {"type": "WO_COMPLETION", "v": 2, "completionId": "C1", "itemId": "I1", "quantity": qty}
    )
    assert _code(raw) == DecodeCode.INVALID_QUANTITY


def test_custom_type_tag():
    text = codec.dumps(codec.encode(_completion(), type_tag="ASSEMBLY_BUILD"))
    assert codec.decode(text, type_tag="ASSEMBLY_BUILD").completion_id == "C1"
    with pytest.raises(PayloadDecodeError) as ei:
        codec.decode(text)
    assert ei.value.code == DecodeCode.WRONG_TYPE


# ---------------- schema versions ----------------


def test_legacy_v1_payload():
    raw = json.dumps(
        {
            "type": "WO_COMPLETION",
            "id": "5501",
            "wo": "WO-9",
            "item": "77",
            "itemName": "Bracket",
            "qty": 3,
            "loc": "4",
            "locName": "Plant",
            "date": "1/10/2026",
            "tranNum": "WOC-12",
            "lots": [{"num": "LOT-X", "numId": "LOT-X", "qty": 2, "bin": "A-1", "binId": "31"}],
            "serials": [{"num": "SN-9", "numId": "812"}],
            "bins": [],
        }
    )
    p = codec.decode(raw)
    assert p.schema_version == 1
    assert p.completion_id == "5501"
    assert p.item.id == "77"
    assert p.item.display_name == "Bracket"
    assert p.location_id == "4"
    assert p.source_order_id == "WO-9"
    assert p.transaction_number == "WOC-12"

    lot, serial = p.inventory_detail
    assert lot.kind == AssignmentKind.LOT
    assert lot.quantity == Decimal("2")
    assert lot.bin_id == "31"
    # numId 等于批号文本：视同未解析
    assert lot.is_resolved is False
    assert serial.kind == AssignmentKind.SERIAL
    assert serial.quantity == Decimal("1")
    assert serial.lot_or_serial_internal_id == "812"


def test_untagged_v2_with_inventory_detail():
    raw = json.dumps(
        {
            "type": "WO_COMPLETION",
            "completionId": "C2",
            "itemId": "I2",
            "quantity": 4,
            "locationId": "L2",
            "inventoryDetail": [
                {"lotNumber": "LOT-Q", "lotInternalId": "9100", "qty": 3},
                {"lotNumber": "SN-4", "qty": 1},
            ],
        }
    )
    p = codec.decode(raw)
    assert p.schema_version == 2
    assert [a.lot_or_serial_number for a in p.inventory_detail] == ["LOT-Q", "SN-4"]
    assert p.inventory_detail[0].lot_or_serial_internal_id == "9100"
    assert p.inventory_detail[0].is_serial is False
    assert p.inventory_detail[1].is_serial is True


@pytest.mark.parametrize("v", [3, 0, "2", True])
def test_unknown_schema_version_is_rejected(v):
    raw = json.dumps(
        {"type": "WO_COMPLETION", "v": v, "completionId": "C1", "itemId": "I1", "quantity": 1}
    )
    assert _code(raw) == DecodeCode.MALFORMED_PAYLOAD


def test_bad_inventory_entry_is_not_dropped():
    raw = json.dumps(
        {
            "type": "WO_COMPLETION",
            "v": 2,
            "completionId": "C1",
            "itemId": "I1",
            "quantity": 5,
            "lots": [{"num": "LOT-A", "qty": 5}, {"bin": "A-1"}],
        }
    )
    assert _code(raw) == DecodeCode.MALFORMED_PAYLOAD


@pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_quantity_literal(token):
    raw = '{"type":"WO_COMPLETION","completionId":"C1","itemId":"I1","quantity":%s}' % token
    assert _code(raw) == DecodeCode.INVALID_QUANTITY


@pytest.mark.parametrize("token", ["NaN", "Infinity"])
def test_non_finite_entry_quantity(token):
    raw = (
        '{"type":"WO_COMPLETION","completionId":"C1","itemId":"I1","quantity":5,'
        '"lots":[{"num":"LOT-A","qty":%s}]}' % token
    )
    assert _code(raw) == DecodeCode.MALFORMED_PAYLOAD


def test_deeply_nested_input_is_malformed():
    assert _code("[" * 100000) == DecodeCode.MALFORMED_PAYLOAD
    assert _code('{"a":' * 100000) == DecodeCode.MALFORMED_PAYLOAD


def test_type_checked_before_schema_version():
    assert _code(json.dumps({"v": 3, "completionId": "C1"})) == DecodeCode.WRONG_TYPE


# ---------------- base64 ----------------


def test_base64_round_trip():
    text = codec.dumps(codec.encode(_completion(item=ItemRef(id="I1", display_name="螺栓 M8"))))
    b64 = codec.to_base64(text)
    assert codec.from_base64(b64) == text
    assert codec.decode(codec.from_base64(b64)).item.display_name == "螺栓 M8"


def test_base64_garbage():
    with pytest.raises(PayloadDecodeError) as ei:
        codec.from_base64("***not-base64***")
    assert ei.value.code == DecodeCode.MALFORMED_PAYLOAD
