# tests/services/test_inventory_reconciler.py
from __future__ import annotations

from decimal import Decimal

import pytest

from qrtrace.domain.errors import LotNotFound, NoLinesMatched
from qrtrace.domain.types import (
    AssignmentKind,
    CompletionRecord,
    DocumentLine,
    DownstreamDocument,
    InventoryAssignment,
    ItemRef,
    LineAssignment,
    LocationRef,
    ScanPayload,
)
from qrtrace.gateway import payload_codec
from qrtrace.services.inventory_reconciler import reconcile_batch, reconcile_line
from qrtrace.services.line_matcher import find_line
from tests.helpers.fakes import MemoryNumberIndex, MemoryStatusStore

pytestmark = pytest.mark.asyncio


def _payload(cid, item, *entries, loc=None) -> ScanPayload:
    return ScanPayload(
        type="WO_COMPLETION",
        completion_id=cid,
        item=ItemRef(id=item),
        quantity=sum((e.quantity for e in entries), Decimal("0")) or Decimal("1"),
        location=LocationRef(id=loc) if loc else None,
        inventory_detail=list(entries),
    )


def _lot(num, qty, num_id=None) -> InventoryAssignment:
    return InventoryAssignment(
        lot_or_serial_number=num,
        quantity=Decimal(qty),
        lot_or_serial_internal_id=num_id,
        kind=AssignmentKind.LOT,
    )


def _doc(*items) -> DownstreamDocument:
    return DownstreamDocument(
        id="D1",
        doc_type="itemfulfillment",
        lines=[DocumentLine(item_id=i, quantity=Decimal("10")) for i in items],
    )


async def test_reconcile_line_replaces_assignments_and_sets_fulfilled():
    doc = _doc("I1")
    doc.lines[0].inventory_assignments = [LineAssignment(internal_id="OLD", quantity=Decimal("3"))]
    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})

    await reconcile_line(doc, 0, [_lot("LOT-A", 10)], index)

    line = doc.lines[0]
    assert line.fulfilled is True
    assert [(a.internal_id, a.quantity) for a in line.inventory_assignments] == [("9001", Decimal("10"))]


async def test_resolved_internal_id_skips_lookup():
    doc = _doc("I1")
    index = MemoryNumberIndex()
    await reconcile_line(doc, 0, [_lot("LOT-A", 4, num_id="7007")], index)
    assert index.calls == []
    assert doc.lines[0].inventory_assignments[0].internal_id == "7007"


async def test_number_text_as_internal_id_is_re_resolved():
    doc = _doc("I1")
    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})
    await reconcile_line(doc, 0, [_lot("LOT-A", 4, num_id="LOT-A")], index)
    assert doc.lines[0].inventory_assignments[0].internal_id == "9001"


async def test_reconcile_line_failure_leaves_line_untouched():
    doc = _doc("I1")
    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})
    with pytest.raises(LotNotFound) as ei:
        await reconcile_line(doc, 0, [_lot("LOT-A", 5), _lot("LOT-Z", 5)], index)
    assert ei.value.number == "LOT-Z"
    assert doc.lines[0].fulfilled is False
    assert doc.lines[0].inventory_assignments == []


async def test_batch_is_all_or_nothing():
    doc = _doc("I1", "I2")
    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})
    payloads = [
        _payload("C1", "I1", _lot("LOT-A", 10)),
        _payload("C2", "I2", _lot("LOT-MISSING", 10)),
    ]

    with pytest.raises(LotNotFound):
        await reconcile_batch(doc, payloads, index)

    assert all(ln.fulfilled is False for ln in doc.lines)
    assert all(ln.inventory_assignments == [] for ln in doc.lines)


async def test_unscanned_line_flag_cleared_but_data_kept():
    doc = _doc("I1", "I2", "I3")
    for ln in doc.lines:
        ln.fulfilled = True
        ln.inventory_assignments = [LineAssignment(internal_id="PREV", quantity=Decimal("1"))]
    index = MemoryNumberIndex({("L-1", "I1"): "1", ("L-3", "I3"): "3"})

    res = await reconcile_batch(
        doc,
        [_payload("C1", "I1", _lot("L-1", 10)), _payload("C3", "I3", _lot("L-3", 10))],
        index,
    )
    out = res.document

    assert [ln.fulfilled for ln in out.lines] == [True, False, True]
    assert out.lines[1].inventory_assignments[0].internal_id == "PREV"
    assert out.lines[0].inventory_assignments[0].internal_id == "1"
    assert out.lines[2].inventory_assignments[0].internal_id == "3"
    assert res.matched == [("C1", 0), ("C3", 2)]
    # 原单据不被修改
    assert doc.lines[0].inventory_assignments[0].internal_id == "PREV"


async def test_no_lines_matched_aborts_batch():
    doc = _doc("I1")
    with pytest.raises(NoLinesMatched):
        await reconcile_batch(doc, [_payload("C9", "I9", _lot("L", 1))], MemoryNumberIndex())


async def test_unmatched_payloads_are_reported_not_consumed():
    doc = _doc("I1")
    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})
    res = await reconcile_batch(
        doc,
        [_payload("C1", "I1", _lot("LOT-A", 10)), _payload("C9", "I9", _lot("LOT-B", 1))],
        index,
    )
    assert res.unmatched == ["C9"]
    assert res.consumed_completion_ids == ["C1"]


async def test_later_scan_on_same_line_wins():
    doc = _doc("I1")
    index = MemoryNumberIndex({("LOT-A", "I1"): "1", ("LOT-B", "I1"): "2"})
    res = await reconcile_batch(
        doc,
        [_payload("C1", "I1", _lot("LOT-A", 10)), _payload("C2", "I1", _lot("LOT-B", 10))],
        index,
    )
    assert [a.internal_id for a in res.document.lines[0].inventory_assignments] == ["2"]
    assert res.consumed_completion_ids == ["C1", "C2"]


async def test_end_to_end_example():
    """C1 / I1 / L1 / LOT-A → 9001，行 0 fulfilled。"""

    completion = CompletionRecord(
        id="C1",
        item=ItemRef(id="I1"),
        quantity=Decimal("10"),
        location=LocationRef(id="L1"),
        inventory_detail=[InventoryAssignment(lot_or_serial_number="LOT-A", quantity=Decimal("10"))],
    )
    payload = payload_codec.decode(payload_codec.dumps(payload_codec.encode(completion)))
    doc = DownstreamDocument(
        id="IF-1", doc_type="itemfulfillment", lines=[DocumentLine(item_id="I1", location_id="L1")]
    )
    assert find_line(doc, payload.item.id, payload.location_id) == 0

    index = MemoryNumberIndex({("LOT-A", "I1"): "9001"})
    await reconcile_line(doc, 0, payload.inventory_detail, index)
    line = doc.lines[0]
    assert [(a.internal_id, a.quantity) for a in line.inventory_assignments] == [("9001", Decimal("10"))]
    assert line.fulfilled is True

    store = MemoryStatusStore()
    await store.mark_scanned("C1", doc.id)
    st = await store.get_status("C1")
    assert (st.scanned, st.linked_downstream_id) == (True, "IF-1")
