# tests/adapters/test_scan_client.py
from __future__ import annotations

import pytest

from qrtrace.adapters.scan_client import HttpCompletionStatusStore, ScanClient, ScanClientError
from qrtrace.domain.errors import DocumentNotFound
from qrtrace.services.scan_session import OutcomeKind, ScanSession
from tests.factories import make_document

pytestmark = [pytest.mark.asyncio, pytest.mark.grp_scan]


async def _completion_qr(client, item_id="I1") -> tuple[str, str]:
    r = await client.post(
        "/completions",
        json={
            "itemId": item_id,
            "quantity": 4,
            "locationId": "L1",
            "inventoryDetail": [{"lotOrSerialNumber": "LOT-C", "quantity": 4}],
        },
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return body["id"], body["payload"]


async def test_session_over_http_round_trip(client, session):
    doc_a = await make_document(session, [("I1", "L1", 4)])
    doc_b = await make_document(session, [("I1", None, 4)])
    await session.commit()
    cid, qr = await _completion_qr(client)

    api = ScanClient(client=client)

    # 会话 1：单据 A
    doc = await api.get_document("itemfulfillment", doc_a)
    assert doc.lines[0].item_id == "I1"
    store = HttpCompletionStatusStore(api)
    s1 = ScanSession(status_store=store)
    assert (await s1.on_scan(qr, doc)).kind == OutcomeKind.SCANNED

    res = await api.submit(s1.submit(target_document_type="itemfulfillment", downstream_id=doc_a))
    assert res.success is True, res.error
    assert res.saved_document_id == doc_a

    # 会话 2：单据 B 再扫同一张完工单
    doc = await api.get_document("itemfulfillment", doc_b)
    s2 = ScanSession(status_store=store)
    out = await s2.on_scan(qr, doc)
    assert out.kind == OutcomeKind.ALREADY_FULFILLED
    assert out.linked_downstream_id == doc_a
    assert s2.accumulated_payloads == []

    st = await api.get_status(cid)
    assert st.scanned is True


async def test_unknown_ids(client):
    api = ScanClient(client=client)
    st = await api.get_status("123456")
    assert st.scanned is False

    with pytest.raises(DocumentNotFound):
        await api.get_document("itemfulfillment", "123456")

    with pytest.raises(ScanClientError):
        await HttpCompletionStatusStore(api).mark_scanned("1", "2")
