# qrtrace/api/routers/completions.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace import metrics
from qrtrace.api.problem import raise_404
from qrtrace.core.audit import AuditWriter, new_trace
from qrtrace.db.session import get_session
from qrtrace.gateway import payload_codec
from qrtrace.schemas.completion import (
    CompletionCreate,
    CompletionOut,
    CompletionStatusOut,
    PayloadOut,
)
from qrtrace.services.completion_service import (
    NewAssignment,
    NewCompletion,
    create_completion,
    get_completion,
    regenerate_payload,
    to_record,
)
from qrtrace.services.completion_status import SqlCompletionStatusStore

router = APIRouter(prefix="/completions", tags=["completions"])

_audit = AuditWriter()


@router.post("", response_model=CompletionOut, status_code=status.HTTP_201_CREATED)
async def create_completion_endpoint(
    body: CompletionCreate,
    session: AsyncSession = Depends(get_session),
):
    """
    完工入库：记录完工单 + 生成扫码载荷（一次提交）。
    """
    data = NewCompletion(
        item_id=body.item_id,
        item_name=body.item_name,
        quantity=body.quantity,
        location_id=body.location_id,
        location_name=body.location_name,
        source_order_id=body.source_order_id,
        transaction_date=body.transaction_date,
        transaction_number=body.transaction_number,
        assignments=[
            NewAssignment(
                number=a.lot_or_serial_number,
                quantity=a.quantity,
                number_id=a.lot_or_serial_internal_id,
                bin_display=a.bin_display,
                bin_id=a.bin_id,
                kind=a.kind,
            )
            for a in body.inventory_detail
        ],
    )
    row = await create_completion(session, data)
    await session.commit()

    metrics.PAYLOADS_RENDERED.inc()
    trace = new_trace("http:/completions")
    await _audit.other(
        session,
        "completion_payload",
        {"completion_id": str(row.id), "item_id": row.item_id, "payload": row.payload},
        trace_id=trace.trace_id,
    )
    return CompletionOut.from_record(to_record(row), payload=row.payload)


@router.get("/{completion_id}", response_model=CompletionOut)
async def get_completion_endpoint(
    completion_id: str,
    session: AsyncSession = Depends(get_session),
):
    row = await get_completion(session, completion_id)
    return CompletionOut.from_record(to_record(row), payload=row.payload)


@router.get("/{completion_id}/status", response_model=CompletionStatusOut)
async def get_completion_status(
    completion_id: str,
    session: AsyncSession = Depends(get_session),
):
    await get_completion(session, completion_id)
    st = await SqlCompletionStatusStore(session).get_status(completion_id)
    return CompletionStatusOut(scanned=st.scanned, linked_downstream_id=st.linked_downstream_id)


@router.get("/{completion_id}/payload", response_model=PayloadOut)
async def get_completion_payload(
    completion_id: str,
    session: AsyncSession = Depends(get_session),
):
    """扫码载荷 + base64 形式（交给二维码渲染）。"""
    row = await get_completion(session, completion_id)
    if not row.payload:
        raise_404(
            "PAYLOAD_NOT_FOUND",
            f"Completion {completion_id} has no scan payload",
            context={"completion_id": completion_id},
        )
    return PayloadOut(payload=row.payload, encoded=payload_codec.to_base64(row.payload))


@router.post("/{completion_id}/payload", response_model=PayloadOut)
async def regenerate_completion_payload(
    completion_id: str,
    session: AsyncSession = Depends(get_session),
):
    """完工单编辑后重算载荷；消费状态不变。"""
    text = await regenerate_payload(session, completion_id)
    await session.commit()
    metrics.PAYLOADS_RENDERED.inc()
    return PayloadOut(payload=text, encoded=payload_codec.to_base64(text))
