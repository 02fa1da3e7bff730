# qrtrace/api/routers/scan.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace import metrics
from qrtrace.core.config import get_settings
from qrtrace.db.session import get_session
from qrtrace.domain.errors import PayloadDecodeError
from qrtrace.gateway import payload_codec
from qrtrace.schemas.scan import ScanDecodeIn, ScanDecodeOut, ScanProcessIn, ScanProcessOut
from qrtrace.services.fulfillment_service import process_submission
from qrtrace.services.scan_session import SubmissionRequest

router = APIRouter(tags=["scan"])


@router.post("/scan/process", response_model=ScanProcessOut)
async def scan_process(
    body: ScanProcessIn,
    session: AsyncSession = Depends(get_session),
):
    """
    扫码批次提交（服务端对账 + 落库）：

    - 对账失败不是 HTTP 错误：返回 200 + success=false + errorCode
    - probe=true：完整试算后回滚
    """
    settings = get_settings()
    req = SubmissionRequest(
        completion_ids=body.completion_ids,
        target_document_type=body.target_document_type or settings.DOWNSTREAM_DOC_TYPE,
        downstream_id=body.downstream_id,
        source_order_id=body.source_order_id,
        probe=body.probe,
    )
    res = await process_submission(session, req, probe=body.probe)
    return ScanProcessOut(
        success=res.success,
        saved_document_id=res.saved_document_id,
        error=res.error,
        error_code=res.error_code,
        unmatched=res.unmatched,
        consumed=res.consumed,
        probe=res.probe,
        trace_id=res.trace_id,
    )


@router.post("/scan/decode", response_model=ScanDecodeOut)
async def scan_decode(body: ScanDecodeIn):
    """
    只解码 + 校验，不查库、不改单据。
    解码失败走统一 Problem（422 + EMPTY_INPUT / MALFORMED_PAYLOAD / ...）。
    """
    settings = get_settings()
    try:
        raw = body.raw
        if body.base64 and raw and raw.strip():
            raw = payload_codec.from_base64(raw.strip())
        payload = payload_codec.decode(raw, type_tag=settings.PAYLOAD_TYPE_TAG)
    except PayloadDecodeError as e:
        metrics.DECODE_FAILURES.labels(e.code).inc()
        raise
    return ScanDecodeOut(schema_version=payload.schema_version, payload=payload_codec.to_wire(payload))
