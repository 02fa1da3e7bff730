# qrtrace/services/fulfillment_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace import metrics
from qrtrace.core.audit import AuditWriter, new_trace
from qrtrace.core.config import get_settings
from qrtrace.core.tx import TxManager
from qrtrace.domain.errors import AlreadyFulfilled, DocumentNotFound, EmptyBatch, TraceabilityError
from qrtrace.domain.ports import CompletionStatusStore, DocumentStorePort
from qrtrace.domain.types import ScanPayload
from qrtrace.gateway import payload_codec
from qrtrace.services.completion_service import load_records
from qrtrace.services.completion_status import SqlCompletionStatusStore
from qrtrace.services.document_store import SqlDocumentStore
from qrtrace.services.inventory_reconciler import reconcile_batch
from qrtrace.services.lookup_index import LookupIndex, SqlInventoryNumberIndex
from qrtrace.services.scan_session import SubmissionRequest, parse_refs

logger = logging.getLogger("qrtrace.fulfillment")

_audit = AuditWriter()


@dataclass
class SubmissionResult:
    success: bool
    saved_document_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    unmatched: List[str] = field(default_factory=list)
    consumed: List[str] = field(default_factory=list)
    probe: bool = False
    trace_id: Optional[str] = None


@dataclass
class _Applied:
    saved_id: str
    unmatched: List[str]
    consumed: List[str]
    relinked: List[str]


def _dedupe(ids: List[str]) -> List[str]:
    out: List[str] = []
    for x in ids:
        s = str(x).strip()
        if s and s not in out:
            out.append(s)
    return out


async def _reconcile_and_save(*, session: AsyncSession, req: SubmissionRequest) -> _Applied:
    """
    在同一事务内：装载单据 → 对账 → 保存 → 逐个 mark_scanned（CAS）。
    任一步抛 TraceabilityError，外层 TxManager 整体回滚。
    """
    settings = get_settings()
    ids = _dedupe(req.completion_ids)
    if not ids:
        raise EmptyBatch()

    lookup = LookupIndex(session)
    store: DocumentStorePort = SqlDocumentStore(session)
    status: CompletionStatusStore = SqlCompletionStatusStore(session, lookup)
    index = SqlInventoryNumberIndex(lookup)

    if req.downstream_id:
        doc = await store.load(req.target_document_type, req.downstream_id)
    elif req.source_order_id:
        doc = await store.transform(
            settings.SOURCE_ORDER_TYPE, req.source_order_id, req.target_document_type
        )
    else:
        raise DocumentNotFound(req.target_document_type, "")

    payloads: List[ScanPayload] = []
    already_linked: List[str] = []
    for rec in await load_records(session, ids):
        if rec.scanned:
            if doc.id is not None and rec.linked_downstream_id == doc.id:
                # 同一单据重复提交：照常重写行，但不再 CAS
                already_linked.append(rec.id)
            else:
                raise AlreadyFulfilled(rec.id, rec.linked_downstream_id)
        payloads.append(payload_codec.encode(rec, type_tag=settings.PAYLOAD_TYPE_TAG))

    batch = await reconcile_batch(doc, payloads, index)
    work = batch.document

    refs = parse_refs(doc.scan_refs)
    for cid in batch.consumed_completion_ids:
        if cid not in refs:
            refs.append(cid)
    work.scan_refs = json.dumps(refs)

    saved_id = await store.save(work)

    consumed: List[str] = []
    for cid in batch.consumed_completion_ids:
        if cid in already_linked:
            continue
        await status.mark_scanned(cid, saved_id)
        consumed.append(cid)

    return _Applied(
        saved_id=saved_id,
        unmatched=list(batch.unmatched),
        consumed=consumed,
        relinked=already_linked,
    )


async def process_submission(
    session: AsyncSession,
    req: SubmissionRequest,
    *,
    probe: bool = False,
) -> SubmissionResult:
    """
    提交通道（服务端）：

    - 成功：{success: true, saved_document_id, unmatched}
    - 批次级失败（LotNotFound / NoLinesMatched / AlreadyScanned ...）：
      {success: false, error, error_code}，什么都不落库
    - probe=True：完整跑一遍后整体回滚（试算）
    """
    probe = probe or req.probe
    trace = new_trace("http:/scan/process")
    doc_type = req.target_document_type

    try:
        applied: _Applied = await TxManager.run(
            session, probe=probe, fn=_reconcile_and_save, req=req
        )
    except TraceabilityError as e:
        logger.warning("scan submission rejected (%s): %s", e.code, e.message)
        metrics.SUBMISSIONS.labels(doc_type, "error").inc()
        metrics.SUBMISSION_ERRORS.labels(e.code).inc()
        await _audit.error(
            session,
            "process",
            {
                "error_code": e.code,
                "error": e.message,
                "downstream_id": req.downstream_id,
                "source_order_id": req.source_order_id,
                "completion_ids": list(req.completion_ids),
                "probe": probe,
            },
            trace_id=trace.trace_id,
        )
        return SubmissionResult(
            success=False,
            error=e.message,
            error_code=e.code,
            probe=probe,
            trace_id=trace.trace_id,
        )

    audit_payload: Dict[str, Any] = {
        "downstream_id": applied.saved_id,
        "doc_type": doc_type,
        "consumed": applied.consumed,
        "relinked": applied.relinked,
        "unmatched": applied.unmatched,
    }
    if probe:
        metrics.SUBMISSIONS.labels(doc_type, "probe").inc()
        await _audit.probe(session, "process", audit_payload, trace_id=trace.trace_id)
        # 新建单据在 probe 下已回滚，不返回临时 id
        saved_id = req.downstream_id
    else:
        metrics.SUBMISSIONS.labels(doc_type, "ok").inc()
        metrics.COMPLETIONS_CONSUMED.inc(len(applied.consumed))
        await _audit.commit(session, "process", audit_payload, trace_id=trace.trace_id)
        saved_id = applied.saved_id
        logger.info(
            "%s %s saved; %d completion(s) consumed, %d unmatched",
            doc_type,
            saved_id,
            len(applied.consumed),
            len(applied.unmatched),
        )

    return SubmissionResult(
        success=True,
        saved_document_id=saved_id,
        unmatched=applied.unmatched,
        consumed=applied.consumed,
        probe=probe,
        trace_id=trace.trace_id,
    )
