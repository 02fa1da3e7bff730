# qrtrace/services/scan_session.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from qrtrace import metrics
from qrtrace.domain.errors import (
    AlreadyFulfilled,
    EmptyBatch,
    LineNotFound,
    PayloadDecodeError,
    SessionClosed,
)
from qrtrace.domain.ports import CompletionStatusStore
from qrtrace.domain.types import DownstreamDocument, ScanPayload, StrEnum
from qrtrace.gateway import payload_codec
from qrtrace.services.line_matcher import find_line

logger = logging.getLogger("qrtrace.scan_session")


class SessionState(StrEnum):
    EMPTY = "EMPTY"
    ACCUMULATING = "ACCUMULATING"
    SUBMITTED = "SUBMITTED"


class OutcomeKind(StrEnum):
    SCANNED = "SCANNED"
    INVALID = "INVALID"
    DUPLICATE = "DUPLICATE"
    ALREADY_FULFILLED = "ALREADY_FULFILLED"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"


@dataclass
class ScanOutcome:
    kind: OutcomeKind
    message: str = ""
    payload: Optional[ScanPayload] = None
    reason: Optional[str] = None
    linked_downstream_id: Optional[str] = None
    line_index: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.kind == OutcomeKind.SCANNED


@dataclass
class SubmissionRequest:
    """提交通道请求体：服务端据此做对账 + 落库。"""

    completion_ids: List[str]
    target_document_type: str
    downstream_id: Optional[str] = None
    source_order_id: Optional[str] = None
    probe: bool = False

    def to_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "completionIds": list(self.completion_ids),
            "targetDocumentType": self.target_document_type,
        }
        if self.downstream_id:
            body["downstreamId"] = self.downstream_id
        if self.source_order_id:
            body["sourceOrderId"] = self.source_order_id
        if self.probe:
            body["probe"] = True
        return body


@dataclass
class ScanSession:
    """
    单个编辑会话内的扫码累积（客户端侧，不改单据）：

      EMPTY ──scan──► ACCUMULATING ──submit──► SUBMITTED
        ▲                  │
        └──────reset───────┘

    每次扫码依次检查：解码 → 本地去重 → 状态库（跨会话） → 行匹配。
    只有 SCANNED 会改变会话状态；其余结果只告知操作员。
    """

    status_store: CompletionStatusStore
    type_tag: str = payload_codec.DEFAULT_TYPE_TAG
    state: SessionState = SessionState.EMPTY
    scanned_completion_ids: List[str] = field(default_factory=list)
    accumulated_payloads: List[ScanPayload] = field(default_factory=list)

    async def on_scan(self, raw: Optional[str], document: DownstreamDocument) -> ScanOutcome:
        if self.state == SessionState.SUBMITTED:
            raise SessionClosed()

        try:
            payload = payload_codec.decode(raw, type_tag=self.type_tag)
        except PayloadDecodeError as e:
            metrics.DECODE_FAILURES.labels(e.code).inc()
            return ScanOutcome(kind=OutcomeKind.INVALID, message=e.message, reason=e.code)

        cid = payload.completion_id
        if cid in self.scanned_completion_ids:
            return ScanOutcome(
                kind=OutcomeKind.DUPLICATE,
                message=f"Completion {cid} has already been scanned in this session",
                payload=payload,
            )

        status = await self.status_store.get_status(cid)
        if status.scanned:
            err = AlreadyFulfilled(cid, status.linked_downstream_id)
            return ScanOutcome(
                kind=OutcomeKind.ALREADY_FULFILLED,
                message=err.message,
                payload=payload,
                linked_downstream_id=status.linked_downstream_id,
            )

        try:
            idx = find_line(
                document, payload.item.id, payload.location_id, item_name=payload.item.display_name
            )
        except LineNotFound as e:
            return ScanOutcome(kind=OutcomeKind.ITEM_NOT_FOUND, message=e.message, payload=payload)

        self.scanned_completion_ids.append(cid)
        self.accumulated_payloads.append(payload)
        self.state = SessionState.ACCUMULATING
        logger.debug("scan accepted: completion=%s line=%s", cid, idx)
        return ScanOutcome(
            kind=OutcomeKind.SCANNED,
            message=f"Scanned: {payload.item.display_name or payload.item.id} (qty {payload.quantity})",
            payload=payload,
            line_index=idx,
        )

    def submit(
        self,
        *,
        target_document_type: str,
        downstream_id: Optional[str] = None,
        source_order_id: Optional[str] = None,
        probe: bool = False,
    ) -> SubmissionRequest:
        if self.state == SessionState.SUBMITTED:
            raise SessionClosed()
        if not self.scanned_completion_ids:
            raise EmptyBatch()

        self.state = SessionState.SUBMITTED
        return SubmissionRequest(
            completion_ids=list(self.scanned_completion_ids),
            target_document_type=target_document_type,
            downstream_id=downstream_id,
            source_order_id=source_order_id,
            probe=probe,
        )

    def reset(self) -> None:
        self.scanned_completion_ids.clear()
        self.accumulated_payloads.clear()
        self.state = SessionState.EMPTY

    # ---------------- 单据字段往返（页面刷新后恢复会话） ----------------

    def to_field(self) -> str:
        return json.dumps(self.scanned_completion_ids)

    @classmethod
    def from_field(
        cls,
        text: Optional[str],
        status_store: CompletionStatusStore,
        *,
        type_tag: str = payload_codec.DEFAULT_TYPE_TAG,
    ) -> "ScanSession":
        """
        从单据的 scan_refs 字段恢复已扫完工单号。

        接受 JSON 数组，也接受旧的逗号分隔文本；解析不了按空会话处理。
        只恢复完工单号（去重用），载荷不随字段保存。
        """
        ids = parse_refs(text)
        return cls(
            status_store=status_store,
            type_tag=type_tag,
            state=SessionState.ACCUMULATING if ids else SessionState.EMPTY,
            scanned_completion_ids=ids,
        )


_REF_TOKEN = re.compile(r"^[\w\-.]+$")


def parse_refs(text: Optional[str]) -> List[str]:
    if not text or not text.strip():
        return []
    raw = text.strip()
    try:
        data = json.loads(raw)
    except ValueError:
        tokens = [x.strip() for x in raw.split(",")]
        if not all(_REF_TOKEN.match(x) for x in tokens if x):
            logger.warning("unreadable scan refs field, starting empty: %r", raw[:80])
            return []
        items = tokens
    else:
        if isinstance(data, (int, str)) and not isinstance(data, bool):
            data = [data]
        if not isinstance(data, list):
            logger.warning("unreadable scan refs field, starting empty: %r", raw[:80])
            return []
        items = [
            str(x).strip() for x in data if isinstance(x, (int, str)) and not isinstance(x, bool)
        ]

    out: List[str] = []
    for x in items:
        if x and x not in out:
            out.append(x)
    return out
