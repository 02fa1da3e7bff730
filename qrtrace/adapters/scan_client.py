# qrtrace/adapters/scan_client.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from qrtrace.domain.errors import DocumentNotFound
from qrtrace.domain.types import CompletionStatus, DocumentLine, DownstreamDocument, LineAssignment
from qrtrace.services.fulfillment_service import SubmissionResult
from qrtrace.services.scan_session import SubmissionRequest

logger = logging.getLogger("qrtrace.scan_client")


class ScanClientError(Exception):
    pass


def _document_from_json(data: Dict[str, Any]) -> DownstreamDocument:
    return DownstreamDocument(
        id=data.get("id"),
        doc_type=data["docType"],
        source_order_id=data.get("sourceOrderId"),
        scan_refs=data.get("scanRefs"),
        lines=[
            DocumentLine(
                item_id=str(ln["itemId"]),
                location_id=ln.get("locationId"),
                item_name=ln.get("itemName") or "",
                quantity=Decimal(str(ln.get("quantity", "0"))),
                fulfilled=bool(ln.get("fulfilled")),
                inventory_assignments=[
                    LineAssignment(
                        internal_id=str(a["internalId"]),
                        quantity=Decimal(str(a["quantity"])),
                        bin_id=a.get("binId"),
                        lot_or_serial_number=a.get("lotOrSerialNumber"),
                    )
                    for a in ln.get("inventoryAssignments") or []
                ],
            )
            for ln in data.get("lines") or []
        ],
    )


class ScanClient:
    """
    扫码终端侧的 HTTP 客户端：

    - get_status：完工单消费状态（HttpCompletionStatusStore 的数据源）
    - get_document：单据快照（行匹配用）
    - submit：把会话的 SubmissionRequest 交给 /scan/process

    可注入 httpx.AsyncClient（测试里用 ASGITransport 直连 app）。
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10,
    ):
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "ScanClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def get_status(self, completion_id: str) -> CompletionStatus:
        resp = await self._client.get(f"/completions/{completion_id}/status")
        if resp.status_code == 404:
            return CompletionStatus(scanned=False, linked_downstream_id=None)
        resp.raise_for_status()
        data = resp.json()
        return CompletionStatus(
            scanned=bool(data.get("scanned")),
            linked_downstream_id=data.get("linkedDownstreamId"),
        )

    async def get_document(self, doc_type: str, doc_id: str) -> DownstreamDocument:
        resp = await self._client.get(f"/documents/{doc_type}/{doc_id}")
        if resp.status_code == 404:
            raise DocumentNotFound(doc_type, str(doc_id))
        resp.raise_for_status()
        return _document_from_json(resp.json())

    async def submit(self, req: SubmissionRequest) -> SubmissionResult:
        resp = await self._client.post("/scan/process", json=req.to_json())
        if resp.status_code >= 400:
            logger.warning("submission rejected: HTTP %s %s", resp.status_code, resp.text[:200])
            raise ScanClientError(f"submission failed: HTTP {resp.status_code}")
        data = resp.json()
        return SubmissionResult(
            success=bool(data.get("success")),
            saved_document_id=data.get("savedDocumentId"),
            error=data.get("error"),
            error_code=data.get("errorCode"),
            unmatched=list(data.get("unmatched") or []),
            consumed=list(data.get("consumed") or []),
            probe=bool(data.get("probe")),
            trace_id=data.get("traceId"),
        )


class HttpCompletionStatusStore:
    """客户端会话用的只读状态库；消费状态只在服务端提交事务里推进。"""

    def __init__(self, client: ScanClient):
        self._client = client

    async def get_status(self, completion_id: str) -> CompletionStatus:
        return await self._client.get_status(completion_id)

    async def mark_scanned(self, completion_id: str, downstream_id: str) -> None:
        raise ScanClientError("mark_scanned is server-side only; submit the batch instead")
