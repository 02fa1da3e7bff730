# qrtrace/domain/errors.py
from __future__ import annotations

from typing import Optional


class TraceabilityError(Exception):
    """QR 追溯链路统一异常基类：code 供 API / 前端分支，message 给操作员看。"""

    code = "TRACEABILITY_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code
        self.message = message


# ---------------- 单次扫码（会话边界内消化） ----------------


class DecodeCode:
    EMPTY_INPUT = "EMPTY_INPUT"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    WRONG_TYPE = "WRONG_TYPE"
    MISSING_IDENTIFIER = "MISSING_IDENTIFIER"
    MISSING_ITEM = "MISSING_ITEM"
    INVALID_QUANTITY = "INVALID_QUANTITY"


class PayloadDecodeError(TraceabilityError):
    def __init__(self, code: str, message: str):
        super().__init__(message, code=code)


class LineNotFound(TraceabilityError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, item_name: str = ""):
        self.item_id = item_id
        self.item_name = item_name
        super().__init__(f'Item "{item_name or item_id}" is not on this document')


class AlreadyFulfilled(TraceabilityError):
    code = "ALREADY_FULFILLED"

    def __init__(self, completion_id: str, linked_downstream_id: Optional[str]):
        self.completion_id = completion_id
        self.linked_downstream_id = linked_downstream_id
        super().__init__(
            f"Completion {completion_id} has already been fulfilled "
            f"(document #{linked_downstream_id or ''})"
        )


# ---------------- 批次级（整批失败，不落库） ----------------


class LotNotFound(TraceabilityError):
    code = "LOT_NOT_FOUND"

    def __init__(self, number: str, item_id: str):
        self.number = number
        self.item_id = item_id
        super().__init__(f'Inventory number "{number}" not found for item {item_id}')


class NoLinesMatched(TraceabilityError):
    code = "NO_LINES_MATCHED"

    def __init__(self, doc_id: Optional[str] = None):
        self.doc_id = doc_id
        super().__init__("None of the scanned completions match a line on this document")


class AlreadyScanned(TraceabilityError):
    """条件写失败：并发 / 之前已有单据消费了该完工单。调用方应复查状态后提示，不要盲目重试。"""

    code = "ALREADY_SCANNED"

    def __init__(self, completion_id: str, linked_downstream_id: Optional[str] = None):
        self.completion_id = completion_id
        self.linked_downstream_id = linked_downstream_id
        super().__init__(f"Completion {completion_id} was consumed by another document")


class DocumentNotFound(TraceabilityError):
    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, doc_type: str, doc_id: str):
        self.doc_type = doc_type
        self.doc_id = doc_id
        super().__init__(f"{doc_type} {doc_id} not found")


class CompletionNotFound(TraceabilityError):
    code = "COMPLETION_NOT_FOUND"

    def __init__(self, completion_id: str):
        self.completion_id = completion_id
        super().__init__(f"Completion {completion_id} not found")


# ---------------- 会话状态 ----------------


class EmptyBatch(TraceabilityError):
    code = "EMPTY_BATCH"

    def __init__(self) -> None:
        super().__init__("Please scan at least one QR code before processing.")


class SessionClosed(TraceabilityError):
    code = "SESSION_CLOSED"

    def __init__(self) -> None:
        super().__init__("Scan session already submitted; reset it to start over.")
