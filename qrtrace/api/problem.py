# qrtrace/api/problem.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException

from qrtrace.domain.errors import TraceabilityError


@dataclass(frozen=True)
class Problem:
    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "http_status": int(self.http_status),
        }
        if self.context:
            out["context"] = self.context
        if self.trace_id:
            out["trace_id"] = self.trace_id
        return out


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    p = Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        trace_id=trace_id,
    )
    return p.to_dict()


def raise_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    raise HTTPException(
        status_code=int(status_code),
        detail=make_problem(
            status_code=int(status_code),
            error_code=error_code,
            message=message,
            context=context,
        ),
    )


# 领域异常 → HTTP 状态（未列出的一律 422）
_STATUS_BY_CODE: Dict[str, int] = {
    "COMPLETION_NOT_FOUND": 404,
    "DOCUMENT_NOT_FOUND": 404,
    "ALREADY_FULFILLED": 409,
    "ALREADY_SCANNED": 409,
    "SESSION_CLOSED": 409,
}


def problem_from_error(exc: TraceabilityError, *, trace_id: Optional[str] = None) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {}
    for attr in ("completion_id", "item_id", "number", "doc_type", "doc_id", "linked_downstream_id"):
        v = getattr(exc, attr, None)
        if v is not None:
            ctx[attr] = v
    return make_problem(
        status_code=_STATUS_BY_CODE.get(exc.code, 422),
        error_code=exc.code,
        message=exc.message,
        context=ctx or None,
        trace_id=trace_id,
    )


def raise_404(error_code: str, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
    raise_problem(status_code=404, error_code=error_code, message=message, context=context)
