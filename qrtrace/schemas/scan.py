# qrtrace/schemas/scan.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from qrtrace.schemas._base import CamelModel


class ScanProcessIn(CamelModel):
    """
    提交通道请求体：

    - downstreamId：已有单据（覆盖式对账）
    - sourceOrderId：无单据时按来源订单新建
    - completionIds：本次扫到的完工单（按扫码顺序）
    - targetDocumentType：缺省取 QRT_DOWNSTREAM_DOC_TYPE
    - probe：试算，不落库
    """

    downstream_id: Optional[str] = None
    source_order_id: Optional[str] = None
    completion_ids: List[str] = Field(default_factory=list)
    target_document_type: Optional[str] = None
    probe: bool = False

    @field_validator("downstream_id", "source_order_id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator("completion_ids", mode="before")
    @classmethod
    def _ids_as_str(cls, v):
        if isinstance(v, list):
            return [str(x) for x in v]
        return v

    @model_validator(mode="after")
    def _need_target(self):
        if not self.downstream_id and not self.source_order_id:
            raise ValueError("downstreamId or sourceOrderId is required")
        return self


class ScanProcessOut(CamelModel):
    success: bool
    saved_document_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    unmatched: List[str] = Field(default_factory=list)
    consumed: List[str] = Field(default_factory=list)
    probe: bool = False
    trace_id: Optional[str] = None


class ScanDecodeIn(CamelModel):
    """单次扫码校验：raw 为扫码枪录入的文本（或 base64 形式）。"""

    raw: Optional[str] = None
    base64: bool = False


class ScanDecodeOut(CamelModel):
    schema_version: int
    payload: Dict[str, Any]
