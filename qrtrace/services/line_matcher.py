# qrtrace/services/line_matcher.py
from __future__ import annotations

from typing import Optional

from qrtrace.domain.errors import LineNotFound
from qrtrace.domain.types import DownstreamDocument


def find_line(
    doc: DownstreamDocument,
    item_id: str,
    location_id: Optional[str] = None,
    *,
    item_name: str = "",
) -> int:
    """
    按单据顺序找第一条匹配行，返回行下标；找不到抛 LineNotFound。

    - 商品必须相等
    - 库位是软过滤：扫码与行都有库位且不同时才跳过；行上无库位只按商品匹配
    - 先到先得，不做打分
    """
    want_item = str(item_id)
    want_loc = str(location_id) if location_id else None

    for i, line in enumerate(doc.lines):
        if str(line.item_id) != want_item:
            continue
        if want_loc and line.location_id and str(line.location_id) != want_loc:
            continue
        return i

    raise LineNotFound(want_item, item_name)
