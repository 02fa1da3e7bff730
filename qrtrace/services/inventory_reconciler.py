# qrtrace/services/inventory_reconciler.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from qrtrace.domain.errors import LineNotFound, LotNotFound, NoLinesMatched
from qrtrace.domain.ports import InventoryNumberIndex
from qrtrace.domain.types import (
    DocumentLine,
    DownstreamDocument,
    InventoryAssignment,
    LineAssignment,
    ScanPayload,
)
from qrtrace.services.line_matcher import find_line

logger = logging.getLogger("qrtrace.reconcile")


@dataclass
class BatchReconciliation:
    """
    一批扫码的对账结果（document 为对账后的副本，尚未保存）：

    - matched:   (completion_id, line_index)，按扫码顺序
    - unmatched: 找不到对应行的完工单（不消费）
    """

    document: DownstreamDocument
    matched: List[Tuple[str, int]] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)

    @property
    def consumed_completion_ids(self) -> List[str]:
        return [cid for cid, _ in self.matched]


async def resolve_assignments(
    assignments: Sequence[InventoryAssignment],
    index: InventoryNumberIndex,
    *,
    item_id: str,
    location_id: Optional[str] = None,
) -> List[LineAssignment]:
    """
    解析所有缺 internal id 的分配；任一失败即抛 LotNotFound（整批放弃）。
    输出保持输入顺序。
    """
    out: List[LineAssignment] = []
    for a in assignments:
        internal_id = a.lot_or_serial_internal_id
        if not a.is_resolved:
            internal_id = await index.resolve(
                a.lot_or_serial_number,
                item_id=item_id,
                location_id=location_id,
            )
            if not internal_id:
                raise LotNotFound(a.lot_or_serial_number, item_id)
            logger.debug("resolved %s → %s (item=%s)", a.lot_or_serial_number, internal_id, item_id)

        out.append(
            LineAssignment(
                internal_id=str(internal_id),
                quantity=a.quantity,
                bin_id=a.bin_id,
                lot_or_serial_number=a.lot_or_serial_number or None,
            )
        )
    return out


async def reconcile_line(
    doc: DownstreamDocument,
    line_index: int,
    assignments: Sequence[InventoryAssignment],
    index: InventoryNumberIndex,
    *,
    item_id: Optional[str] = None,
    location_id: Optional[str] = None,
) -> None:
    """
    把扫码得到的批次 / 序列号写到目标行（整行替换，不合并）并置 fulfilled。

    先全部解析再改行：解析失败时 doc 保持原样。
    """
    line = doc.get_line(line_index)
    resolved = await resolve_assignments(
        assignments,
        index,
        item_id=item_id or line.item_id,
        location_id=location_id or line.location_id,
    )

    doc.set_line(
        line_index,
        DocumentLine(
            item_id=line.item_id,
            location_id=line.location_id,
            item_name=line.item_name,
            quantity=line.quantity,
            fulfilled=True,
            inventory_assignments=resolved,
        ),
    )


async def reconcile_batch(
    doc: DownstreamDocument,
    payloads: Sequence[ScanPayload],
    index: InventoryNumberIndex,
) -> BatchReconciliation:
    """
    整批对账（在副本上进行，调用方的 doc 不会被修改）：

      1) 按扫码顺序匹配行；一行都没匹配上 → NoLinesMatched
      2) 按扫码顺序逐行写分配；任一批号解析失败 → LotNotFound
      3) 全部成功后，本批未扫到的行 fulfilled 清零（分配数据保留）
    """
    work = doc.clone()
    result = BatchReconciliation(document=work)

    plan: List[Tuple[ScanPayload, int]] = []
    for p in payloads:
        try:
            idx = find_line(work, p.item.id, p.location_id, item_name=p.item.display_name)
        except LineNotFound:
            logger.warning(
                "completion %s (item=%s) matches no line on %s %s",
                p.completion_id,
                p.item.id,
                doc.doc_type,
                doc.id,
            )
            result.unmatched.append(p.completion_id)
            continue
        plan.append((p, idx))
        result.matched.append((p.completion_id, idx))

    if not plan:
        raise NoLinesMatched(doc.id)

    for p, idx in plan:
        await reconcile_line(
            work,
            idx,
            p.inventory_detail,
            index,
            item_id=p.item.id,
            location_id=p.location_id,
        )

    touched = {idx for _, idx in plan}
    for i, line in enumerate(work.lines):
        if i not in touched:
            line.fulfilled = False

    return result
