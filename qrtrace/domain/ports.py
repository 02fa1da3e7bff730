# qrtrace/domain/ports.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from qrtrace.domain.types import CompletionStatus, DownstreamDocument


class CompletionStatusStore(Protocol):
    async def get_status(self, completion_id: str) -> CompletionStatus:
        ...

    async def mark_scanned(self, completion_id: str, downstream_id: str) -> None:
        """条件写：已 scanned 时抛 AlreadyScanned。"""
        ...


class InventoryNumberIndex(Protocol):
    async def resolve(
        self,
        number: str,
        *,
        item_id: str,
        location_id: Optional[str] = None,
    ) -> Optional[str]:
        """批号 / 序列号文本 → internal id；找不到返回 None。"""
        ...


class DocumentStorePort(Protocol):
    async def load(self, doc_type: str, doc_id: str) -> DownstreamDocument:
        ...

    async def save(self, doc: DownstreamDocument) -> str:
        ...

    async def transform(self, from_type: str, from_id: str, to_type: str) -> DownstreamDocument:
        ...


class LookupIndexPort(Protocol):
    async def lookup(
        self, entity_type: str, entity_id: str, fields: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        ...

    async def query(
        self, entity_type: str, filters: Sequence[tuple[str, str, Any]]
    ) -> List[Dict[str, Any]]:
        ...
