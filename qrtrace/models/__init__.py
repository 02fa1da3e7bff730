# qrtrace/models/__init__.py
"""
统一导出 ORM 模型。
"""

from qrtrace.models.completion import Completion, CompletionAssignment
from qrtrace.models.downstream import DownstreamDoc, DownstreamLine, DownstreamLineAssignment
from qrtrace.models.event_log import EventLog
from qrtrace.models.inventory_number import InventoryNumber
from qrtrace.models.source_order import SourceOrder, SourceOrderLine

__all__ = [
    "Completion",
    "CompletionAssignment",
    "DownstreamDoc",
    "DownstreamLine",
    "DownstreamLineAssignment",
    "EventLog",
    "InventoryNumber",
    "SourceOrder",
    "SourceOrderLine",
]
