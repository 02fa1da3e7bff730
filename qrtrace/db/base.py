# qrtrace/db/base.py
from __future__ import annotations

import importlib
import logging

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("qrtrace.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

MODEL_MODULES = [
    "qrtrace.models.completion",
    "qrtrace.models.inventory_number",
    "qrtrace.models.source_order",
    "qrtrace.models.downstream",
    "qrtrace.models.event_log",
]


def init_models(*, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射（alembic / create_all 之前调用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(MODEL_MODULES))
