# qrtrace/models/inventory_number.py
from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from qrtrace.db.base import Base


class InventoryNumber(Base):
    """
    批次号 / 序列号索引：(number, item_id[, location_id]) → id

    location_id 为空表示不限库位。
    """

    __tablename__ = "inventory_numbers"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    number: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("item_id", "number", "location_id", name="uq_inventory_numbers_item_number_loc"),
        Index("ix_inventory_numbers_lookup", "item_id", "number"),
    )
