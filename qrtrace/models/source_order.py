# qrtrace/models/source_order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrtrace.db.base import Base


class SourceOrder(Base):
    """来源订单（销售单 / 工单等），用于 transform 生成发货单。"""

    __tablename__ = "source_orders"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    order_type: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'salesorder'"))
    tran_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    lines: Mapped[List["SourceOrderLine"]] = relationship(
        back_populates="order",
        order_by="SourceOrderLine.line_no",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SourceOrderLine(Base):
    __tablename__ = "source_order_lines"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("source_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    location_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    order: Mapped[SourceOrder] = relationship(back_populates="lines")
