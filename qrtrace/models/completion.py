# qrtrace/models/completion.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrtrace.db.base import Base


class Completion(Base):
    """
    完工单（扫码来源）

    - 核心字段创建后不可变
    - scanned / linked_downstream_id 仅由对账步骤做一次 false→true 的条件写
    - payload 为最近一次生成的扫码载荷（JSON 文本）
    """

    __tablename__ = "completions"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    source_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    location_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    location_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    transaction_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    payload: Mapped[str | None] = mapped_column(Text, nullable=True)

    scanned: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"), default=False)
    linked_downstream_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    assignments: Mapped[List["CompletionAssignment"]] = relationship(
        back_populates="completion",
        order_by="CompletionAssignment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_completions_item", "item_id"),
        Index("ix_completions_linked", "linked_downstream_id"),
    )


class CompletionAssignment(Base):
    """完工时记录的批次 / 序列号 / 库位分配（按 position 保序）。"""

    __tablename__ = "completion_assignments"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    completion_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("completions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    number: Mapped[str] = mapped_column(Text, nullable=False)
    number_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    bin_display: Mapped[str | None] = mapped_column(Text, nullable=True)
    bin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    kind: Mapped[str | None] = mapped_column(String(16), nullable=True)

    completion: Mapped[Completion] = relationship(back_populates="assignments")
