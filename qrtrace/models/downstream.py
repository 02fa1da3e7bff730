# qrtrace/models/downstream.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrtrace.db.base import Base


class DownstreamDoc(Base):
    """
    下游单据（发货单 / 类发货单）

    scan_refs：扫码会话的序列化字段（JSON 数组，已扫完工单 id），
    用于编辑会话恢复。
    """

    __tablename__ = "downstream_documents"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    doc_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    scan_refs: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    lines: Mapped[List["DownstreamLine"]] = relationship(
        back_populates="document",
        order_by="DownstreamLine.line_no",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class DownstreamLine(Base):
    __tablename__ = "downstream_lines"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("downstream_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    location_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, server_default=text("0"))
    fulfilled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"), default=False)

    document: Mapped[DownstreamDoc] = relationship(back_populates="lines")
    assignments: Mapped[List["DownstreamLineAssignment"]] = relationship(
        back_populates="line",
        order_by="DownstreamLineAssignment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (UniqueConstraint("document_id", "line_no", name="uq_downstream_lines_doc_line"),)


class DownstreamLineAssignment(Base):
    __tablename__ = "downstream_line_assignments"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    line_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("downstream_lines.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_number_id: Mapped[str] = mapped_column(String(64), nullable=False)
    number: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    bin_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    line: Mapped[DownstreamLine] = relationship(back_populates="assignments")
