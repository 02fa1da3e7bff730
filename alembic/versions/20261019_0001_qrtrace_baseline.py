"""qrtrace baseline: completions / inventory numbers / source orders / downstream documents / event_log

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _pk() -> sa.Column:
    return sa.Column(
        "id",
        sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "completions",
        _pk(),
        sa.Column("source_order_id", sa.String(length=64), nullable=True),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.Column("location_name", sa.Text(), nullable=True),
        sa.Column("transaction_date", sa.String(length=32), nullable=True),
        sa.Column("transaction_number", sa.String(length=64), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("scanned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("linked_downstream_id", sa.String(length=64), nullable=True),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_completions_item", "completions", ["item_id"])
    op.create_index("ix_completions_linked", "completions", ["linked_downstream_id"])

    op.create_table(
        "completion_assignments",
        _pk(),
        sa.Column(
            "completion_id",
            sa.BigInteger(),
            sa.ForeignKey("completions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("number", sa.Text(), nullable=False),
        sa.Column("number_id", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("bin_display", sa.Text(), nullable=True),
        sa.Column("bin_id", sa.String(length=64), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=True),
    )
    op.create_index(
        "ix_completion_assignments_completion_id", "completion_assignments", ["completion_id"]
    )

    op.create_table(
        "inventory_numbers",
        _pk(),
        sa.Column("number", sa.Text(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.UniqueConstraint(
            "item_id", "number", "location_id", name="uq_inventory_numbers_item_number_loc"
        ),
    )
    op.create_index("ix_inventory_numbers_lookup", "inventory_numbers", ["item_id", "number"])

    op.create_table(
        "source_orders",
        _pk(),
        sa.Column(
            "order_type", sa.String(length=32), nullable=False, server_default=sa.text("'salesorder'")
        ),
        sa.Column("tran_number", sa.String(length=64), nullable=True),
        _created_at(),
    )

    op.create_table(
        "source_order_lines",
        _pk(),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("source_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
    )
    op.create_index("ix_source_order_lines_order_id", "source_order_lines", ["order_id"])

    op.create_table(
        "downstream_documents",
        _pk(),
        sa.Column("doc_type", sa.String(length=32), nullable=False),
        sa.Column("source_order_id", sa.String(length=64), nullable=True),
        sa.Column("scan_refs", sa.Text(), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "ix_downstream_documents_source_order_id", "downstream_documents", ["source_order_id"]
    )

    op.create_table(
        "downstream_lines",
        _pk(),
        sa.Column(
            "document_id",
            sa.BigInteger(),
            sa.ForeignKey("downstream_documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("location_id", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False, server_default=sa.text("0")),
        sa.Column("fulfilled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.UniqueConstraint("document_id", "line_no", name="uq_downstream_lines_doc_line"),
    )
    op.create_index("ix_downstream_lines_document_id", "downstream_lines", ["document_id"])

    op.create_table(
        "downstream_line_assignments",
        _pk(),
        sa.Column(
            "line_id",
            sa.BigInteger(),
            sa.ForeignKey("downstream_lines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("inventory_number_id", sa.String(length=64), nullable=False),
        sa.Column("number", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("bin_id", sa.String(length=64), nullable=True),
    )
    op.create_index(
        "ix_downstream_line_assignments_line_id", "downstream_line_assignments", ["line_id"]
    )

    op.create_table(
        "event_log",
        _pk(),
        sa.Column("level", sa.Text(), nullable=False, server_default=sa.text("'INFO'")),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("trace_id", sa.Text(), nullable=True),
        sa.Column("message", sa.JSON(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_event_log_level", "event_log", ["level"])
    op.create_index("ix_event_log_source", "event_log", ["source"])
    op.create_index("ix_event_log_trace", "event_log", ["trace_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("event_log")
    op.drop_table("downstream_line_assignments")
    op.drop_table("downstream_lines")
    op.drop_table("downstream_documents")
    op.drop_table("source_order_lines")
    op.drop_table("source_orders")
    op.drop_table("inventory_numbers")
    op.drop_table("completion_assignments")
    op.drop_table("completions")
