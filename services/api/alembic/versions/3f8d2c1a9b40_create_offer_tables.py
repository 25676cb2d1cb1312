"""create_offer_tables

Revision ID: 3f8d2c1a9b40
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f8d2c1a9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "offers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("marketing_message", sa.Text(), nullable=True),
        sa.Column("offer_type", sa.String(length=50), nullable=False),
        sa.Column("adjustment_type", sa.String(length=50), nullable=False),
        sa.Column("discount_type", sa.String(length=50), nullable=False),
        sa.Column("value", sa.Numeric(19, 5), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False),
        sa.Column("order_min_total", sa.Numeric(19, 5), nullable=False),
        sa.Column("qualifying_item_min_total", sa.Numeric(19, 5), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("max_uses_per_customer", sa.Integer(), nullable=True),
        sa.Column("item_qualifier_rule", sa.Text(), nullable=True),
        sa.Column("item_target_rule", sa.Text(), nullable=True),
        sa.Column("offer_qualifier_rule", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("combinable", sa.Boolean(), nullable=False),
        sa.Column("totalitarian", sa.Boolean(), nullable=False),
        sa.Column("automatically_added", sa.Boolean(), nullable=False),
        sa.Column("apply_to_sale_price", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_offers_start_date"), "offers", ["start_date"], unique=False)
    op.create_index(op.f("ix_offers_end_date"), "offers", ["end_date"], unique=False)
    op.create_index(op.f("ix_offers_archived"), "offers", ["archived"], unique=False)

    op.create_table(
        "offer_codes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("uses", sa.Integer(), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("email_address", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_offer_codes_offer_id"), "offer_codes", ["offer_id"], unique=False)
    op.create_index(op.f("ix_offer_codes_code"), "offer_codes", ["code"], unique=True)

    op.create_table(
        "offer_usages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(length=100), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        _timestamp("used_at"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_offer_usages_offer_id"), "offer_usages", ["offer_id"], unique=False)
    op.create_index(op.f("ix_offer_usages_customer_id"), "offer_usages", ["customer_id"], unique=False)

    op.create_table(
        "order_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=False),
        sa.Column("offer_name", sa.String(length=255), nullable=False),
        sa.Column("adjustment_value", sa.Numeric(19, 5), nullable=False),
        sa.Column("adjustment_reason", sa.String(length=50), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_order_adjustments_order_id"), "order_adjustments", ["order_id"], unique=False)
    op.create_index(op.f("ix_order_adjustments_offer_id"), "order_adjustments", ["offer_id"], unique=False)

    op.create_table(
        "order_item_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=100), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=False),
        sa.Column("offer_name", sa.String(length=255), nullable=False),
        sa.Column("adjustment_value", sa.Numeric(19, 5), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["offer_id"], ["offers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_order_item_adjustments_order_id"), "order_item_adjustments", ["order_id"], unique=False
    )
    op.create_index(
        op.f("ix_order_item_adjustments_item_id"), "order_item_adjustments", ["item_id"], unique=False
    )
    op.create_index(
        op.f("ix_order_item_adjustments_offer_id"), "order_item_adjustments", ["offer_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("order_item_adjustments")
    op.drop_table("order_adjustments")
    op.drop_table("offer_usages")
    op.drop_table("offer_codes")
    op.drop_index(op.f("ix_offers_archived"), table_name="offers")
    op.drop_index(op.f("ix_offers_end_date"), table_name="offers")
    op.drop_index(op.f("ix_offers_start_date"), table_name="offers")
    op.drop_table("offers")
