"""initial checkout schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "payment_methods",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("sku", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )
    op.create_table(
        "rankings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("min_spending", MONEY, nullable=False),
        sa.Column("max_spending", MONEY, nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("benefits", sa.JSON(), nullable=False),
        sa.CheckConstraint("max_spending > min_spending", name="ck_rankings_bounds"),
    )
    op.create_table(
        "customer_rankings",
        sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), primary_key=True),
        sa.Column("ranking_id", sa.String(), sa.ForeignKey("rankings.id"), nullable=False),
        sa.Column("total_spending", MONEY, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "vouchers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("discount_type", sa.Enum("PERCENT", "FIXED", name="discounttype"), nullable=False),
        sa.Column("discount_value", MONEY, nullable=False),
        sa.Column("max_discount_amount", MONEY, nullable=True),
        sa.Column("min_order_value", MONEY, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False),
        sa.Column("current_uses", sa.Integer(), nullable=False),
        sa.Column("ranking_id", sa.String(), sa.ForeignKey("rankings.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("current_uses <= max_uses", name="ck_vouchers_uses_cap"),
        sa.CheckConstraint("current_uses >= 0", name="ck_vouchers_uses_non_negative"),
    )
    op.create_index("ix_vouchers_code", "vouchers", ["code"], unique=True)
    op.create_table(
        "orders",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("customer_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("shipping_address", sa.String(500), nullable=False),
        sa.Column("payment_method_id", sa.String(), sa.ForeignKey("payment_methods.id"), nullable=False),
        sa.Column("order_note", sa.String(500), nullable=True),
        sa.Column("voucher_id", sa.String(), sa.ForeignKey("vouchers.id"), nullable=True),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("ranking_discount", MONEY, nullable=False),
        sa.Column("voucher_discount", MONEY, nullable=False),
        sa.Column("tax", MONEY, nullable=False),
        sa.Column("order_total", MONEY, nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("customer_id", "idempotency_key", name="uq_orders_customer_idempotency_key"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_table(
        "order_lines",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_id", sa.String(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("product_id", sa.String(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("sku", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", MONEY, nullable=False),
        sa.Column("line_total", MONEY, nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])
    op.create_table(
        "order_statuses",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_id", sa.String(), sa.ForeignKey("orders.id"), nullable=False, unique=True),
        sa.Column(
            "state",
            sa.Enum("ORDER_SUCCESS", "TRANSFER_TO_SHIPPING", "SHIPPING", "DELIVERED", "CANCELLED", name="orderstate"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "voucher_usages",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("voucher_id", sa.String(), sa.ForeignKey("vouchers.id"), nullable=False),
        sa.Column("order_id", sa.String(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("discount_applied", MONEY, nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("voucher_id", "order_id", name="uq_voucher_usages_voucher_order"),
    )
    op.create_index("ix_voucher_usages_voucher_id", "voucher_usages", ["voucher_id"])
    op.create_index("ix_voucher_usages_order_id", "voucher_usages", ["order_id"])


def downgrade() -> None:
    op.drop_table("voucher_usages")
    op.drop_table("order_statuses")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("vouchers")
    op.drop_table("customer_rankings")
    op.drop_table("rankings")
    op.drop_table("products")
    op.drop_table("payment_methods")
    op.drop_table("customers")
    sa.Enum(name="orderstate").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="discounttype").drop(op.get_bind(), checkfirst=True)
