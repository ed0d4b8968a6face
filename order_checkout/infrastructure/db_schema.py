from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, JSON, MetaData,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.sql import func

from order_checkout.domain.models import DiscountType, OrderState

metadata = MetaData()

Money = Numeric(14, 2)


customers_tbl = Table(
    "customers",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String, nullable=True),
    Column("phone_number", String(20), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


payment_methods_tbl = Table(
    "payment_methods",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True)
)


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("sku", String, unique=True, nullable=False),
    Column("name", String(200), nullable=False),
    Column("price", Money, nullable=False),
    Column("stock_quantity", Integer, nullable=False, default=0),
    Column("is_available", Boolean, nullable=False, default=True),
    CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative")
)


rankings_tbl = Table(
    "rankings",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("min_spending", Money, nullable=False),
    Column("max_spending", Money, nullable=False),
    Column("discount_percent", Numeric(5, 2), nullable=False, default=0),
    Column("benefits", JSON, nullable=False, default=list),
    CheckConstraint("max_spending > min_spending", name="ck_rankings_bounds")
)


customer_rankings_tbl = Table(
    "customer_rankings",
    metadata,
    Column("customer_id", String, ForeignKey("customers.id"), primary_key=True),
    Column("ranking_id", String, ForeignKey("rankings.id"), nullable=False),
    Column("total_spending", Money, nullable=False, default=0),
    Column("updated_at", DateTime(timezone=True), server_default=func.now())
)


vouchers_tbl = Table(
    "vouchers",
    metadata,
    Column("id", String, primary_key=True),
    Column("code", String, unique=True, index=True, nullable=False),
    Column("name", String, nullable=False),
    Column("discount_type", Enum(DiscountType), nullable=False),
    Column("discount_value", Money, nullable=False),
    Column("max_discount_amount", Money, nullable=True),
    Column("min_order_value", Money, nullable=False, default=0),
    Column("start_date", DateTime(timezone=True), nullable=False),
    Column("end_date", DateTime(timezone=True), nullable=False),
    Column("max_uses", Integer, nullable=False),
    Column("current_uses", Integer, nullable=False, default=0),
    Column("ranking_id", String, ForeignKey("rankings.id"), nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    CheckConstraint("current_uses <= max_uses", name="ck_vouchers_uses_cap"),
    CheckConstraint("current_uses >= 0", name="ck_vouchers_uses_non_negative")
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("customer_id", String, ForeignKey("customers.id"), nullable=False, index=True),
    Column("customer_name", String(100), nullable=False),
    Column("phone_number", String(20), nullable=True),
    Column("email", String, nullable=True),
    Column("shipping_address", String(500), nullable=False),
    Column("payment_method_id", String, ForeignKey("payment_methods.id"), nullable=False),
    Column("order_note", String(500), nullable=True),
    Column("voucher_id", String, ForeignKey("vouchers.id"), nullable=True),
    Column("subtotal", Money, nullable=False),
    Column("ranking_discount", Money, nullable=False, default=0),
    Column("voucher_discount", Money, nullable=False, default=0),
    Column("tax", Money, nullable=False, default=0),
    Column("order_total", Money, nullable=False),
    Column("idempotency_key", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("customer_id", "idempotency_key", name="uq_orders_customer_idempotency_key")
)


order_lines_tbl = Table(
    "order_lines",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, index=True),
    Column("product_id", String, ForeignKey("products.id"), nullable=False),
    Column("sku", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Money, nullable=False),
    Column("line_total", Money, nullable=False),
    CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive")
)


order_statuses_tbl = Table(
    "order_statuses",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), unique=True, nullable=False),
    Column("state", Enum(OrderState), nullable=False, default=OrderState.ORDER_SUCCESS),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


voucher_usages_tbl = Table(
    "voucher_usages",
    metadata,
    Column("id", String, primary_key=True),
    Column("voucher_id", String, ForeignKey("vouchers.id"), nullable=False, index=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, index=True),
    Column("customer_id", String, ForeignKey("customers.id"), nullable=False),
    Column("discount_applied", Money, nullable=False),
    Column("used_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("voucher_id", "order_id", name="uq_voucher_usages_voucher_order")
)
