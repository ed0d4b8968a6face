from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import select, insert, update, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from order_checkout.domain.models import (
    Customer, CustomerRanking, DiscountType, Order, OrderLine, OrderState, OrderStatus,
    PaymentMethod, Product, RankingTier, Voucher, VoucherUsage
)
from order_checkout.infrastructure.db_schema import (
    customers_tbl, customer_rankings_tbl, order_lines_tbl, order_statuses_tbl, orders_tbl,
    payment_methods_tbl, products_tbl, rankings_tbl, voucher_usages_tbl, vouchers_tbl
)
from order_checkout.application.interfaces import (
    CustomerRankingRepository, CustomerRepository, OrderRepository, OrderStatusRepository,
    PaymentMethodRepository, ProductRepository, RankingRepository, VoucherRepository,
    VoucherUsageRepository
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite отдает naive datetime - считаем его UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class SQLAlchemyCustomerRepository(CustomerRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, customer_id: str) -> Optional[Customer]:
        result = await self._session.execute(
            select(customers_tbl).where(customers_tbl.c.id == customer_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return Customer(
            id=row.id,
            name=row.name,
            email=row.email,
            phone_number=row.phone_number,
            created_at=_aware(row.created_at) or datetime.now(timezone.utc)
        )

    async def list_ids(self) -> List[str]:
        result = await self._session.execute(
            select(customers_tbl.c.id).order_by(customers_tbl.c.id)
        )
        return [row.id for row in result.fetchall()]


class SQLAlchemyPaymentMethodRepository(PaymentMethodRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, payment_method_id: str) -> Optional[PaymentMethod]:
        result = await self._session.execute(
            select(payment_methods_tbl).where(
                payment_methods_tbl.c.id == payment_method_id,
                payment_methods_tbl.c.is_active.is_(True)
            )
        )
        row = result.fetchone()
        return PaymentMethod(id=row.id, name=row.name, is_active=row.is_active) if row else None


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return Product(
            id=row.id,
            sku=row.sku,
            name=row.name,
            price=_decimal(row.price),
            stock_quantity=row.stock_quantity,
            is_available=row.is_available
        )

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        # условие проверяется в самом UPDATE, а не в коде приложения
        stmt = (
            update(products_tbl)
            .where(
                products_tbl.c.id == product_id,
                products_tbl.c.stock_quantity >= quantity
            )
            .values(stock_quantity=products_tbl.c.stock_quantity - quantity)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def increment_stock(self, product_id: str, quantity: int) -> None:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(stock_quantity=products_tbl.c.stock_quantity + quantity)
        )
        await self._session.execute(stmt)


class SQLAlchemyVoucherRepository(VoucherRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, voucher_id: str) -> Optional[Voucher]:
        result = await self._session.execute(
            select(vouchers_tbl).where(vouchers_tbl.c.id == voucher_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_code(self, code: str) -> Optional[Voucher]:
        result = await self._session.execute(
            select(vouchers_tbl).where(func.upper(vouchers_tbl.c.code) == code.upper())
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def increment_uses(self, voucher_id: str) -> bool:
        stmt = (
            update(vouchers_tbl)
            .where(
                vouchers_tbl.c.id == voucher_id,
                vouchers_tbl.c.is_active.is_(True),
                vouchers_tbl.c.current_uses < vouchers_tbl.c.max_uses
            )
            .values(current_uses=vouchers_tbl.c.current_uses + 1)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def decrement_uses(self, voucher_id: str) -> None:
        stmt = (
            update(vouchers_tbl)
            .where(
                vouchers_tbl.c.id == voucher_id,
                vouchers_tbl.c.current_uses > 0
            )
            .values(current_uses=vouchers_tbl.c.current_uses - 1)
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Voucher:
        """Трансформация DB → Domain"""
        return Voucher(
            id=row.id,
            code=row.code,
            name=row.name,
            discount_type=DiscountType(row.discount_type),
            discount_value=_decimal(row.discount_value),
            max_discount_amount=_decimal(row.max_discount_amount) if row.max_discount_amount is not None else None,
            min_order_value=_decimal(row.min_order_value),
            start_date=_aware(row.start_date),
            end_date=_aware(row.end_date),
            max_uses=row.max_uses,
            current_uses=row.current_uses,
            ranking_id=row.ranking_id,
            is_active=row.is_active
        )


class SQLAlchemyVoucherUsageRepository(VoucherUsageRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, usage: VoucherUsage) -> None:
        stmt = insert(voucher_usages_tbl).values(
            id=usage.id,
            voucher_id=usage.voucher_id,
            order_id=usage.order_id,
            customer_id=usage.customer_id,
            discount_applied=usage.discount_applied,
            used_at=usage.used_at
        )
        await self._session.execute(stmt)

    async def get_by_order(self, order_id: str) -> List[VoucherUsage]:
        result = await self._session.execute(
            select(voucher_usages_tbl).where(voucher_usages_tbl.c.order_id == order_id)
        )
        return [
            VoucherUsage(
                id=row.id,
                voucher_id=row.voucher_id,
                order_id=row.order_id,
                customer_id=row.customer_id,
                discount_applied=_decimal(row.discount_applied),
                used_at=_aware(row.used_at)
            )
            for row in result.fetchall()
        ]

    async def delete_by_order(self, order_id: str) -> int:
        result = await self._session.execute(
            delete(voucher_usages_tbl).where(voucher_usages_tbl.c.order_id == order_id)
        )
        return result.rowcount


class SQLAlchemyRankingRepository(RankingRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_ordered(self) -> List[RankingTier]:
        result = await self._session.execute(
            select(rankings_tbl).order_by(rankings_tbl.c.min_spending.asc())
        )
        return [
            RankingTier(
                id=row.id,
                name=row.name,
                min_spending=_decimal(row.min_spending),
                max_spending=_decimal(row.max_spending),
                discount_percent=_decimal(row.discount_percent),
                benefits=row.benefits or []
            )
            for row in result.fetchall()
        ]


class SQLAlchemyCustomerRankingRepository(CustomerRankingRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_customer(self, customer_id: str) -> Optional[CustomerRanking]:
        result = await self._session.execute(
            select(customer_rankings_tbl).where(customer_rankings_tbl.c.customer_id == customer_id)
        )
        row = result.fetchone()
        if not row:
            return None
        return CustomerRanking(
            customer_id=row.customer_id,
            ranking_id=row.ranking_id,
            total_spending=_decimal(row.total_spending),
            updated_at=_aware(row.updated_at) or datetime.now(timezone.utc)
        )

    async def create(self, ranking: CustomerRanking) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING: False, если запись уже создана параллельно"""
        dialect = self._session.get_bind().dialect.name
        dialect_insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = (
            dialect_insert(customer_rankings_tbl)
            .values(
                customer_id=ranking.customer_id,
                ranking_id=ranking.ranking_id,
                total_spending=ranking.total_spending,
                updated_at=ranking.updated_at
            )
            .on_conflict_do_nothing(index_elements=["customer_id"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def update(self, customer_id: str, ranking_id: str, total_spending: Decimal) -> None:
        stmt = (
            update(customer_rankings_tbl)
            .where(customer_rankings_tbl.c.customer_id == customer_id)
            .values(
                ranking_id=ranking_id,
                total_spending=total_spending,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(
                orders_tbl.c.customer_id == customer_id,
                orders_tbl.c.idempotency_key == key,
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, order: Order, lines: List[OrderLine]) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            phone_number=order.phone_number,
            email=order.email,
            shipping_address=order.shipping_address,
            payment_method_id=order.payment_method_id,
            order_note=order.order_note,
            voucher_id=order.voucher_id,
            subtotal=order.subtotal,
            ranking_discount=order.ranking_discount,
            voucher_discount=order.voucher_discount,
            tax=order.tax,
            order_total=order.order_total,
            idempotency_key=order.idempotency_key,
            created_at=order.created_at
        )
        await self._session.execute(stmt)
        await self._session.execute(
            insert(order_lines_tbl),
            [
                {
                    "id": line.id,
                    "order_id": line.order_id,
                    "product_id": line.product_id,
                    "sku": line.sku,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total
                }
                for line in lines
            ]
        )

    async def get_lines(self, order_id: str) -> List[OrderLine]:
        result = await self._session.execute(
            select(order_lines_tbl).where(order_lines_tbl.c.order_id == order_id)
        )
        return [
            OrderLine(
                id=row.id,
                order_id=row.order_id,
                product_id=row.product_id,
                sku=row.sku,
                quantity=row.quantity,
                unit_price=_decimal(row.unit_price),
                line_total=_decimal(row.line_total)
            )
            for row in result.fetchall()
        ]

    async def total_spending(self, customer_id: str) -> Decimal:
        result = await self._session.execute(
            select(func.coalesce(func.sum(orders_tbl.c.order_total), 0))
            .where(orders_tbl.c.customer_id == customer_id)
        )
        return _decimal(result.scalar_one())

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            customer_id=row.customer_id,
            customer_name=row.customer_name,
            phone_number=row.phone_number,
            email=row.email,
            shipping_address=row.shipping_address,
            payment_method_id=row.payment_method_id,
            order_note=row.order_note,
            voucher_id=row.voucher_id,
            subtotal=_decimal(row.subtotal),
            ranking_discount=_decimal(row.ranking_discount),
            voucher_discount=_decimal(row.voucher_discount),
            tax=_decimal(row.tax),
            order_total=_decimal(row.order_total),
            idempotency_key=row.idempotency_key,
            created_at=_aware(row.created_at)
        )


class SQLAlchemyOrderStatusRepository(OrderStatusRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_order(self, order_id: str) -> Optional[OrderStatus]:
        result = await self._session.execute(
            select(order_statuses_tbl).where(order_statuses_tbl.c.order_id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, status: OrderStatus) -> None:
        stmt = insert(order_statuses_tbl).values(
            id=status.id,
            order_id=status.order_id,
            state=status.state,
            updated_at=status.updated_at
        )
        await self._session.execute(stmt)

    async def update_state(self, order_id: str, state: OrderState) -> Optional[OrderStatus]:
        stmt = (
            update(order_statuses_tbl)
            .where(order_statuses_tbl.c.order_id == order_id)
            .values(
                state=state,
                updated_at=datetime.now(timezone.utc)
            )
        )
        await self._session.execute(stmt)
        return await self.get_by_order(order_id)

    def _to_domain(self, row) -> OrderStatus:
        return OrderStatus(
            id=row.id,
            order_id=row.order_id,
            state=OrderState(row.state),
            updated_at=_aware(row.updated_at)
        )
