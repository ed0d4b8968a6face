"""
Общие фикстуры: in-memory SQLite через aiosqlite, тестовые данные каталога и
sink уведомлений, который только запоминает вызовы.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from order_checkout.application.checkout import CartLineDTO, CheckoutDTO
from order_checkout.application.interfaces import NotificationSink
from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.domain.exceptions import NotificationServiceError
from order_checkout.domain.models import DiscountType
from order_checkout.infrastructure.db_schema import (
    customer_rankings_tbl, customers_tbl, metadata, payment_methods_tbl, products_tbl,
    rankings_tbl, vouchers_tbl
)
from order_checkout.infrastructure.unit_of_work import UnitOfWork

CUSTOMER_ID = "cust-1"
PAYMENT_METHOD_ID = "pm-card"

BRONZE = "rank-bronze"
SILVER = "rank-silver"
GOLD = "rank-gold"


class RecordingNotificationSink(NotificationSink):
    def __init__(self):
        self.order_statuses = []
        self.rank_upgrades = []

    async def create_order_status_notification(self, order_id, customer_id, status_kind, order_details):
        self.order_statuses.append((order_id, customer_id, status_kind, order_details))
        return True

    async def create_rank_upgrade_notification(self, customer_id, tier_name, benefits):
        self.rank_upgrades.append((customer_id, tier_name, benefits))
        return True


class FailingNotificationSink(NotificationSink):
    def __init__(self):
        self.calls = 0

    async def create_order_status_notification(self, order_id, customer_id, status_kind, order_details):
        self.calls += 1
        raise NotificationServiceError("Notifications service не доступен")

    async def create_rank_upgrade_notification(self, customer_id, tier_name, benefits):
        self.calls += 1
        raise NotificationServiceError("Notifications service не доступен")


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def notifications(sink):
    return NotificationDispatcher(sink)


@pytest_asyncio.fixture
async def seeded(session_factory):
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        await session.execute(insert(customers_tbl).values(
            id=CUSTOMER_ID, name="Иван Петров", email="ivan@example.com", phone_number="+79990000000"
        ))
        await session.execute(insert(customers_tbl).values(id="cust-2", name="Анна Смирнова"))
        await session.execute(insert(payment_methods_tbl).values(id=PAYMENT_METHOD_ID, name="Карта", is_active=True))
        await session.execute(insert(payment_methods_tbl).values(id="pm-old", name="Чек", is_active=False))
        await session.execute(insert(products_tbl), [
            {"id": "prod-1", "sku": "SKU-1", "name": "Кружка", "price": Decimal("100"),
             "stock_quantity": 10, "is_available": True},
            {"id": "prod-last", "sku": "SKU-LAST", "name": "Последний чайник", "price": Decimal("100"),
             "stock_quantity": 1, "is_available": True},
            {"id": "prod-off", "sku": "SKU-OFF", "name": "Снят с продажи", "price": Decimal("50"),
             "stock_quantity": 5, "is_available": False},
        ])
        await session.execute(insert(rankings_tbl), [
            {"id": BRONZE, "name": "Bronze", "min_spending": Decimal("0"), "max_spending": Decimal("999.99"),
             "discount_percent": Decimal("0"), "benefits": []},
            {"id": SILVER, "name": "Silver", "min_spending": Decimal("1000"), "max_spending": Decimal("4999.99"),
             "discount_percent": Decimal("10"), "benefits": ["Скидка 10%", "Бесплатная доставка"]},
            {"id": GOLD, "name": "Gold", "min_spending": Decimal("5000"), "max_spending": Decimal("999999999"),
             "discount_percent": Decimal("15"), "benefits": ["Скидка 15%"]},
        ])
        window = {"start_date": now - timedelta(days=1), "end_date": now + timedelta(days=30)}
        await session.execute(insert(vouchers_tbl), [
            voucher_row("v-save10", "SAVE10", DiscountType.PERCENT, "10", max_uses=100, **window),
            voucher_row("v-used", "USED1", DiscountType.PERCENT, "10", max_uses=1, current_uses=1, **window),
            voucher_row("v-once", "ONCE", DiscountType.PERCENT, "10", max_uses=1, **window),
            voucher_row("v-fixed", "FIXED50", DiscountType.FIXED, "50", max_uses=5, **window),
            voucher_row("v-capped", "HALF", DiscountType.PERCENT, "50", max_uses=5,
                        max_discount_amount=Decimal("30"), **window),
            voucher_row("v-min", "MIN500", DiscountType.PERCENT, "10", max_uses=5,
                        min_order_value=Decimal("500"), **window),
            voucher_row("v-silver", "SILVERONLY", DiscountType.PERCENT, "5", max_uses=5, ranking_id=SILVER, **window),
            voucher_row("v-off", "INACTIVE", DiscountType.PERCENT, "10", max_uses=5, is_active=False, **window),
            voucher_row("v-old", "EXPIRED", DiscountType.PERCENT, "10", max_uses=5,
                        start_date=now - timedelta(days=60), end_date=now - timedelta(days=30)),
        ])
        await session.commit()


def voucher_row(voucher_id, code, discount_type, value, max_uses, current_uses=0, **extra):
    row = {
        "id": voucher_id,
        "code": code,
        "name": f"Ваучер {code}",
        "discount_type": discount_type,
        "discount_value": Decimal(value),
        "max_discount_amount": None,
        "min_order_value": Decimal("0"),
        "max_uses": max_uses,
        "current_uses": current_uses,
        "ranking_id": None,
        "is_active": True,
    }
    row.update(extra)
    return row


async def assign_tier(session_factory, customer_id, ranking_id, total_spending=Decimal("0")):
    async with session_factory() as session:
        await session.execute(insert(customer_rankings_tbl).values(
            customer_id=customer_id,
            ranking_id=ranking_id,
            total_spending=total_spending,
            updated_at=datetime.now(timezone.utc),
        ))
        await session.commit()


async def product_stock(session_factory, product_id):
    async with session_factory() as session:
        result = await session.execute(
            select(products_tbl.c.stock_quantity).where(products_tbl.c.id == product_id)
        )
        return result.scalar_one()


async def voucher_uses(session_factory, voucher_id):
    async with session_factory() as session:
        result = await session.execute(
            select(vouchers_tbl.c.current_uses).where(vouchers_tbl.c.id == voucher_id)
        )
        return result.scalar_one()


async def count_rows(session_factory, table):
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(table))
        return result.scalar_one()


def make_checkout(items=None, **overrides):
    data = {
        "customer_id": CUSTOMER_ID,
        "customer_name": "Иван Петров",
        "phone_number": "+79990000000",
        "email": "ivan@example.com",
        "shipping_address": "Москва, ул. Ленина, 1",
        "payment_method_id": PAYMENT_METHOD_ID,
        "items": items if items is not None else [
            CartLineDTO(product_ref="prod-1", quantity=2, unit_price=Decimal("100"))
        ],
    }
    data.update(overrides)
    return CheckoutDTO(**data)
