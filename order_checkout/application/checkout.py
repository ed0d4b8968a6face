import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.application.recompute_ranking import RankingChange, RankingService
from order_checkout.application.voucher_validation import validate_voucher
from order_checkout.domain.exceptions import (
    CustomerNotFoundError, InsufficientStockError, InternalError, OrderValidationError,
    PaymentMethodNotFoundError, ProductNotFoundError, ProductUnavailableError,
    VoucherUsageLimitError
)
from order_checkout.domain.models import (
    NotificationKind, Order, OrderLine, OrderState, OrderStatus, Voucher, VoucherUsage
)
from order_checkout.domain.pricing import (
    PriceBreakdown, calculate_ranking_discount, calculate_tax, quantize_money
)

logger = logging.getLogger(__name__)


class CartLineDTO(BaseModel):
    product_ref: str
    quantity: int
    unit_price: Decimal


class CheckoutDTO(BaseModel):
    customer_id: str
    customer_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    shipping_address: str
    payment_method_id: str
    order_note: Optional[str] = None
    items: List[CartLineDTO]
    voucher_code: Optional[str] = None
    idempotency_key: Optional[str] = None


class CheckoutResult(BaseModel):
    order: Order
    lines: List[OrderLine]
    status: OrderStatus
    voucher: Optional[Voucher] = None
    ranking: Optional[RankingChange] = None
    breakdown: PriceBreakdown
    replayed: bool = False


class CheckoutUseCase:
    """Оформление заказа из корзины.

    Все бизнес-проверки выполняются до первой записи. Запись заказа, списание
    остатков, учет ваучера и пересчет ранга идут одной транзакцией: любая
    ошибка откатывает всё. Уведомления отправляются после commit.
    """

    def __init__(self, unit_of_work, notifications: NotificationDispatcher, tax_rate: Decimal):
        self._uow = unit_of_work
        self._notifications = notifications
        self._tax_rate = tax_rate
        self._ranking = RankingService()

    async def __call__(self, data: CheckoutDTO) -> CheckoutResult:
        self._validate(data)
        logger.info(f"Оформление заказа для покупателя {data.customer_id}, позиций: {len(data.items)}")

        async with self._uow() as uow:
            # 0. Покупатель и идемпотентность
            customer = await uow.customers.get_by_id(data.customer_id)
            if not customer:
                raise CustomerNotFoundError(f"Покупатель {data.customer_id} не найден")

            if data.idempotency_key:
                existing = await uow.orders.get_by_idempotency_key(data.customer_id, data.idempotency_key)
                if existing:
                    logger.info(f"Заказ уже существует: {existing.id}")
                    return await self._replay(uow, existing, data)

            # 1. Способ оплаты
            payment_method = await uow.payment_methods.get_by_id(data.payment_method_id)
            if not payment_method:
                raise PaymentMethodNotFoundError(f"Способ оплаты {data.payment_method_id} не найден")

            # 2. Проверка позиций по каталогу
            subtotal = Decimal("0")
            products = {}
            requested = {}
            for item in data.items:
                product = products.get(item.product_ref) or await uow.products.get_by_id(item.product_ref)
                if not product:
                    raise ProductNotFoundError(f"Товар {item.product_ref} не найден")
                if not product.is_available:
                    raise ProductUnavailableError(f"Товар {product.sku} недоступен для заказа")
                # одна позиция может встречаться в корзине несколько раз
                requested[product.id] = requested.get(product.id, 0) + item.quantity
                if product.stock_quantity < requested[product.id]:
                    raise InsufficientStockError(product.id, product.stock_quantity, requested[product.id])
                products[item.product_ref] = product
                subtotal += item.unit_price * item.quantity
            subtotal = quantize_money(subtotal)

            # 3. Скидка по рангу
            tier = await self._ranking.current_tier(uow, data.customer_id)
            ranking_discount = calculate_ranking_discount(subtotal, tier.discount_percent) if tier else Decimal("0")

            # 4. Ваучер
            voucher = None
            voucher_discount = Decimal("0")
            if data.voucher_code:
                voucher, voucher_discount = await validate_voucher(
                    uow, data.voucher_code, subtotal, ranking_discount, tier, datetime.now(timezone.utc)
                )

            # 5. Налог и итог
            breakdown = PriceBreakdown(
                subtotal=subtotal,
                ranking_discount=ranking_discount,
                voucher_discount=voucher_discount,
                tax=calculate_tax(subtotal, self._tax_rate),
            )

            # 6-9. Запись
            try:
                order, lines, status = await self._persist(uow, data, voucher, breakdown, products)
                await self._reserve_stock(uow, lines)
                if voucher:
                    await self._record_voucher_usage(uow, voucher, order, voucher_discount)
                ranking = await self._ranking.recompute(uow, order.customer_id, order.order_total)
                await uow.commit()
            except SQLAlchemyError as e:
                logger.error(f"Ошибка БД при оформлении заказа: {e}")
                raise InternalError("Не удалось оформить заказ") from e

        logger.info(f"Заказ создан: {order.id}, итог {order.order_total}")

        # 10. Уведомления после commit
        self._notifications.order_status_changed(order, NotificationKind.CONFIRMED)
        if ranking.upgraded:
            self._notifications.rank_upgraded(order.customer_id, ranking.new_tier)

        return CheckoutResult(
            order=order,
            lines=lines,
            status=status,
            voucher=voucher,
            ranking=ranking,
            breakdown=breakdown,
        )

    def _validate(self, data: CheckoutDTO) -> None:
        if not data.items:
            raise OrderValidationError("Корзина пуста")
        if not data.shipping_address.strip():
            raise OrderValidationError("Не указан адрес доставки")
        for item in data.items:
            if not item.product_ref:
                raise OrderValidationError("Не указан товар в позиции корзины")
            if item.quantity <= 0:
                raise OrderValidationError(f"Некорректное количество для товара {item.product_ref}")
            if item.unit_price < 0:
                raise OrderValidationError(f"Некорректная цена для товара {item.product_ref}")

    async def _persist(self, uow, data: CheckoutDTO, voucher, breakdown: PriceBreakdown, products: dict):
        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid.uuid4()),
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            phone_number=data.phone_number,
            email=data.email,
            shipping_address=data.shipping_address,
            payment_method_id=data.payment_method_id,
            order_note=data.order_note,
            voucher_id=voucher.id if voucher else None,
            subtotal=breakdown.subtotal,
            ranking_discount=breakdown.ranking_discount,
            voucher_discount=breakdown.voucher_discount,
            tax=breakdown.tax,
            order_total=breakdown.total,
            idempotency_key=data.idempotency_key,
            created_at=now,
        )
        lines = [
            OrderLine(
                id=str(uuid.uuid4()),
                order_id=order.id,
                product_id=item.product_ref,
                sku=products[item.product_ref].sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=quantize_money(item.unit_price * item.quantity),
            )
            for item in data.items
        ]
        status = OrderStatus(
            id=str(uuid.uuid4()),
            order_id=order.id,
            state=OrderState.ORDER_SUCCESS,
            updated_at=now,
        )
        await uow.orders.create(order, lines)
        await uow.order_statuses.create(status)
        return order, lines, status

    async def _reserve_stock(self, uow, lines: List[OrderLine]) -> None:
        for line in lines:
            reserved = await uow.products.decrement_stock(line.product_id, line.quantity)
            if not reserved:
                # остаток ушел в параллельном заказе между проверкой и записью
                product = await uow.products.get_by_id(line.product_id)
                available = product.stock_quantity if product else 0
                logger.warning(f"Списание {line.product_id} не прошло: доступно {available}")
                raise InsufficientStockError(line.product_id, available, line.quantity)

    async def _record_voucher_usage(self, uow, voucher: Voucher, order: Order, discount: Decimal) -> None:
        if not await uow.vouchers.increment_uses(voucher.id):
            raise VoucherUsageLimitError(f"Лимит использований ваучера {voucher.code} исчерпан")
        await uow.voucher_usages.create(
            VoucherUsage(
                id=str(uuid.uuid4()),
                voucher_id=voucher.id,
                order_id=order.id,
                customer_id=order.customer_id,
                discount_applied=discount,
                used_at=datetime.now(timezone.utc),
            )
        )
        voucher.current_uses += 1

    async def _replay(self, uow, order: Order, data: CheckoutDTO) -> CheckoutResult:
        lines = await uow.orders.get_lines(order.id)
        stored = sorted((line.product_id, line.quantity, line.unit_price) for line in lines)
        requested = sorted((item.product_ref, item.quantity, item.unit_price) for item in data.items)
        if stored != requested:
            logger.warning(f"Ключ {data.idempotency_key} уже использован для заказа {order.id} с другой корзиной")
            raise OrderValidationError("Ключ идемпотентности уже использован для другой корзины")
        status = await uow.order_statuses.get_by_order(order.id)
        voucher = await uow.vouchers.get_by_id(order.voucher_id) if order.voucher_id else None
        breakdown = PriceBreakdown(
            subtotal=order.subtotal,
            ranking_discount=order.ranking_discount,
            voucher_discount=order.voucher_discount,
            tax=order.tax,
        )
        return CheckoutResult(
            order=order,
            lines=lines,
            status=status,
            voucher=voucher,
            breakdown=breakdown,
            replayed=True,
        )
