from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field

from order_checkout.domain.pricing import quantize_money


class OrderState(str, Enum):
    ORDER_SUCCESS = "ORDER_SUCCESS"
    TRANSFER_TO_SHIPPING = "TRANSFER_TO_SHIPPING"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class NotificationKind(str, Enum):
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DiscountType(str, Enum):
    PERCENT = "PERCENT"
    FIXED = "FIXED"


ORDER_TRANSITIONS = {
    OrderState.ORDER_SUCCESS: {
        OrderState.TRANSFER_TO_SHIPPING,
        OrderState.SHIPPING,
        OrderState.CANCELLED,
    },
    OrderState.TRANSFER_TO_SHIPPING: {OrderState.SHIPPING, OrderState.CANCELLED},
    OrderState.SHIPPING: {OrderState.DELIVERED, OrderState.CANCELLED},
    OrderState.DELIVERED: set(),
    OrderState.CANCELLED: set(),
}

NOTIFICATION_KIND_BY_STATE = {
    OrderState.ORDER_SUCCESS: NotificationKind.CONFIRMED,
    OrderState.TRANSFER_TO_SHIPPING: NotificationKind.SHIPPED,
    OrderState.SHIPPING: NotificationKind.SHIPPED,
    OrderState.DELIVERED: NotificationKind.DELIVERED,
    OrderState.CANCELLED: NotificationKind.CANCELLED,
}


class Customer(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime


class PaymentMethod(BaseModel):
    id: str
    name: str
    is_active: bool = True


class Product(BaseModel):
    """Value Object — товар каталога"""
    id: str
    sku: str
    name: str
    price: Decimal
    stock_quantity: int
    is_available: bool = True


class RankingTier(BaseModel):
    id: str
    name: str
    min_spending: Decimal
    max_spending: Decimal
    discount_percent: Decimal = Decimal("0")
    benefits: List[str] = Field(default_factory=list)

    def contains(self, spend: Decimal) -> bool:
        return self.min_spending <= spend <= self.max_spending

    def benefits_text(self) -> str:
        return ", ".join(self.benefits) if self.benefits else f"Скидка {self.discount_percent}% на все заказы"


class CustomerRanking(BaseModel):
    customer_id: str
    ranking_id: str
    total_spending: Decimal = Decimal("0")
    updated_at: datetime


class Voucher(BaseModel):
    """Domain Entity — ваучер"""
    id: str
    code: str
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_value: Decimal = Decimal("0")
    start_date: datetime
    end_date: datetime
    max_uses: int
    current_uses: int = 0
    ranking_id: Optional[str] = None
    is_active: bool = True

    def is_within_window(self, now: datetime) -> bool:
        """Бизнес-правило: ваучер действует только в [start_date, end_date]"""
        return self.start_date <= now <= self.end_date

    def has_uses_left(self) -> bool:
        return self.current_uses < self.max_uses

    def calculate_discount(self, base: Decimal) -> Decimal:
        """Скидка по ваучеру от суммы после скидки ранга"""
        if base <= 0:
            return Decimal("0")
        if self.discount_type == DiscountType.PERCENT:
            discount = base * self.discount_value / Decimal(100)
        else:
            discount = self.discount_value
        if self.max_discount_amount is not None:
            discount = min(discount, self.max_discount_amount)
        return quantize_money(min(discount, base))


class VoucherUsage(BaseModel):
    id: str
    voucher_id: str
    order_id: str
    customer_id: str
    discount_applied: Decimal
    used_at: datetime


class OrderLine(BaseModel):
    """Снимок позиции заказа на момент покупки"""
    id: str
    order_id: str
    product_id: str
    sku: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class Order(BaseModel):
    """Domain Entity — заказ"""
    id: str
    customer_id: str
    customer_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    shipping_address: str
    payment_method_id: str
    order_note: Optional[str] = None
    voucher_id: Optional[str] = None
    subtotal: Decimal
    ranking_discount: Decimal = Decimal("0")
    voucher_discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    order_total: Decimal
    idempotency_key: Optional[str] = None
    created_at: datetime


class OrderStatus(BaseModel):
    id: str
    order_id: str
    state: OrderState
    updated_at: datetime

    def can_transition_to(self, new_state: OrderState) -> bool:
        """Бизнес-правило: из DELIVERED и CANCELLED переходов нет"""
        return new_state in ORDER_TRANSITIONS[self.state]

    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self.state]
