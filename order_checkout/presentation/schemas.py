from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from order_checkout.domain.models import DiscountType, OrderState


class CartItemRequest(BaseModel):
    product_ref: str
    quantity: int
    unit_price: Decimal


class CheckoutRequest(BaseModel):
    customer_id: str
    customer_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    shipping_address: str
    payment_method_id: str
    order_note: Optional[str] = None
    items: List[CartItemRequest]
    voucher_code: Optional[str] = None
    idempotency_key: Optional[str] = None


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    shipping_address: str
    payment_method_id: str
    order_note: Optional[str] = None
    voucher_id: Optional[str] = None
    order_total: Decimal
    created_at: datetime

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            phone_number=order.phone_number,
            email=order.email,
            shipping_address=order.shipping_address,
            payment_method_id=order.payment_method_id,
            order_note=order.order_note,
            voucher_id=order.voucher_id,
            order_total=order.order_total,
            created_at=order.created_at
        )


class OrderLineResponse(BaseModel):
    id: str
    product_id: str
    sku: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    @classmethod
    def from_domain(cls, line):
        return cls(
            id=line.id,
            product_id=line.product_id,
            sku=line.sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total
        )


class OrderStatusResponse(BaseModel):
    id: str
    order_id: str
    of_state: OrderState
    updated_at: datetime

    @classmethod
    def from_domain(cls, status):
        return cls(
            id=status.id,
            order_id=status.order_id,
            of_state=status.state,
            updated_at=status.updated_at
        )


class VoucherResponse(BaseModel):
    id: str
    code: str
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    current_uses: int
    max_uses: int

    @classmethod
    def from_domain(cls, voucher):
        return cls(
            id=voucher.id,
            code=voucher.code,
            name=voucher.name,
            discount_type=voucher.discount_type,
            discount_value=voucher.discount_value,
            max_discount_amount=voucher.max_discount_amount,
            current_uses=voucher.current_uses,
            max_uses=voucher.max_uses
        )


class RankingResponse(BaseModel):
    customer_id: str
    old_tier: Optional[str] = None
    new_tier: Optional[str] = None
    discount_percent: Decimal = Decimal("0")
    total_spending: Decimal
    upgraded: bool

    @classmethod
    def from_domain(cls, change):
        return cls(
            customer_id=change.customer_id,
            old_tier=change.old_tier.name if change.old_tier else None,
            new_tier=change.new_tier.name if change.new_tier else None,
            discount_percent=change.new_tier.discount_percent if change.new_tier else Decimal("0"),
            total_spending=change.total_spending,
            upgraded=change.upgraded
        )


class SummaryResponse(BaseModel):
    subtotal: Decimal
    ranking_discount: Decimal
    voucher_discount: Decimal
    total_discount: Decimal
    tax: Decimal
    total: Decimal

    @classmethod
    def from_domain(cls, breakdown):
        return cls(
            subtotal=breakdown.subtotal,
            ranking_discount=breakdown.ranking_discount,
            voucher_discount=breakdown.voucher_discount,
            total_discount=breakdown.total_discount,
            tax=breakdown.tax,
            total=breakdown.total
        )


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order: OrderResponse
    product_orders: List[OrderLineResponse] = Field(alias="productOrders")
    order_info: OrderStatusResponse = Field(alias="orderInfo")
    voucher: Optional[VoucherResponse] = None
    ranking: Optional[RankingResponse] = None
    summary: SummaryResponse

    @classmethod
    def from_domain(cls, result):
        return cls(
            order=OrderResponse.from_domain(result.order),
            product_orders=[OrderLineResponse.from_domain(line) for line in result.lines],
            order_info=OrderStatusResponse.from_domain(result.status),
            voucher=VoucherResponse.from_domain(result.voucher) if result.voucher else None,
            ranking=RankingResponse.from_domain(result.ranking) if result.ranking else None,
            summary=SummaryResponse.from_domain(result.breakdown)
        )


class OrderDetailsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order: OrderResponse
    product_orders: List[OrderLineResponse] = Field(alias="productOrders")
    order_info: OrderStatusResponse = Field(alias="orderInfo")
    summary: SummaryResponse

    @classmethod
    def from_domain(cls, details):
        order = details.order
        return cls(
            order=OrderResponse.from_domain(order),
            product_orders=[OrderLineResponse.from_domain(line) for line in details.lines],
            order_info=OrderStatusResponse.from_domain(details.status),
            summary=SummaryResponse(
                subtotal=order.subtotal,
                ranking_discount=order.ranking_discount,
                voucher_discount=order.voucher_discount,
                total_discount=order.ranking_discount + order.voucher_discount,
                tax=order.tax,
                total=order.order_total
            )
        )


class StatusUpdateRequest(BaseModel):
    of_state: str
    force: bool = False


class ValidateVoucherRequest(BaseModel):
    voucher_code: str
    subtotal: Decimal
    customer_id: Optional[str] = None


class VoucherQuoteResponse(BaseModel):
    voucher: VoucherResponse
    subtotal: Decimal
    ranking_discount: Decimal
    voucher_discount: Decimal
    final_amount: Decimal

    @classmethod
    def from_domain(cls, quote):
        return cls(
            voucher=VoucherResponse.from_domain(quote.voucher),
            subtotal=quote.subtotal,
            ranking_discount=quote.ranking_discount,
            voucher_discount=quote.voucher_discount,
            final_amount=quote.final_amount
        )


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None


class CancellationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str
    order_info: OrderStatusResponse = Field(alias="orderInfo")
    reason: str
    already_cancelled: bool
    restored_items: int
    voucher_released: bool

    @classmethod
    def from_domain(cls, result):
        return cls(
            order_id=result.order.id,
            order_info=OrderStatusResponse.from_domain(result.status),
            reason=result.reason,
            already_cancelled=result.already_cancelled,
            restored_items=result.restored_items,
            voucher_released=result.voucher_released
        )


class RecomputeSummaryResponse(BaseModel):
    processed: int
    assigned: int
    updated: int


class ErrorResponse(BaseModel):
    message: str
