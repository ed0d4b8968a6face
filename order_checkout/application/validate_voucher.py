from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from order_checkout.application.recompute_ranking import RankingService
from order_checkout.application.voucher_validation import validate_voucher
from order_checkout.domain.exceptions import CustomerNotFoundError, OrderValidationError
from order_checkout.domain.models import Voucher
from order_checkout.domain.pricing import calculate_ranking_discount, quantize_money


class VoucherQuote(BaseModel):
    voucher: Voucher
    subtotal: Decimal
    ranking_discount: Decimal
    voucher_discount: Decimal
    final_amount: Decimal


class ValidateVoucherUseCase:
    """Пробный расчет скидки по ваучеру без записи в БД"""

    def __init__(self, unit_of_work):
        self._uow = unit_of_work
        self._ranking = RankingService()

    async def __call__(self, code: str, subtotal: Decimal, customer_id: Optional[str] = None) -> VoucherQuote:
        if not code or not code.strip():
            raise OrderValidationError("Не указан код ваучера")
        if subtotal <= 0:
            raise OrderValidationError("Сумма заказа должна быть больше нуля")
        subtotal = quantize_money(subtotal)

        async with self._uow() as uow:
            tier = None
            if customer_id:
                if not await uow.customers.get_by_id(customer_id):
                    raise CustomerNotFoundError(f"Покупатель {customer_id} не найден")
                tier = await self._ranking.current_tier(uow, customer_id)
            ranking_discount = calculate_ranking_discount(subtotal, tier.discount_percent) if tier else Decimal("0")

            voucher, discount = await validate_voucher(
                uow, code, subtotal, ranking_discount, tier, datetime.now(timezone.utc)
            )

        return VoucherQuote(
            voucher=voucher,
            subtotal=subtotal,
            ranking_discount=ranking_discount,
            voucher_discount=discount,
            final_amount=subtotal - ranking_discount - discount,
        )
