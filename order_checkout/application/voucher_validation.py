import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from order_checkout.domain.models import RankingTier, Voucher
from order_checkout.domain.exceptions import (
    MinimumOrderError, RankingMismatchError, VoucherExpiredError,
    VoucherInactiveError, VoucherNotFoundError, VoucherUsageLimitError
)

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def validate_voucher(
    uow,
    code: str,
    subtotal: Decimal,
    ranking_discount: Decimal,
    customer_tier: Optional[RankingTier],
    now: datetime,
) -> Tuple[Voucher, Decimal]:
    """Проверка ваучера и расчет скидки.

    Скидка считается от суммы после скидки ранга; минимальная сумма заказа
    сравнивается с subtotal до скидок. Ничего не записывает.
    """
    voucher = await uow.vouchers.get_by_code(normalize_code(code))
    if not voucher:
        raise VoucherNotFoundError(f"Ваучер {normalize_code(code)} не найден")
    if not voucher.is_active:
        raise VoucherInactiveError(f"Ваучер {voucher.code} не активен")
    if not voucher.is_within_window(now):
        raise VoucherExpiredError(f"Ваучер {voucher.code} недействителен на текущую дату")
    if not voucher.has_uses_left():
        raise VoucherUsageLimitError(f"Лимит использований ваучера {voucher.code} исчерпан")
    if subtotal < voucher.min_order_value:
        raise MinimumOrderError(voucher.min_order_value, subtotal)
    if voucher.ranking_id is not None:
        if customer_tier is None or customer_tier.id != voucher.ranking_id:
            raise RankingMismatchError(f"Ваучер {voucher.code} недоступен для вашего ранга")

    discount = voucher.calculate_discount(subtotal - ranking_discount)
    logger.info(f"Ваучер {voucher.code} применим, скидка {discount}")
    return voucher, discount
