from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel, computed_field

CENT = Decimal("0.01")
UNIT = Decimal("1")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal) -> Decimal:
    """Округление до целого, половина вверх (как Math.round для положительных)"""
    return Decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def calculate_ranking_discount(subtotal: Decimal, discount_percent: Decimal) -> Decimal:
    if discount_percent <= 0:
        return Decimal("0")
    return round_half_up(subtotal * discount_percent / Decimal(100))


def calculate_tax(subtotal: Decimal, rate: Decimal) -> Decimal:
    # налог всегда от суммы до скидок
    return round_half_up(subtotal * rate)


class PriceBreakdown(BaseModel):
    subtotal: Decimal
    ranking_discount: Decimal = Decimal("0")
    voucher_discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")

    @computed_field
    @property
    def total_discount(self) -> Decimal:
        return self.ranking_discount + self.voucher_discount

    @computed_field
    @property
    def total(self) -> Decimal:
        return self.subtotal - self.ranking_discount - self.voucher_discount + self.tax
