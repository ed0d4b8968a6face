from decimal import Decimal
from typing import Optional, Sequence

from order_checkout.domain.models import RankingTier


def resolve_tier(tiers: Sequence[RankingTier], spend: Decimal) -> Optional[RankingTier]:
    """Подбор ранга по сумме покупок.

    Ранги перебираются по возрастанию min_spending. Сумма выше всех границ
    дает старший ранг, ниже всех границ - младший. Пустая таблица - None.
    """
    if not tiers:
        return None
    ordered = sorted(tiers, key=lambda tier: tier.min_spending)
    for tier in ordered:
        if tier.contains(spend):
            return tier
    if spend > ordered[-1].max_spending:
        return ordered[-1]
    if spend < ordered[0].min_spending:
        return ordered[0]
    # дыра между рангами: берем ближайший снизу
    lower = [tier for tier in ordered if tier.min_spending <= spend]
    return lower[-1]


def lowest_tier(tiers: Sequence[RankingTier]) -> Optional[RankingTier]:
    if not tiers:
        return None
    return min(tiers, key=lambda tier: tier.min_spending)


def is_upgrade(old: Optional[RankingTier], new: Optional[RankingTier]) -> bool:
    if new is None or old is None:
        return False
    return new.min_spending > old.min_spending
