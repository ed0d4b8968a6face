import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.domain.exceptions import CustomerNotFoundError
from order_checkout.domain.models import CustomerRanking, RankingTier
from order_checkout.domain.ranking import is_upgrade, lowest_tier, resolve_tier

logger = logging.getLogger(__name__)


class RankingChange(BaseModel):
    customer_id: str
    old_tier: Optional[RankingTier] = None
    new_tier: Optional[RankingTier] = None
    total_spending: Decimal = Decimal("0")
    created: bool = False
    changed: bool = False
    upgraded: bool = False


class RecomputeSummary(BaseModel):
    processed: int = 0
    assigned: int = 0
    updated: int = 0


class RankingService:
    """Пересчет ранга покупателя по сумме всех его заказов.

    Сумма каждый раз берется из таблицы заказов, а не из счетчика, поэтому
    повторный вызов без новых заказов ничего не меняет.
    Работает внутри переданного uow и не коммитит.
    """

    async def current_tier(self, uow, customer_id: str) -> Optional[RankingTier]:
        tiers = await uow.rankings.list_ordered()
        ranking = await uow.customer_rankings.get_by_customer(customer_id)
        if ranking:
            for tier in tiers:
                if tier.id == ranking.ranking_id:
                    return tier
        return lowest_tier(tiers)

    async def recompute(self, uow, customer_id: str, applied_order_total: Optional[Decimal] = None) -> RankingChange:
        tiers = await uow.rankings.list_ordered()
        total = await uow.orders.total_spending(customer_id)
        if applied_order_total is not None:
            logger.info(f"Пересчет ранга {customer_id} после заказа на {applied_order_total}, всего {total}")

        if not tiers:
            logger.warning("Таблица рангов пуста, пересчет пропущен")
            return RankingChange(customer_id=customer_id, total_spending=total)

        created = False
        current = await uow.customer_rankings.get_by_customer(customer_id)
        if current is None:
            start = lowest_tier(tiers)
            current = CustomerRanking(
                customer_id=customer_id,
                ranking_id=start.id,
                total_spending=Decimal("0"),
                updated_at=datetime.now(timezone.utc),
            )
            if await uow.customer_rankings.create(current):
                created = True
                logger.info(f"Создан ранг {start.name} для покупателя {customer_id}")
            else:
                # запись успел создать параллельный заказ
                current = await uow.customer_rankings.get_by_customer(customer_id)

        old_tier = next((tier for tier in tiers if tier.id == current.ranking_id), None) or lowest_tier(tiers)
        new_tier = resolve_tier(tiers, total)

        changed = new_tier.id != old_tier.id
        if changed or total != current.total_spending:
            await uow.customer_rankings.update(customer_id, new_tier.id, total)

        upgraded = changed and is_upgrade(old_tier, new_tier)
        if changed:
            logger.info(f"Ранг покупателя {customer_id}: {old_tier.name} -> {new_tier.name}")

        return RankingChange(
            customer_id=customer_id,
            old_tier=old_tier,
            new_tier=new_tier,
            total_spending=total,
            created=created,
            changed=changed,
            upgraded=upgraded,
        )


class RecomputeRankingUseCase:
    def __init__(self, unit_of_work, notifications: NotificationDispatcher):
        self._uow = unit_of_work
        self._notifications = notifications
        self._ranking = RankingService()

    async def __call__(self, customer_id: str) -> RankingChange:
        async with self._uow() as uow:
            customer = await uow.customers.get_by_id(customer_id)
            if not customer:
                raise CustomerNotFoundError(f"Покупатель {customer_id} не найден")
            change = await self._ranking.recompute(uow, customer_id)
            await uow.commit()

        if change.upgraded:
            self._notifications.rank_upgraded(customer_id, change.new_tier)
        return change


class RecomputeAllRankingsUseCase:
    """Массовый пересчет рангов всех покупателей"""

    def __init__(self, unit_of_work, notifications: NotificationDispatcher):
        self._uow = unit_of_work
        self._notifications = notifications
        self._ranking = RankingService()

    async def __call__(self) -> RecomputeSummary:
        summary = RecomputeSummary()
        upgrades = []
        async with self._uow() as uow:
            for customer_id in await uow.customers.list_ids():
                change = await self._ranking.recompute(uow, customer_id)
                summary.processed += 1
                if change.created:
                    summary.assigned += 1
                elif change.changed:
                    summary.updated += 1
                if change.upgraded:
                    upgrades.append(change)
            await uow.commit()

        for change in upgrades:
            self._notifications.rank_upgraded(change.customer_id, change.new_tier)
        logger.info(f"Пересчет рангов завершен: {summary}")
        return summary
