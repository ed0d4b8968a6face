import asyncio
import logging
from typing import Callable, Optional, Set

from order_checkout.application.interfaces import NotificationSink
from order_checkout.domain.models import NotificationKind, Order, RankingTier

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget отправка уведомлений.

    Вызовы sink не блокируют use case: либо планируются через schedule
    (BackgroundTasks в HTTP-запросе), либо запускаются отдельной задачей.
    Ошибки доставки только логируются.
    """

    def __init__(self, sink: NotificationSink, schedule: Optional[Callable] = None):
        self._sink = sink
        self._schedule = schedule
        self._tasks: Set[asyncio.Task] = set()

    def order_status_changed(self, order: Order, kind: NotificationKind) -> None:
        details = {"order_ref": order.id, "order_total": str(order.order_total)}
        self._submit(
            "статус заказа",
            self._sink.create_order_status_notification,
            order.id, order.customer_id, kind, details,
        )

    def rank_upgraded(self, customer_id: str, tier: RankingTier) -> None:
        self._submit(
            "повышение ранга",
            self._sink.create_rank_upgrade_notification,
            customer_id, tier.name, tier.benefits_text(),
        )

    async def drain(self) -> None:
        """Дождаться уже запущенных отправок (shutdown, тесты)"""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _submit(self, label: str, func: Callable, *args) -> None:
        if self._schedule is not None:
            self._schedule(self._deliver, label, func, *args)
            return
        task = asyncio.create_task(self._deliver(label, func, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, label: str, func: Callable, *args) -> None:
        try:
            sent = await func(*args)
            if sent:
                logger.info(f"Отправлено уведомление '{label}': {args[:2]}")
            else:
                logger.warning(f"Не отправлено уведомление '{label}': {args[:2]}")
        except Exception as e:
            logger.error(f"Ошибка отправки уведомления '{label}': {e}")
