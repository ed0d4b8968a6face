import logging
from typing import Optional
from pydantic import BaseModel

from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.domain.exceptions import (
    InvalidStateError, OrderNotFoundError, OrderStatusNotFoundError
)
from order_checkout.domain.models import NotificationKind, Order, OrderState, OrderStatus

logger = logging.getLogger(__name__)


class CancellationResult(BaseModel):
    order: Order
    status: OrderStatus
    reason: str
    already_cancelled: bool = False
    restored_items: int = 0
    voucher_released: bool = False


class CancelOrderUseCase:
    """Отмена заказа с возвратом остатков и использования ваучера"""

    def __init__(self, unit_of_work, notifications: NotificationDispatcher):
        self._uow = unit_of_work
        self._notifications = notifications

    async def __call__(self, order_id: str, reason: Optional[str] = None) -> CancellationResult:
        reason = reason or "Отменен администратором"
        logger.info(f"Отмена заказа {order_id}, причина: {reason}")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            status = await uow.order_statuses.get_by_order(order_id)
            if not status:
                raise OrderStatusNotFoundError(f"Статус заказа {order_id} не найден")

            # Идемпотентность
            if status.state == OrderState.CANCELLED:
                logger.info(f"Заказ {order_id} уже отменен")
                return CancellationResult(order=order, status=status, reason=reason, already_cancelled=True)
            if not status.can_transition_to(OrderState.CANCELLED):
                raise InvalidStateError(f"Заказ в статусе {status.state.value} нельзя отменить")

            # 1. Возврат остатков
            lines = await uow.orders.get_lines(order_id)
            for line in lines:
                await uow.products.increment_stock(line.product_id, line.quantity)

            # 2. Возврат использования ваучера
            voucher_released = False
            if order.voucher_id:
                removed = await uow.voucher_usages.delete_by_order(order_id)
                if removed:
                    await uow.vouchers.decrement_uses(order.voucher_id)
                    voucher_released = True

            # 3. Статус
            updated = await uow.order_statuses.update_state(order_id, OrderState.CANCELLED)
            await uow.commit()

        logger.info(f"Заказ {order_id} отменен, возвращено позиций: {len(lines)}")
        self._notifications.order_status_changed(order, NotificationKind.CANCELLED)
        return CancellationResult(
            order=order,
            status=updated,
            reason=reason,
            restored_items=len(lines),
            voucher_released=voucher_released,
        )
