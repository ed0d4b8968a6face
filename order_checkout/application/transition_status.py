import logging

from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.domain.exceptions import (
    InvalidStateError, OrderNotFoundError, OrderStatusNotFoundError
)
from order_checkout.domain.models import NOTIFICATION_KIND_BY_STATE, OrderState, OrderStatus

logger = logging.getLogger(__name__)


def parse_state(value) -> OrderState:
    if isinstance(value, OrderState):
        return value
    try:
        return OrderState(str(value).strip().upper())
    except ValueError:
        raise InvalidStateError(f"Некорректный статус заказа: {value}")


class TransitionOrderStatusUseCase:
    """Смена статуса заказа по таблице переходов.

    force=True - ручное вмешательство администратора: переход разрешен
    из любого статуса в любой, в том числе из терминального.
    """

    def __init__(self, unit_of_work, notifications: NotificationDispatcher):
        self._uow = unit_of_work
        self._notifications = notifications

    async def __call__(self, order_id: str, new_state, force: bool = False) -> OrderStatus:
        state = parse_state(new_state)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            status = await uow.order_statuses.get_by_order(order_id)
            if not status:
                raise OrderStatusNotFoundError(f"Статус заказа {order_id} не найден")

            if not status.can_transition_to(state):
                if not force:
                    raise InvalidStateError(f"Переход {status.state.value} -> {state.value} запрещен")
                logger.warning(f"Принудительный переход заказа {order_id}: {status.state.value} -> {state.value}")

            updated = await uow.order_statuses.update_state(order_id, state)
            await uow.commit()

        logger.info(f"Заказ {order_id} переведен в {state.value}")
        self._notifications.order_status_changed(order, NOTIFICATION_KIND_BY_STATE[state])
        return updated
