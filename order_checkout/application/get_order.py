from typing import List
from pydantic import BaseModel

from order_checkout.domain.models import Order, OrderLine, OrderStatus
from order_checkout.domain.exceptions import OrderNotFoundError, OrderStatusNotFoundError


class OrderDetails(BaseModel):
    order: Order
    lines: List[OrderLine]
    status: OrderStatus


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str) -> OrderDetails:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            status = await uow.order_statuses.get_by_order(order_id)
            if not status:
                raise OrderStatusNotFoundError(f"Статус заказа {order_id} не найден")
            lines = await uow.orders.get_lines(order_id)
            return OrderDetails(order=order, lines=lines, status=status)
