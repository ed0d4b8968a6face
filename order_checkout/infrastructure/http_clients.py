import httpx
import logging
import asyncio

from order_checkout.application.interfaces import NotificationSink
from order_checkout.domain.exceptions import NotificationServiceError
from order_checkout.domain.models import NotificationKind

logger = logging.getLogger(__name__)

ORDER_STATUS_TITLES = {
    NotificationKind.CONFIRMED: "Заказ подтвержден",
    NotificationKind.SHIPPED: "Заказ передан в доставку",
    NotificationKind.DELIVERED: "Заказ доставлен",
    NotificationKind.CANCELLED: "Заказ отменен",
}


class HTTPNotificationsClient(NotificationSink):
    def __init__(self, base_url: str, api_token: str, max_retries: int = 3, retry_delay: float = 1.0):
        self._base_url = base_url
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def create_order_status_notification(
        self, order_id: str, customer_id: str, status_kind: NotificationKind, order_details: dict
    ) -> bool:
        payload = {
            "customer_id": customer_id,
            "type": f"ORDER_{status_kind.value}",
            "title": ORDER_STATUS_TITLES[status_kind],
            "message": f"Заказ #{order_details['order_ref']} на сумму {order_details['order_total']}",
            "reference_id": order_id,
            "priority": "HIGH" if status_kind == NotificationKind.CANCELLED else "MEDIUM",
            "idempotency_key": f"order_{order_id}_{status_kind.value}",
        }
        return await self.send(payload)

    async def create_rank_upgrade_notification(self, customer_id: str, tier_name: str, benefits: str) -> bool:
        payload = {
            "customer_id": customer_id,
            "type": "RANK_UPGRADE",
            "title": f"Поздравляем! Ваш новый ранг: {tier_name}",
            "message": f"Ваши привилегии: {benefits}",
            "reference_id": customer_id,
            "priority": "HIGH",
            "idempotency_key": f"rank_{customer_id}_{tier_name}",
        }
        return await self.send(payload)

    async def send(self, payload: dict) -> bool:
        """Отправка уведомления с повторными попытками"""
        for attempt in range(self._max_retries):
            try:
                await self._post(payload)
                logger.info(f"Уведомление отправлено (попытка {attempt + 1})")
                return True
            except NotificationServiceError as e:
                logger.warning(f"Ошибка отправки уведомления (попытка {attempt + 1}/{self._max_retries}): {e}")

            # Ждем перед следующей попыткой (кроме последней)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Не удалось отправить уведомление после {self._max_retries} попыток")
        return False

    async def _post(self, payload: dict) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self._base_url}/api/notifications",
                    json=payload,
                    headers={"X-API-Key": self._api_token},
                    timeout=10.0
                )
        except httpx.RequestError as e:
            raise NotificationServiceError(f"Notifications service не доступен: {e}")

        if response.status_code not in (200, 201):
            raise NotificationServiceError(f"Notifications service ошибка: {response.status_code}")
