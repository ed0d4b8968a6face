import json
import logging
from aiokafka import AIOKafkaProducer

from order_checkout.application.interfaces import NotificationSink
from order_checkout.domain.models import NotificationKind

logger = logging.getLogger(__name__)


class KafkaNotificationPublisher(NotificationSink):
    """Публикация уведомлений в Kafka для real-time доставки покупателю"""

    def __init__(self, bootstrap_servers: str, topic: str):
        self._bootstrap_servers = bootstrap_servers
        self._producer: AIOKafkaProducer | None = None
        self._topic = topic

    async def start(self):
        if not self._producer:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers
            )
            await self._producer.start()
            logger.info("Kafka producer started")

    async def stop(self):
        if self._producer:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka producer stopped")

    async def create_order_status_notification(
        self, order_id: str, customer_id: str, status_kind: NotificationKind, order_details: dict
    ) -> bool:
        event = {
            "event_type": "notification.order_status",
            "customer_id": customer_id,
            "order_id": order_id,
            "status": status_kind.value,
            "details": order_details,
        }
        return await self._publish(customer_id, event)

    async def create_rank_upgrade_notification(self, customer_id: str, tier_name: str, benefits: str) -> bool:
        event = {
            "event_type": "notification.rank_upgrade",
            "customer_id": customer_id,
            "tier_name": tier_name,
            "benefits": benefits,
        }
        return await self._publish(customer_id, event)

    async def _publish(self, customer_id: str, event: dict) -> bool:
        if not self._producer:
            logger.error("Kafka producer not started")
            return False

        try:
            await self._producer.send_and_wait(
                topic=self._topic,
                key=customer_id.encode(),
                value=json.dumps(event).encode()
            )
            logger.info(f"Published {event['event_type']} for customer {customer_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish {event['event_type']}: {e}")
            return False
