"""
Уведомления: fire-and-forget диспетчер, HTTP-клиент с повторами, Kafka.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.domain.exceptions import NotificationServiceError
from order_checkout.domain.models import NotificationKind, Order, RankingTier
from order_checkout.infrastructure.http_clients import HTTPNotificationsClient
from order_checkout.infrastructure.kafka_producer import KafkaNotificationPublisher

from tests.conftest import FailingNotificationSink, RecordingNotificationSink


def make_order():
    return Order(
        id="order-1",
        customer_id="cust-1",
        customer_name="Иван Петров",
        shipping_address="Москва",
        payment_method_id="pm-card",
        subtotal=Decimal("200"),
        tax=Decimal("20"),
        order_total=Decimal("220"),
        created_at=datetime.now(timezone.utc),
    )


SILVER = RankingTier(
    id="rank-silver",
    name="Silver",
    min_spending=Decimal("1000"),
    max_spending=Decimal("4999.99"),
    discount_percent=Decimal("10"),
)


@pytest.mark.asyncio
async def test_dispatcher_runs_in_background():
    sink = RecordingNotificationSink()
    dispatcher = NotificationDispatcher(sink)

    dispatcher.order_status_changed(make_order(), NotificationKind.CONFIRMED)
    dispatcher.rank_upgraded("cust-1", SILVER)
    await dispatcher.drain()

    assert sink.order_statuses == [
        ("order-1", "cust-1", NotificationKind.CONFIRMED, {"order_ref": "order-1", "order_total": "220"})
    ]
    assert sink.rank_upgrades == [("cust-1", "Silver", "Скидка 10% на все заказы")]


@pytest.mark.asyncio
async def test_dispatcher_uses_scheduler():
    scheduled = []
    sink = RecordingNotificationSink()
    dispatcher = NotificationDispatcher(sink, schedule=lambda func, *args: scheduled.append((func, args)))

    dispatcher.order_status_changed(make_order(), NotificationKind.SHIPPED)
    assert sink.order_statuses == []

    func, args = scheduled[0]
    await func(*args)
    assert sink.order_statuses[0][2] == NotificationKind.SHIPPED


@pytest.mark.asyncio
async def test_dispatcher_swallows_sink_errors():
    sink = FailingNotificationSink()
    dispatcher = NotificationDispatcher(sink)

    dispatcher.order_status_changed(make_order(), NotificationKind.CANCELLED)
    dispatcher.rank_upgraded("cust-1", SILVER)
    await dispatcher.drain()

    assert sink.calls == 2


@pytest.mark.asyncio
async def test_http_client_posts_payload(monkeypatch):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(201, json={"id": "n-1"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda: real_client(transport=httpx.MockTransport(handler)))
    client = HTTPNotificationsClient("http://notifications", "secret", retry_delay=0)

    sent = await client.create_order_status_notification(
        "order-1", "cust-1", NotificationKind.CONFIRMED, {"order_ref": "order-1", "order_total": "220"}
    )

    assert sent
    [request] = requests
    assert request.url == "http://notifications/api/notifications"
    assert request.headers["X-API-Key"] == "secret"
    body = json.loads(request.content)
    assert body["type"] == "ORDER_CONFIRMED"
    assert body["reference_id"] == "order-1"
    assert body["idempotency_key"] == "order_order-1_CONFIRMED"


@pytest.mark.asyncio
async def test_http_client_retries_then_succeeds(monkeypatch):
    attempts = []

    async def flaky_post(self, payload):
        attempts.append(payload)
        if len(attempts) < 3:
            raise NotificationServiceError("Notifications service ошибка: 503")

    monkeypatch.setattr(HTTPNotificationsClient, "_post", flaky_post)
    client = HTTPNotificationsClient("http://notifications", "secret", max_retries=3, retry_delay=0)

    assert await client.create_rank_upgrade_notification("cust-1", "Silver", "Скидка 10%")
    assert len(attempts) == 3
    assert attempts[0]["type"] == "RANK_UPGRADE"


@pytest.mark.asyncio
async def test_http_client_gives_up(monkeypatch):
    def handler(request):
        return httpx.Response(500)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda: real_client(transport=httpx.MockTransport(handler)))
    client = HTTPNotificationsClient("http://notifications", "secret", max_retries=2, retry_delay=0)

    assert not await client.create_order_status_notification(
        "order-1", "cust-1", NotificationKind.DELIVERED, {"order_ref": "order-1", "order_total": "220"}
    )


class FakeProducer:
    def __init__(self):
        self.sent = []

    async def send_and_wait(self, topic, key, value):
        self.sent.append((topic, key, json.loads(value)))


@pytest.mark.asyncio
async def test_kafka_publisher_requires_start():
    publisher = KafkaNotificationPublisher("localhost:9092", "shop.notifications")

    assert not await publisher.create_rank_upgrade_notification("cust-1", "Silver", "Скидка 10%")


@pytest.mark.asyncio
async def test_kafka_publisher_sends_event():
    publisher = KafkaNotificationPublisher("localhost:9092", "shop.notifications")
    producer = FakeProducer()
    publisher._producer = producer

    assert await publisher.create_order_status_notification(
        "order-1", "cust-1", NotificationKind.CONFIRMED, {"order_ref": "order-1", "order_total": "220"}
    )

    [(topic, key, event)] = producer.sent
    assert topic == "shop.notifications"
    assert key == b"cust-1"
    assert event["event_type"] == "notification.order_status"
    assert event["status"] == "CONFIRMED"
