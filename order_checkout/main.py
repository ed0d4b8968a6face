import logging
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI

from order_checkout.config import settings
from order_checkout.database import engine
from order_checkout.infrastructure.db_schema import metadata
from order_checkout.presentation.api import kafka_publisher, router
from order_checkout.presentation.errors import register_error_handlers

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # 1. Создаем таблицы (в проде схемой управляет Alembic)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Таблицы проверены")

    # 2. Kafka producer для уведомлений
    if settings.NOTIFICATIONS_TRANSPORT == "kafka":
        await kafka_publisher.start()

    yield

    logger.info("Приложение останавливается...")
    await kafka_publisher.stop()
    await engine.dispose()


app = FastAPI(
    title="Order Checkout Service",
    description="Оформление заказов: скидки по рангу, ваучеры, резерв остатков",
    version="1.0.0",
    lifespan=lifespan
)

register_error_handlers(app)
app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy", "notifications": settings.NOTIFICATIONS_TRANSPORT}
