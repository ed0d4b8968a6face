import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")

    # Checkout
    TAX_RATE: Decimal = Decimal(os.getenv("TAX_RATE", "0.10"))

    # Notifications: "http" или "kafka"
    NOTIFICATIONS_TRANSPORT: str = os.getenv("NOTIFICATIONS_TRANSPORT", "http")
    NOTIFICATIONS_BASE_URL: str = os.getenv("NOTIFICATIONS_BASE_URL", "http://localhost:8001")
    NOTIFICATIONS_MAX_RETRIES: int = int(os.getenv("NOTIFICATIONS_MAX_RETRIES", "3"))

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_NOTIFICATIONS_TOPIC: str = os.getenv("KAFKA_NOTIFICATIONS_TOPIC", "shop.notifications")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")


settings = Settings()
