from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_checkout.application.interfaces import UnitOfWork as AbstractUnitOfWork
from order_checkout.infrastructure.repositories import (
    SQLAlchemyCustomerRankingRepository,
    SQLAlchemyCustomerRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyOrderStatusRepository,
    SQLAlchemyPaymentMethodRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyRankingRepository,
    SQLAlchemyVoucherRepository,
    SQLAlchemyVoucherUsageRepository
)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                # Создаем реализацию с репозиториями
                uow_impl = _UnitOfWorkImpl(session)
                yield uow_impl
                # Если commit не вызван — rollback
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImpl(AbstractUnitOfWork):
    def __init__(self, session: AsyncSession):
        self._session = session
        self.customers = SQLAlchemyCustomerRepository(session)
        self.payment_methods = SQLAlchemyPaymentMethodRepository(session)
        self.products = SQLAlchemyProductRepository(session)
        self.vouchers = SQLAlchemyVoucherRepository(session)
        self.voucher_usages = SQLAlchemyVoucherUsageRepository(session)
        self.rankings = SQLAlchemyRankingRepository(session)
        self.customer_rankings = SQLAlchemyCustomerRankingRepository(session)
        self.orders = SQLAlchemyOrderRepository(session)
        self.order_statuses = SQLAlchemyOrderStatusRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
