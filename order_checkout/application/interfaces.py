from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, List

from order_checkout.domain.models import (
    Customer, CustomerRanking, NotificationKind, Order, OrderLine, OrderState,
    OrderStatus, PaymentMethod, Product, RankingTier, Voucher, VoucherUsage
)


class CustomerRepository(ABC):
    @abstractmethod
    async def get_by_id(self, customer_id: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def list_ids(self) -> List[str]:
        pass


class PaymentMethodRepository(ABC):
    @abstractmethod
    async def get_by_id(self, payment_method_id: str) -> Optional[PaymentMethod]:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Атомарное списание: False, если остатка меньше quantity"""
        pass

    @abstractmethod
    async def increment_stock(self, product_id: str, quantity: int) -> None:
        pass


class VoucherRepository(ABC):
    @abstractmethod
    async def get_by_id(self, voucher_id: str) -> Optional[Voucher]:
        pass

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Voucher]:
        pass

    @abstractmethod
    async def increment_uses(self, voucher_id: str) -> bool:
        """Атомарное увеличение current_uses: False, если лимит исчерпан"""
        pass

    @abstractmethod
    async def decrement_uses(self, voucher_id: str) -> None:
        pass


class VoucherUsageRepository(ABC):
    @abstractmethod
    async def create(self, usage: VoucherUsage) -> None:
        pass

    @abstractmethod
    async def get_by_order(self, order_id: str) -> List[VoucherUsage]:
        pass

    @abstractmethod
    async def delete_by_order(self, order_id: str) -> int:
        pass


class RankingRepository(ABC):
    @abstractmethod
    async def list_ordered(self) -> List[RankingTier]:
        pass


class CustomerRankingRepository(ABC):
    @abstractmethod
    async def get_by_customer(self, customer_id: str) -> Optional[CustomerRanking]:
        pass

    @abstractmethod
    async def create(self, ranking: CustomerRanking) -> bool:
        pass

    @abstractmethod
    async def update(self, customer_id: str, ranking_id: str, total_spending: Decimal) -> None:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order, lines: List[OrderLine]) -> None:
        pass

    @abstractmethod
    async def get_lines(self, order_id: str) -> List[OrderLine]:
        pass

    @abstractmethod
    async def total_spending(self, customer_id: str) -> Decimal:
        pass


class OrderStatusRepository(ABC):
    @abstractmethod
    async def get_by_order(self, order_id: str) -> Optional[OrderStatus]:
        pass

    @abstractmethod
    async def create(self, status: OrderStatus) -> None:
        pass

    @abstractmethod
    async def update_state(self, order_id: str, state: OrderState) -> Optional[OrderStatus]:
        pass


class UnitOfWork(ABC):
    customers: CustomerRepository
    payment_methods: PaymentMethodRepository
    products: ProductRepository
    vouchers: VoucherRepository
    voucher_usages: VoucherUsageRepository
    rankings: RankingRepository
    customer_rankings: CustomerRankingRepository
    orders: OrderRepository
    order_statuses: OrderStatusRepository

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class NotificationSink(ABC):
    @abstractmethod
    async def create_order_status_notification(
        self, order_id: str, customer_id: str, status_kind: NotificationKind, order_details: dict
    ) -> bool:
        pass

    @abstractmethod
    async def create_rank_upgrade_notification(self, customer_id: str, tier_name: str, benefits: str) -> bool:
        pass
