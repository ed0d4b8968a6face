from decimal import Decimal


class DomainException(Exception):
    pass


class OrderValidationError(DomainException):
    pass


class NotFoundError(DomainException):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class PaymentMethodNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class OrderStatusNotFoundError(NotFoundError):
    pass


class ProductUnavailableError(DomainException):
    pass


class InsufficientStockError(DomainException):
    def __init__(self, product_id: str, available: int, required: int):
        self.product_id = product_id
        self.available = available
        self.required = required
        super().__init__(
            f"Недостаточно товара {product_id}. Доступно: {available}, требуется: {required}"
        )


class VoucherError(DomainException):
    pass


class VoucherNotFoundError(VoucherError, NotFoundError):
    pass


class VoucherInactiveError(VoucherError):
    pass


class VoucherExpiredError(VoucherError):
    pass


class VoucherUsageLimitError(VoucherError):
    pass


class MinimumOrderError(VoucherError):
    def __init__(self, min_order_value: Decimal, subtotal: Decimal):
        self.min_order_value = min_order_value
        self.subtotal = subtotal
        super().__init__(
            f"Минимальная сумма заказа для ваучера: {min_order_value}, сумма заказа: {subtotal}"
        )


class RankingMismatchError(VoucherError):
    pass


class InvalidStateError(DomainException):
    pass


class InternalError(DomainException):
    pass


class NotificationServiceError(DomainException):
    pass
