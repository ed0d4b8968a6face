from fastapi import APIRouter, BackgroundTasks, Depends, status

from order_checkout.config import settings
from order_checkout.database import get_session_factory
from order_checkout.presentation.schemas import (
    CancelOrderRequest, CancellationResponse, CheckoutRequest, CheckoutResponse,
    ErrorResponse, OrderDetailsResponse, OrderStatusResponse, RankingResponse,
    RecomputeSummaryResponse, StatusUpdateRequest, ValidateVoucherRequest, VoucherQuoteResponse
)
from order_checkout.application.cancel_order import CancelOrderUseCase
from order_checkout.application.checkout import CartLineDTO, CheckoutDTO, CheckoutUseCase
from order_checkout.application.get_order import GetOrderUseCase
from order_checkout.application.interfaces import NotificationSink
from order_checkout.application.notifications import NotificationDispatcher
from order_checkout.application.recompute_ranking import (
    RecomputeAllRankingsUseCase, RecomputeRankingUseCase
)
from order_checkout.application.transition_status import TransitionOrderStatusUseCase
from order_checkout.application.validate_voucher import ValidateVoucherUseCase
from order_checkout.infrastructure.http_clients import HTTPNotificationsClient
from order_checkout.infrastructure.kafka_producer import KafkaNotificationPublisher
from order_checkout.infrastructure.unit_of_work import UnitOfWork

router = APIRouter()

kafka_publisher = KafkaNotificationPublisher(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_NOTIFICATIONS_TOPIC)

ERRORS = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
CHECKOUT_ERRORS = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


def get_notification_sink() -> NotificationSink:
    if settings.NOTIFICATIONS_TRANSPORT == "kafka":
        return kafka_publisher
    return HTTPNotificationsClient(
        settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN, max_retries=settings.NOTIFICATIONS_MAX_RETRIES
    )


def get_notifications(
    background_tasks: BackgroundTasks,
    sink: NotificationSink = Depends(get_notification_sink)
) -> NotificationDispatcher:
    return NotificationDispatcher(sink, schedule=background_tasks.add_task)


def get_unit_of_work(session_factory=Depends(get_session_factory)) -> UnitOfWork:
    return UnitOfWork(session_factory)


# Фабрики для создания use cases
def get_checkout_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationDispatcher = Depends(get_notifications)
):
    return CheckoutUseCase(uow, notifications, settings.TAX_RATE)


def get_transition_status_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationDispatcher = Depends(get_notifications)
):
    return TransitionOrderStatusUseCase(uow, notifications)


def get_cancel_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationDispatcher = Depends(get_notifications)
):
    return CancelOrderUseCase(uow, notifications)


def get_recompute_ranking_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationDispatcher = Depends(get_notifications)
):
    return RecomputeRankingUseCase(uow, notifications)


def get_recompute_all_rankings_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifications: NotificationDispatcher = Depends(get_notifications)
):
    return RecomputeAllRankingsUseCase(uow, notifications)


@router.post(
    "/orders/checkout",
    response_model=CheckoutResponse,
    responses=CHECKOUT_ERRORS,
    status_code=status.HTTP_201_CREATED
)
async def checkout(
    request: CheckoutRequest,
    use_case: CheckoutUseCase = Depends(get_checkout_use_case)
):
    """Оформить заказ из корзины"""
    dto = CheckoutDTO(
        customer_id=request.customer_id,
        customer_name=request.customer_name,
        phone_number=request.phone_number,
        email=request.email,
        shipping_address=request.shipping_address,
        payment_method_id=request.payment_method_id,
        order_note=request.order_note,
        items=[
            CartLineDTO(product_ref=item.product_ref, quantity=item.quantity, unit_price=item.unit_price)
            for item in request.items
        ],
        voucher_code=request.voucher_code,
        idempotency_key=request.idempotency_key
    )
    result = await use_case(dto)
    return CheckoutResponse.from_domain(result)


@router.post(
    "/orders/validate-voucher",
    response_model=VoucherQuoteResponse,
    responses=ERRORS
)
async def validate_voucher(
    request: ValidateVoucherRequest,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Проверить ваучер и рассчитать скидку без оформления заказа"""
    quote = await ValidateVoucherUseCase(uow)(request.voucher_code, request.subtotal, request.customer_id)
    return VoucherQuoteResponse.from_domain(quote)


@router.get(
    "/orders/{order_id}",
    response_model=OrderDetailsResponse,
    responses=ERRORS
)
async def get_order(order_id: str, uow: UnitOfWork = Depends(get_unit_of_work)):
    """Получить заказ по ID"""
    details = await GetOrderUseCase(uow)(order_id)
    return OrderDetailsResponse.from_domain(details)


@router.put(
    "/orders/{order_id}/status",
    response_model=OrderStatusResponse,
    responses=ERRORS
)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    use_case: TransitionOrderStatusUseCase = Depends(get_transition_status_use_case)
):
    """Сменить статус заказа"""
    order_status = await use_case(order_id, request.of_state, force=request.force)
    return OrderStatusResponse.from_domain(order_status)


@router.post(
    "/orders/{order_id}/cancel",
    response_model=CancellationResponse,
    responses=ERRORS
)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case)
):
    """Отменить заказ с возвратом остатков и ваучера"""
    result = await use_case(order_id, request.reason)
    return CancellationResponse.from_domain(result)


@router.post(
    "/customers/{customer_id}/ranking/recompute",
    response_model=RankingResponse,
    responses=ERRORS
)
async def recompute_customer_ranking(
    customer_id: str,
    use_case: RecomputeRankingUseCase = Depends(get_recompute_ranking_use_case)
):
    """Пересчитать ранг покупателя"""
    change = await use_case(customer_id)
    return RankingResponse.from_domain(change)


@router.post("/rankings/recompute", response_model=RecomputeSummaryResponse)
async def recompute_all_rankings(
    use_case: RecomputeAllRankingsUseCase = Depends(get_recompute_all_rankings_use_case)
):
    """Пересчитать ранги всех покупателей"""
    summary = await use_case()
    return RecomputeSummaryResponse(**summary.model_dump())
