import logging
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from order_checkout.domain.exceptions import DomainException, InternalError, NotFoundError

logger = logging.getLogger(__name__)

# Оформление заказа отвечает 400 на любую ошибку данных корзины, включая ссылки на несуществующие сущности
CHECKOUT_PATH_SUFFIX = "/orders/checkout"


def is_checkout(request: Request) -> bool:
    return request.method == "POST" and request.url.path.endswith(CHECKOUT_PATH_SUFFIX)


def error_status(exc: DomainException, checkout: bool = False) -> int:
    if isinstance(exc, InternalError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, NotFoundError) and not checkout:
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


def validation_message(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        # первый элемент loc - источник ("body", "query")
        field = ".".join(str(part) for part in error["loc"][1:]) or "body"
        problems.append(f"{field}: {error['msg']}")
    return "Некорректные данные заказа: " + "; ".join(problems)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        code = error_status(exc, is_checkout(request))
        if code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
            return JSONResponse(status_code=code, content={"message": "Внутренняя ошибка сервиса"})
        logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")
        return JSONResponse(status_code=code, content={"message": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if not is_checkout(request):
            return await request_validation_exception_handler(request, exc)
        message = validation_message(exc)
        logger.info(f"{request.method} {request.url.path} -> 400: {message}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Внутренняя ошибка сервиса"}
        )
