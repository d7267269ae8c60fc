import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.errors import (
    DomainError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    InsufficientFundsError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InsufficientFundsError, status.HTTP_402_PAYMENT_REQUIRED),
)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    code = status.HTTP_400_BAD_REQUEST
    for error_type, error_status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            code = error_status
            break
    body = {"message": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=code, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Something went wrong, please try again later"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
