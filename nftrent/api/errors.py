import logging

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nftrent.services.exceptions import (
    ExternalFailure,
    MarketplaceError,
    NotAuthorized,
    NotFound,
    RateLimited,
    StateConflict,
    ValidationError,
)

logger = logging.getLogger(__name__)

# most specific family first
STATUS_BY_FAMILY: list[tuple[type[MarketplaceError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (StateConflict, status.HTTP_409_CONFLICT),
    (NotAuthorized, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ExternalFailure, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: MarketplaceError) -> int:
    for family, status_code in STATUS_BY_FAMILY:
        if isinstance(exc, family):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def marketplace_exception_handler(
    request: Request, exc: MarketplaceError
) -> JSONResponse:
    """Turns a rejected marketplace operation into a JSON error response."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "%s %s rejected with %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc.message,
    )

    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["field"] = exc.field

    return JSONResponse(status_code=status_code, content=content)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # malformed bodies never reach a service, record them here
    security = getattr(request.app.state, "security", None)
    if security is not None:
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()))
            security.event_log.log_validation_error(
                field or "body", error.get("msg", "Invalid value"), error.get("input")
            )

    return await request_validation_exception_handler(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
