"""
Error taxonomy for the cart, identity and checkout services.

Services raise these; the handlers registered in ``register_exception_handlers``
turn them into ``{"success": false, "error": <kind>, "message": <text>}`` bodies.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopcart.core.logging import get_logger

logger = get_logger(__name__)


class ShopError(Exception):
    """Base exception for shop operations"""
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailedError(ShopError):
    """Raised when input is malformed or missing"""
    kind = "validation_error"
    status_code = 400


class NotAuthorizedError(ShopError):
    """Raised when the session credential is missing, expired or invalid"""
    kind = "not_authorized"
    status_code = 401

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFoundError(ShopError):
    """Raised when the target does not exist or is not owned by the caller"""
    kind = "not_found"
    status_code = 404


class EmptyCartError(ShopError):
    kind = "empty_cart"
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class EmailTakenError(ShopError):
    kind = "email_taken"
    status_code = 400

    def __init__(self, message: str = "User already exists with this email"):
        super().__init__(message)


class CheckoutConflictError(ShopError):
    """Raised when the cart keeps changing underneath a checkout"""
    kind = "checkout_conflict"
    status_code = 409

    def __init__(self, message: str = "Cart changed during checkout, please retry"):
        super().__init__(message)


class UpstreamError(ShopError):
    """Raised when the catalog or another dependency is unavailable"""
    kind = "upstream_error"
    status_code = 502


def error_body(kind: str, message: str) -> dict:
    return {"success": False, "error": kind, "message": message}


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Validation failed")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(status_code=400, content=error_body(ValidationFailedError.kind, message))


HTTP_ERROR_KINDS = {
    400: ValidationFailedError.kind,
    401: NotAuthorizedError.kind,
    404: NotFoundError.kind,
    405: "method_not_allowed",
}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Errors raised by the framework itself, e.g. unknown routes
    kind = HTTP_ERROR_KINDS.get(exc.status_code, "internal_error" if exc.status_code >= 500 else "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Storage details stay in the log
    logger.exception(f"Storage failure on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_body("internal_error", "Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
