"""
Request logging middleware.
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shopcart.core.config import settings
from shopcart.core.logging import get_logger, hash_identifier

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency. Identifiers are hashed, never logged raw."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        guest_id = request.cookies.get(settings.GUEST_COOKIE_NAME)
        hashed_guest_id = hash_identifier(guest_id) if guest_id else None

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Error: {request.method} {request.url.path}",
                extra={"hashed_guest_id": hashed_guest_id},
                exc_info=True,
            )
            raise

        latency_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {latency_ms:.2f}ms",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
                "hashed_guest_id": hashed_guest_id,
            },
        )
        response.headers["X-Response-Time-Ms"] = f"{latency_ms:.2f}"
        return response
