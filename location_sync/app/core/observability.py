"""
Logging setup and request logging middleware.

Every response carries an X-Correlation-ID header (echoed from the
request when the device sends one) so an upload can be traced across
retries.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("location_sync.http")

CORRELATION_HEADER = "X-Correlation-ID"
QUIET_PATHS = {"/health"}


def configure_logging(level: str = "INFO") -> None:
    """Configure the root handler for the location_sync logger namespace."""
    logging.basicConfig(
        level=logging.getLevelName(level.upper()),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("location_sync").setLevel(level.upper())


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path in QUIET_PATHS and response.status_code < 400:
            return response

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level, "%s %s -> %s (%.2f ms)",
            request.method, request.url.path, response.status_code, duration_ms,
            extra=log_data,
        )

        return response
