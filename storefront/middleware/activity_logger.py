# storefront/middleware/activity_logger.py
import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("storefront.requests")

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class ActivityLoggerMiddleware(BaseHTTPMiddleware):
    """Logs every mutating request once the endpoint has run."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        if request.method in MUTATING_METHODS:
            # Set by get_current_user; absent for anonymous routes
            username = getattr(request.state, "username", None) or "anonymous"
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s by %s -> %s (%.1f ms)",
                request.method,
                request.url.path,
                username,
                response.status_code,
                elapsed_ms,
            )

        return response
