# src/core/logging_middleware.py

from time import monotonic
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("http")


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s failed after %.3fs",
                request.method,
                request.url.path,
                monotonic() - start,
            )
            raise
        latency = monotonic() - start
        logger.info(
            "%s %s -> %s (%.3fs)",
            request.method,
            request.url.path,
            response.status_code,
            latency,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency": latency,
                "client_ip": request.client.host if request.client else "",
                "content_length": request.headers.get("content-length", ""),
            },
        )
        return response
