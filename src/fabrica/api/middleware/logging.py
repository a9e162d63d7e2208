"""Request logging middleware."""

import time
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger("fabrica.api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every HTTP request with its outcome.

    Audit events for state changes are written by the services; this
    only records request metadata.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000
        self._log_request(request, response, duration_ms)
        return response

    def _get_client_ip(self, request: Request) -> str | None:
        """Extract client IP from request, considering proxy headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return None

    def _log_request(self, request: Request, response: Response, duration_ms: float) -> None:
        caller = getattr(request.state, "caller", None)
        log_data = {
            "request_id": str(getattr(request.state, "request_id", "unknown")),
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": self._get_client_ip(request),
            "user_agent": request.headers.get("User-Agent"),
        }
        if caller is not None:
            log_data["user_id"] = str(caller.user_id) if caller.user_id else None
            log_data["tenant_scope"] = str(caller.tenant_scope)

        status_code = response.status_code
        if status_code >= 500:
            logger.error("http_request", **log_data)
        elif status_code >= 400:
            logger.warning("http_request", **log_data)
        else:
            logger.info("http_request", **log_data)
