"""Observability middleware for HTTP metrics."""

import re
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fabrica.observability.metrics import record_http_request

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")
_SLUG_ROUTE = re.compile(r"^(/v1/tenants/slug/)[^/]+$")


def normalize_path(path: str) -> str:
    """Replace ids and slugs in a path with placeholders.

    Keeps the endpoint label of the request metrics low-cardinality.
    """
    path = _UUID_PATTERN.sub("{id}", path)
    path = _NUMERIC_SEGMENT.sub("/{id}", path)
    return _SLUG_ROUTE.sub(r"\1{slug}", path)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Middleware that records Prometheus metrics for HTTP requests.

    Health and metrics endpoints are excluded to avoid noise.
    """

    EXCLUDED_PATHS = {"/health", "/health/db", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        endpoint = normalize_path(path)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            record_http_request(request.method, endpoint, 500, time.perf_counter() - start_time)
            raise

        record_http_request(
            request.method, endpoint, response.status_code, time.perf_counter() - start_time
        )
        return response
