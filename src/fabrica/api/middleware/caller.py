"""Caller context middleware.

Resolves the gateway identity headers once per request and binds the
resulting CallerContext for the rest of the request.
"""

from typing import Callable
from uuid import UUID, uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fabrica.core.context import (
    SYSTEM_ADMIN_HEADER,
    TENANT_ID_HEADER,
    USER_ID_HEADER,
    caller_context,
    resolve_caller_context,
)

# Paths served without a caller
SKIP_CONTEXT_PATHS = {
    "/health",
    "/health/db",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
}


class CallerContextMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves and binds the CallerContext.

    Malformed identity headers raise BadRequestError, answered as 400 by
    ErrorHandlingMiddleware.

    Sets:
        request.state.caller: The resolved CallerContext
        X-Request-ID response header: For client correlation
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = self._request_id(request)

        if request.url.path in SKIP_CONTEXT_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = str(request_id)
            return response

        ctx = resolve_caller_context(
            user_id_header=request.headers.get(USER_ID_HEADER),
            system_admin_header=request.headers.get(SYSTEM_ADMIN_HEADER),
            tenant_header=request.headers.get(TENANT_ID_HEADER),
            request_id=request_id,
        )
        request.state.caller = ctx

        with caller_context(ctx):
            response = await call_next(request)

        response.headers["X-Request-ID"] = str(request_id)
        return response

    def _request_id(self, request: Request) -> UUID:
        rid = getattr(request.state, "request_id", None)
        if not isinstance(rid, UUID):
            rid = uuid4()
            request.state.request_id = rid
        return rid
