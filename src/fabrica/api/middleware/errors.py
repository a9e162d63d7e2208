"""Error handling middleware for mapping exceptions to HTTP responses."""

from datetime import UTC, datetime
from typing import Any, Callable
from uuid import UUID, uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fabrica.api.schemas.errors import APIError, ErrorCode
from fabrica.core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    DuplicateInvitationError,
    DuplicateMembershipError,
    ForbiddenError,
    InvalidInvitationStateError,
    InvalidPlanError,
    NotFoundError,
    PaymentMethodRequiredError,
    PreconditionFailedError,
    SlugConflictError,
    TenantInactiveError,
    TenantNotFoundError,
)

logger = structlog.get_logger()

ErrorMapping = tuple[int, str, str, dict[str, Any] | None]


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns standardized error responses.

    Maps domain exceptions to HTTP status codes and formats all errors
    using the APIError schema. It also assigns the request id so that
    error bodies produced before the caller context exists still carry
    one.

    Sets:
        request.state.request_id: Generated request id (UUID4)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and handle any exceptions."""
        if not hasattr(request.state, "request_id"):
            request.state.request_id = uuid4()
        try:
            return await call_next(request)
        except Exception as exc:
            return error_response(request, exc)


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """Convert an exception to a JSON error response."""
    request_id = get_request_id(request)
    status_code, error_code, message, details = map_exception(exc)

    if status_code >= 500:
        logger.exception(
            "unhandled_exception",
            request_id=request_id,
            path=request.url.path,
            error_type=type(exc).__name__,
        )

    error = APIError(
        error_code=error_code,
        message=message,
        details=details,
        request_id=request_id,
        timestamp=datetime.now(UTC),
    )

    headers = {"X-Request-ID": request_id}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report body and parameter validation failures as 400s."""
    return error_response(request, exc)


def get_request_id(request: Request) -> str:
    """Extract request ID from state or generate placeholder."""
    if hasattr(request.state, "request_id"):
        rid = request.state.request_id
        return str(rid) if isinstance(rid, UUID) else rid
    return "unknown"


def map_exception(exc: Exception) -> ErrorMapping:
    """Map exception to (status_code, error_code, message, details)."""
    if isinstance(exc, AuthenticationError):
        return (401, ErrorCode.UNAUTHORIZED.value, str(exc), None)

    if isinstance(exc, RequestValidationError):
        return (
            400,
            ErrorCode.VALIDATION_ERROR.value,
            "Request validation failed",
            {"errors": _validation_errors(exc)},
        )

    if isinstance(exc, BadRequestError):
        details = {"field": exc.field} if exc.field else None
        return (400, ErrorCode.BAD_REQUEST.value, str(exc), details)

    # Not found
    if isinstance(exc, TenantNotFoundError):
        return (
            404,
            ErrorCode.TENANT_NOT_FOUND.value,
            str(exc),
            {"tenant_id": str(exc.tenant_id)},
        )

    if isinstance(exc, NotFoundError):
        return (
            404,
            ErrorCode.NOT_FOUND.value,
            str(exc),
            {"resource": exc.resource, "identifier": str(exc.identifier)},
        )

    # Conflict
    if isinstance(exc, SlugConflictError):
        return (409, ErrorCode.SLUG_CONFLICT.value, str(exc), {"slug": exc.slug})

    if isinstance(exc, DuplicateInvitationError):
        return (
            409,
            ErrorCode.CONFLICT.value,
            str(exc),
            {"email": exc.email, "tenant_id": str(exc.tenant_id)},
        )

    if isinstance(exc, DuplicateMembershipError):
        return (409, ErrorCode.CONFLICT.value, str(exc), {"tenant_id": str(exc.tenant_id)})

    if isinstance(exc, ConflictError):
        return (409, ErrorCode.CONFLICT.value, str(exc), None)

    # Forbidden
    if isinstance(exc, TenantInactiveError):
        return (
            403,
            ErrorCode.TENANT_INACTIVE.value,
            str(exc),
            {"tenant_id": str(exc.tenant_id)},
        )

    if isinstance(exc, ForbiddenError):
        details = {"action": exc.action} if exc.action else None
        if details is not None and exc.tenant_id is not None:
            details["tenant_id"] = str(exc.tenant_id)
        return (403, ErrorCode.FORBIDDEN.value, str(exc), details)

    # Precondition failed
    if isinstance(exc, PaymentMethodRequiredError):
        return (
            412,
            ErrorCode.PAYMENT_METHOD_REQUIRED.value,
            str(exc),
            {"tenant_id": str(exc.tenant_id)},
        )

    if isinstance(exc, InvalidPlanError):
        return (412, ErrorCode.INVALID_PLAN.value, str(exc), {"plan_id": str(exc.plan_id)})

    if isinstance(exc, InvalidInvitationStateError):
        return (
            412,
            ErrorCode.PRECONDITION_FAILED.value,
            str(exc),
            {"invitation_id": str(exc.invitation_id), "status": exc.status},
        )

    if isinstance(exc, PreconditionFailedError):
        return (412, ErrorCode.PRECONDITION_FAILED.value, str(exc), None)

    # Store failures and programming errors are not exposed
    return (500, ErrorCode.INTERNAL_ERROR.value, "An internal error occurred", None)


def _validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
