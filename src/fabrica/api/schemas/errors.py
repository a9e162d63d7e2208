"""Error response schemas for API."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"

    # Tenant errors
    TENANT_NOT_FOUND = "tenant_not_found"
    TENANT_INACTIVE = "tenant_inactive"

    # Request errors
    BAD_REQUEST = "bad_request"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SLUG_CONFLICT = "slug_conflict"
    PRECONDITION_FAILED = "precondition_failed"
    PAYMENT_METHOD_REQUIRED = "payment_method_required"
    INVALID_PLAN = "invalid_plan"

    # System errors
    INTERNAL_ERROR = "internal_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


class APIError(BaseModel):
    """Standardized API error response format.

    All API errors return this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional error context"
    )
    request_id: str = Field(..., description="Request ID for tracing")
    timestamp: datetime = Field(..., description="When the error occurred")

    model_config = {"json_schema_extra": {"example": {
        "error_code": "slug_conflict",
        "message": "A tenant with slug 'acme' already exists",
        "details": {"slug": "acme"},
        "request_id": "7d2c1a9e-5b4f-4f8e-9a51-0c3b6f1e2d47",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}
