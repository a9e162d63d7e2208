"""API middleware components."""

from .auth import GatewayAuthMiddleware
from .caller import CallerContextMiddleware
from .errors import ErrorHandlingMiddleware
from .logging import RequestLoggingMiddleware
from .observability import ObservabilityMiddleware

__all__ = [
    "CallerContextMiddleware",
    "ErrorHandlingMiddleware",
    "GatewayAuthMiddleware",
    "ObservabilityMiddleware",
    "RequestLoggingMiddleware",
]
