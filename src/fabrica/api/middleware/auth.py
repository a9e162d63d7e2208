"""Gateway token check.

The upstream API gateway authenticates end users and forwards requests
with a shared Bearer secret. Requests without it never reach the
routers.
"""

import re
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from fabrica.config.settings import Settings, get_settings
from fabrica.core.exceptions import AuthenticationError

# Paths that don't require authentication
SKIP_AUTH_PATHS = {
    "/health",
    "/health/db",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
}

SKIP_AUTH_PREFIXES = ("/docs", "/redoc")

_BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


class GatewayAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the gateway's Bearer token.

    Raises AuthenticationError, which ErrorHandlingMiddleware turns into
    a 401 response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._should_skip_auth(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            raise AuthenticationError("Missing Authorization header")

        match = _BEARER_PATTERN.match(auth_header)
        if not match:
            raise AuthenticationError("Invalid Authorization header format")

        if not self._validate_token(match.group(1).strip(), self._settings(request)):
            raise AuthenticationError("Invalid gateway token")

        return await call_next(request)

    def _should_skip_auth(self, path: str) -> bool:
        return path in SKIP_AUTH_PATHS or path.startswith(SKIP_AUTH_PREFIXES)

    def _settings(self, request: Request) -> Settings:
        if hasattr(request.app.state, "settings"):
            return request.app.state.settings
        return get_settings()

    def _validate_token(self, token: str, settings: Settings) -> bool:
        """Compare the token with the configured gateway secret.

        Without a configured secret any non-empty token is accepted in
        debug mode and every token is rejected otherwise.
        """
        if settings.API_SECRET_KEY is None:
            return bool(token) and settings.DEBUG
        return token == settings.API_SECRET_KEY.get_secret_value()
