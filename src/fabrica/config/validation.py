"""Configuration validation for startup checks.

Validates that required configuration is present and sane before the
application starts accepting requests.

Usage:
    from fabrica.config.validation import validate_or_raise

    # During startup
    validate_or_raise(settings)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from fabrica.config.settings import Settings, get_settings
from fabrica.utils.exceptions import ConfigurationError

logger = structlog.get_logger("fabrica.config")


class ValidationSeverity(str, Enum):
    """Severity of configuration validation issues."""

    ERROR = "error"  # app cannot start
    WARNING = "warning"


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""

    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == ValidationSeverity.ERROR else "WARNING"
        result = f"[{prefix}] {self.field}: {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Validate application configuration.

    Args:
        settings: Settings to validate (default: global settings)

    Returns:
        List of validation results (empty if all checks pass)
    """
    if settings is None:
        settings = get_settings()

    results: list[ValidationResult] = []
    results.extend(_validate_database(settings))
    results.extend(_validate_security(settings))
    results.extend(_validate_limits(settings))
    results.extend(_validate_environment(settings))
    return results


def validate_or_raise(settings: Settings | None = None) -> None:
    """Validate configuration and raise if errors found.

    Warnings are logged and do not stop startup.

    Raises:
        ConfigurationError: If any validation errors are found
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]

    if errors:
        error_messages = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{error_messages}")

    for warning in results:
        logger.warning("configuration_warning", field=warning.field, detail=warning.message)


def _error(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.ERROR, message, suggestion)


def _warning(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.WARNING, message, suggestion)


def _validate_database(settings: Settings) -> list[ValidationResult]:
    url = settings.DATABASE_URL
    if not url:
        return [_error("DATABASE_URL", "Database URL is not configured", "Set DATABASE_URL")]
    if not url.startswith(("postgresql", "sqlite")):
        return [
            _warning(
                "DATABASE_URL",
                f"Unexpected database type in URL: {url[:20]}...",
                "Fabrica is designed for PostgreSQL or SQLite",
            )
        ]
    if settings.ENVIRONMENT == "production" and settings.is_sqlite:
        return [
            _warning(
                "DATABASE_URL",
                "SQLite is not suitable for concurrent production traffic",
                "Use a postgresql+asyncpg:// URL",
            )
        ]
    return []


def _validate_security(settings: Settings) -> list[ValidationResult]:
    secret = settings.API_SECRET_KEY
    if secret is None:
        if settings.ENVIRONMENT != "production":
            return []
        return [
            _error(
                "API_SECRET_KEY",
                "Gateway secret is required in production",
                "Set API_SECRET_KEY to the token presented by the API gateway",
            )
        ]
    if len(secret.get_secret_value()) < 32:
        return [
            _warning(
                "API_SECRET_KEY",
                "Gateway secret is short and may be weak",
                "Use at least 32 characters",
            )
        ]
    return []


def _validate_limits(settings: Settings) -> list[ValidationResult]:
    return [
        _error(field, f"{field} must be positive, got {getattr(settings, field)}")
        for field in ("INVITATION_EXPIRY_DAYS", "MAX_ONBOARDING_INVITATIONS", "SLUG_MAX_ATTEMPTS")
        if getattr(settings, field) < 1
    ]


def _validate_environment(settings: Settings) -> list[ValidationResult]:
    if settings.ENVIRONMENT != "production":
        return []

    results: list[ValidationResult] = []
    if settings.DEBUG:
        results.append(
            _error("DEBUG", "Debug mode must be disabled in production", "Set DEBUG=false")
        )
    if settings.log_level == "DEBUG":
        results.append(
            _warning(
                "log_level",
                "DEBUG log level in production may expose caller emails",
                "Use INFO or WARNING for production",
            )
        )
    return results


def get_configuration_summary(settings: Settings | None = None) -> dict[str, Any]:
    """Get a summary of current configuration (safe for logging)."""
    if settings is None:
        settings = get_settings()

    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "log_level": settings.log_level,
        "database_backend": settings.DATABASE_URL.split(":", 1)[0],
        "database_pool_size": settings.DATABASE_POOL_SIZE,
        "cors_origins_count": len(settings.CORS_ORIGINS),
        "api_key_configured": settings.API_SECRET_KEY is not None,
        "invitation_expiry_days": settings.INVITATION_EXPIRY_DAYS,
    }
