"""Prometheus metrics for Fabrica observability.

This module provides Prometheus metrics for monitoring:
- Login syncs and invitation reconciliation outcomes
- Onboarding step transitions
- Authorization decisions
- HTTP request volume and latency
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

__all__ = [
    "MetricsConfig",
    "MetricsManager",
    "LOGIN_SYNC_COUNT",
    "INVITATIONS_RECONCILED",
    "ONBOARDING_TRANSITIONS",
    "AUTHORIZATION_DECISIONS",
    "HTTP_REQUEST_DURATION",
    "HTTP_REQUEST_COUNT",
    "record_login_sync",
    "record_invitation_reconciled",
    "record_onboarding_transition",
    "record_authorization_decision",
    "record_http_request",
    "get_metrics",
    "get_metrics_manager",
]


@dataclass
class MetricsConfig:
    """Configuration for Prometheus metrics.

    Attributes:
        enabled: Whether metrics collection is enabled.
        prefix: Prefix for all metric names.
        histogram_buckets: Histogram buckets for latency metrics.
    """

    enabled: bool = True
    prefix: str = "fabrica"
    histogram_buckets: tuple[float, ...] = (
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    )

    @classmethod
    def from_env(cls) -> MetricsConfig:
        """Create configuration from environment variables."""
        return cls(
            enabled=os.getenv("METRICS_ENABLED", "true").lower() == "true",
            prefix=os.getenv("METRICS_PREFIX", "fabrica"),
        )


_config = MetricsConfig()

# ============================================================================
# Membership Metrics
# ============================================================================

LOGIN_SYNC_COUNT = Counter(
    f"{_config.prefix}_login_syncs_total",
    "Total login syncs processed",
    ["new_user"],
)

INVITATIONS_RECONCILED = Counter(
    f"{_config.prefix}_invitations_reconciled_total",
    "Invitations processed at login, by outcome",
    ["outcome"],
)

ONBOARDING_TRANSITIONS = Counter(
    f"{_config.prefix}_onboarding_transitions_total",
    "Committed onboarding steps",
    ["step"],
)

AUTHORIZATION_DECISIONS = Counter(
    f"{_config.prefix}_authorization_decisions_total",
    "can_manage decisions, by result",
    ["decision"],
)

# ============================================================================
# HTTP/API Metrics
# ============================================================================

HTTP_REQUEST_DURATION = Histogram(
    f"{_config.prefix}_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status_code"],
    buckets=_config.histogram_buckets,
)

HTTP_REQUEST_COUNT = Counter(
    f"{_config.prefix}_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

SERVICE_INFO = Info(
    f"{_config.prefix}_service",
    "Service information",
)


class MetricsManager:
    """Manages Prometheus metrics configuration and export."""

    def __init__(
        self,
        config: MetricsConfig | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config or MetricsConfig()
        self.registry = registry or REGISTRY
        self._initialized = False

    def initialize(
        self,
        service_name: str = "fabrica-admin",
        service_version: str = "0.1.0",
        environment: str = "development",
    ) -> None:
        """Publish service information once per process."""
        if self._initialized or not self.config.enabled:
            return

        SERVICE_INFO.info(
            {
                "name": service_name,
                "version": service_version,
                "environment": environment,
            }
        )
        self._initialized = True

    def get_metrics(self) -> bytes:
        """Generate metrics output in Prometheus text format."""
        return generate_latest(self.registry)


_metrics_manager: MetricsManager | None = None


def get_metrics_manager() -> MetricsManager:
    """Get the global metrics manager instance."""
    global _metrics_manager
    if _metrics_manager is None:
        _metrics_manager = MetricsManager(MetricsConfig.from_env())
    return _metrics_manager


def get_metrics() -> bytes:
    """Get current metrics in Prometheus format."""
    return get_metrics_manager().get_metrics()


# ============================================================================
# Convenience Functions for Recording Metrics
# ============================================================================


def record_login_sync(is_new_user: bool) -> None:
    LOGIN_SYNC_COUNT.labels(new_user=str(is_new_user).lower()).inc()


def record_invitation_reconciled(outcome: str) -> None:
    """Record one invitation outcome: accepted, already_member or failed."""
    INVITATIONS_RECONCILED.labels(outcome=outcome).inc()


def record_onboarding_transition(step: int) -> None:
    ONBOARDING_TRANSITIONS.labels(step=str(step)).inc()


def record_authorization_decision(allowed: bool) -> None:
    AUTHORIZATION_DECISIONS.labels(decision="allow" if allowed else "deny").inc()


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics.

    Args:
        method: HTTP method.
        endpoint: Normalized request path.
        status_code: Response status code.
        duration_seconds: Request duration.
    """
    HTTP_REQUEST_DURATION.labels(
        method=method, endpoint=endpoint, status_code=str(status_code)
    ).observe(duration_seconds)
    HTTP_REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
