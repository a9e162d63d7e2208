"""Observability module for Fabrica.

Usage:
    from fabrica.observability import record_onboarding_transition

    record_onboarding_transition(step=2)
"""

from fabrica.observability.metrics import (
    MetricsConfig,
    MetricsManager,
    get_metrics,
    get_metrics_manager,
    record_authorization_decision,
    record_http_request,
    record_invitation_reconciled,
    record_login_sync,
    record_onboarding_transition,
)

__all__ = [
    "MetricsConfig",
    "MetricsManager",
    "get_metrics",
    "get_metrics_manager",
    "record_authorization_decision",
    "record_http_request",
    "record_invitation_reconciled",
    "record_login_sync",
    "record_onboarding_transition",
]
