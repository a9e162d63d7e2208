"""Unit tests for Prometheus metrics module."""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter

from fabrica.observability.metrics import (
    MetricsConfig,
    MetricsManager,
    get_metrics,
    record_authorization_decision,
    record_http_request,
    record_invitation_reconciled,
    record_login_sync,
    record_onboarding_transition,
)


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsConfig:
    def test_defaults(self):
        config = MetricsConfig()
        assert config.enabled is True
        assert config.prefix == "fabrica"
        assert config.histogram_buckets[0] < config.histogram_buckets[-1]

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("METRICS_ENABLED", "false")
        monkeypatch.setenv("METRICS_PREFIX", "custom")

        config = MetricsConfig.from_env()

        assert config.enabled is False
        assert config.prefix == "custom"


class TestMetricsManager:
    def test_exports_own_registry(self):
        registry = CollectorRegistry()
        Counter("sample_total", "Sample", registry=registry).inc()

        output = MetricsManager(registry=registry).get_metrics()

        assert b"sample_total 1.0" in output

    def test_initialize_is_idempotent(self):
        manager = MetricsManager(MetricsConfig(enabled=True))
        manager.initialize(environment="test")
        manager.initialize(environment="other")

        assert manager._initialized is True

    def test_disabled_manager_does_not_initialize(self):
        manager = MetricsManager(MetricsConfig(enabled=False))
        manager.initialize()

        assert manager._initialized is False


class TestRecorders:
    def test_login_sync(self):
        before = _sample("fabrica_login_syncs_total", {"new_user": "true"})
        record_login_sync(True)
        assert _sample("fabrica_login_syncs_total", {"new_user": "true"}) == before + 1

    def test_invitation_outcomes(self):
        labels = {"outcome": "failed"}
        before = _sample("fabrica_invitations_reconciled_total", labels)
        record_invitation_reconciled("failed")
        assert _sample("fabrica_invitations_reconciled_total", labels) == before + 1

    def test_onboarding_transition(self):
        labels = {"step": "3"}
        before = _sample("fabrica_onboarding_transitions_total", labels)
        record_onboarding_transition(3)
        assert _sample("fabrica_onboarding_transitions_total", labels) == before + 1

    def test_authorization_decision(self):
        before = _sample("fabrica_authorization_decisions_total", {"decision": "deny"})
        record_authorization_decision(False)
        assert _sample("fabrica_authorization_decisions_total", {"decision": "deny"}) == before + 1

    def test_http_request(self):
        labels = {"method": "GET", "endpoint": "/v1/plans", "status_code": "200"}
        before = _sample("fabrica_http_requests_total", labels)

        record_http_request("GET", "/v1/plans", 200, 0.01)

        assert _sample("fabrica_http_requests_total", labels) == before + 1
        assert _sample("fabrica_http_request_duration_seconds_count", labels) >= 1

    def test_get_metrics_contains_recorded_series(self):
        record_login_sync(False)
        assert b"fabrica_login_syncs_total" in get_metrics()
