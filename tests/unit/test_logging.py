"""Unit tests for structured logging."""
# ruff: noqa: ARG002  # Fixtures used for setup side effects

import json
import logging
from uuid import uuid4

import pytest
import structlog

from fabrica.core.context import CallerContext, TenantScope, caller_context
from fabrica.core.logging import (
    LogContext,
    add_caller_context,
    add_environment_info,
    drop_color_message_key,
    get_logger,
    setup_logging,
)
from fabrica.core.login import LoginSyncService
from fabrica.db.models.membership import TenantRole


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging so later tests keep the default configuration."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    structlog.reset_defaults()


class TestAddCallerContext:
    """Tests for add_caller_context processor."""

    def test_adds_context_when_available(self):
        tenant_id = uuid4()
        ctx = CallerContext(user_id=uuid4(), tenant_scope=TenantScope.one(tenant_id))

        with caller_context(ctx):
            event = add_caller_context(None, "info", {"event": "test"})

        assert event["user_id"] == str(ctx.user_id)
        assert event["request_id"] == str(ctx.request_id)
        assert event["tenant_scope"] == str(tenant_id)
        assert event["is_system_admin"] is False

    def test_no_context_leaves_event_alone(self):
        assert add_caller_context(None, "info", {"event": "test"}) == {"event": "test"}

    def test_explicit_keys_win(self):
        with caller_context(CallerContext(user_id=uuid4())):
            event = add_caller_context(None, "info", {"event": "test", "user_id": "explicit"})

        assert event["user_id"] == "explicit"


class TestProcessors:
    def test_environment_info(self):
        event = add_environment_info(None, "info", {"event": "test"})
        assert "environment" in event

    def test_drop_color_message(self):
        event = drop_color_message_key(None, "info", {"event": "x", "color_message": "y"})
        assert event == {"event": "x"}


class TestSetupLogging:
    def test_json_output(self, capsys):
        setup_logging(log_level="INFO", json_format=True)

        get_logger("fabrica.test").info("tenant_created", slug="acme")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "tenant_created"
        assert payload["slug"] == "acme"
        assert payload["level"] == "info"
        assert "timestamp" in payload

    def test_level_filters_lower_events(self, capsys):
        setup_logging(log_level="WARNING", json_format=True)

        get_logger("fabrica.test").info("ignored")

        assert "ignored" not in capsys.readouterr().out

    def test_sqlalchemy_kept_quiet(self):
        setup_logging(log_level="DEBUG", json_format=False)

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_stdlib_records_share_renderer(self, capsys):
        setup_logging(log_level="INFO", json_format=True)

        logging.getLogger("fabrica.stdlib").warning("pool exhausted")

        payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert payload["event"] == "pool exhausted"
        assert payload["logger"] == "fabrica.stdlib"

    def test_named_logger_in_output(self, capsys):
        setup_logging(log_level="INFO", json_format=True)

        get_logger("fabrica.api.app").info("application_starting")

        payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert payload["logger"] == "fabrica.api.app"

    async def test_login_sync_after_setup(
        self, db_session, make_user, make_tenant, make_invitation, capsys
    ):
        setup_logging(log_level="INFO", json_format=True)
        owner = await make_user("owner@example.com")
        tenant = await make_tenant(name="T1", owner=owner)
        await make_invitation("a@x.com", tenant, owner.user_id)

        result = await LoginSyncService(db_session).sync("a@x.com")

        assert [(t.tenant_id, t.role) for t in result.tenants] == [
            (tenant.tenant_id, TenantRole.MEMBER)
        ]
        lines = capsys.readouterr().out.splitlines()
        events = [json.loads(line)["event"] for line in lines if line.startswith("{")]
        assert "login_synced" in events


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(operation="reconcile"):
            assert structlog.contextvars.get_contextvars()["operation"] == "reconcile"

        assert "operation" not in structlog.contextvars.get_contextvars()
