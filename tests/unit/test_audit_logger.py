"""Unit tests for AuditLogger."""

from uuid import uuid4

from sqlalchemy import select

from fabrica.core.audit import AuditLogger
from fabrica.core.context import CallerContext
from fabrica.core.invitations import InvitationService
from fabrica.db.models.audit import AuditEvent, AuditEventType, AuditSeverity


async def _events(db) -> list[AuditEvent]:
    result = await db.execute(select(AuditEvent).order_by(AuditEvent.created_at))
    return list(result.scalars().all())


class TestLogEvent:
    async def test_caller_supplies_user_and_correlation(self, db_session):
        ctx = CallerContext(user_id=uuid4())
        tenant_id = uuid4()

        event = await AuditLogger(db_session).log_event(
            AuditEventType.TENANT_CREATED,
            {"slug": "acme"},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="tenant",
            resource_id=tenant_id,
        )

        assert event.event_type == "tenant.created"
        assert event.severity == AuditSeverity.INFO.value
        assert event.user_id == ctx.user_id
        assert event.correlation_id == ctx.request_id
        assert event.resource_id == str(tenant_id)

    async def test_without_caller(self, db_session):
        user_id = uuid4()

        event = await AuditLogger(db_session).log_event(
            AuditEventType.USER_LOGIN, {"email": "a@example.com"}, user_id=user_id
        )

        assert event.user_id == user_id
        assert event.correlation_id is not None
        assert event.tenant_id is None

    async def test_rolled_back_with_the_change(self, db_session):
        audit = AuditLogger(db_session)
        await audit.log_event(AuditEventType.TENANT_UPDATED, {"changes": {}})

        await db_session.rollback()

        assert await _events(db_session) == []


class TestServiceEvents:
    async def test_invitation_events_are_scoped_to_tenant(
        self, db_session, make_user, make_tenant, make_caller
    ):
        owner = await make_user("owner@example.com")
        tenant = await make_tenant(owner=owner)
        tenant_id = tenant.tenant_id
        ctx = make_caller(owner, tenant)

        await InvitationService(db_session).create_invitation(ctx, "new@example.com")

        events = await _events(db_session)
        assert [(e.event_type, e.tenant_id) for e in events] == [
            ("invitation.created", tenant_id)
        ]
        assert events[0].correlation_id == ctx.request_id
