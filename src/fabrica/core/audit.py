"""Audit logging service for membership accountability."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.context import CallerContext
from fabrica.db.models.audit import AuditEvent, AuditEventType, AuditSeverity


class AuditLogger:
    """Service for writing audit events.

    Events are added to the caller's session and flushed, so they commit
    or roll back together with the change they describe.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_event(
        self,
        event_type: AuditEventType | str,
        event_data: dict[str, Any],
        ctx: CallerContext | None = None,
        severity: AuditSeverity | str = AuditSeverity.INFO,
        tenant_id: UUID | None = None,
        user_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: UUID | str | None = None,
        correlation_id: UUID | None = None,
    ) -> AuditEvent:
        """Create an immutable audit log entry.

        Args:
            event_type: Type of event (tenant.created, invitation.accepted, ...)
            event_data: Structured event details (must be JSON serializable)
            ctx: Caller context; supplies user and correlation ids when given
            severity: Event severity level (default: INFO)
            tenant_id: Tenant the event belongs to
            user_id: Acting user (defaults to the caller)
            resource_type: Kind of record affected
            resource_id: Id of the record affected
            correlation_id: Request correlation id (defaults to the caller's request id)

        Returns:
            Created AuditEvent instance

        Example:
            >>> await AuditLogger(db).log_event(
            ...     AuditEventType.TENANT_CREATED,
            ...     {"slug": tenant.slug},
            ...     ctx=ctx,
            ...     tenant_id=tenant.tenant_id,
            ... )
        """
        if isinstance(event_type, AuditEventType):
            event_type = event_type.value
        if isinstance(severity, AuditSeverity):
            severity = severity.value

        if correlation_id is None:
            correlation_id = ctx.request_id if ctx is not None else uuid4()
        if user_id is None and ctx is not None:
            user_id = ctx.user_id

        event = AuditEvent(
            event_type=event_type,
            severity=severity,
            tenant_id=tenant_id,
            user_id=user_id,
            correlation_id=correlation_id,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            event_data=event_data,
        )

        self.db.add(event)
        await self.db.flush()

        return event
