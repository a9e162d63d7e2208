"""Caller context for per-request identity and tenant scoping.

Every request carries three caller-asserted facts from the upstream
gateway: the caller's user id, whether they are a system administrator,
and the tenant they have selected. These are resolved exactly once at the
HTTP boundary into an immutable CallerContext which is then passed
explicitly into services. The context is also bound to a ContextVar so
log records can be correlated with the caller.

Usage:
    from fabrica.core.context import caller_context, resolve_caller_context

    ctx = resolve_caller_context(
        user_id_header="7f1c...",
        system_admin_header="false",
        tenant_header="00000000-0000-0000-0000-000000000000",
    )
    assert ctx.tenant_scope.is_all

    with caller_context(ctx):
        await service.do_work(ctx)
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Self
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from fabrica.core.exceptions import BadRequestError, ContextNotSetError

USER_ID_HEADER = "X-User-ID"
SYSTEM_ADMIN_HEADER = "X-Is-System-Admin"
TENANT_ID_HEADER = "X-Tenant-ID"

# Wire value for "no tenant selected"; only translated at the boundary.
ALL_TENANTS_ID = UUID(int=0)


class ScopeKind(str, Enum):
    """Kind of tenant scope selected by the caller."""

    ALL = "all"
    ONE = "one"


class TenantScope(BaseModel):
    """Tagged tenant selection: every tenant, or exactly one."""

    kind: ScopeKind
    tenant_id: UUID | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_kind(self) -> Self:
        if self.kind == ScopeKind.ONE and self.tenant_id is None:
            raise ValueError("tenant_id is required for a single-tenant scope")
        if self.kind == ScopeKind.ALL and self.tenant_id is not None:
            raise ValueError("tenant_id must be empty for the all-tenants scope")
        return self

    @classmethod
    def all(cls) -> "TenantScope":
        return cls(kind=ScopeKind.ALL)

    @classmethod
    def one(cls, tenant_id: UUID) -> "TenantScope":
        if tenant_id == ALL_TENANTS_ID:
            return cls.all()
        return cls(kind=ScopeKind.ONE, tenant_id=tenant_id)

    @property
    def is_all(self) -> bool:
        return self.kind == ScopeKind.ALL

    def __str__(self) -> str:
        return "all" if self.is_all else str(self.tenant_id)


class CallerContext(BaseModel):
    """Resolved identity of the caller for a single request.

    Nothing here is verified; the upstream gateway is trusted to have
    authenticated the caller before these facts were asserted.
    """

    request_id: UUID = Field(default_factory=uuid4)
    user_id: UUID | None = None
    is_system_admin: bool = False
    tenant_scope: TenantScope = Field(default_factory=TenantScope.all)
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    @property
    def tenant_id(self) -> UUID | None:
        """The selected tenant, or None when every tenant is in scope."""
        return self.tenant_scope.tenant_id

    def require_user_id(self) -> UUID:
        """Return the caller's user id.

        Raises:
            BadRequestError: If the caller presented no user id
        """
        if self.user_id is None:
            raise BadRequestError("User ID is required", field=USER_ID_HEADER)
        return self.user_id

    def require_tenant_id(self) -> UUID:
        """Return the selected tenant id.

        Raises:
            BadRequestError: If no single tenant is selected
        """
        if self.tenant_id is None:
            raise BadRequestError("Tenant context is required", field=TENANT_ID_HEADER)
        return self.tenant_id

    def to_log_dict(self) -> dict[str, Any]:
        return {
            "request_id": str(self.request_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "tenant_scope": str(self.tenant_scope),
            "is_system_admin": self.is_system_admin,
        }


def _parse_uuid_header(name: str, value: str | None) -> UUID | None:
    if value is None or not value.strip():
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        raise BadRequestError(
            f"Invalid {name} header: must be a valid UUID", field=name
        ) from None


def resolve_caller_context(
    user_id_header: str | None,
    system_admin_header: str | None,
    tenant_header: str | None,
    request_id: UUID | None = None,
) -> CallerContext:
    """Build a CallerContext from the raw gateway headers.

    Args:
        user_id_header: Value of X-User-ID
        system_admin_header: Value of X-Is-System-Admin
        tenant_header: Value of X-Tenant-ID; absent, empty or all-zero means all tenants
        request_id: Request id to carry (generated if omitted)

    Returns:
        The resolved caller context

    Raises:
        BadRequestError: If a UUID header is malformed
    """
    user_id = _parse_uuid_header(USER_ID_HEADER, user_id_header)
    tenant_id = _parse_uuid_header(TENANT_ID_HEADER, tenant_header)

    is_system_admin = (system_admin_header or "").strip().lower() == "true"
    scope = TenantScope.all() if tenant_id is None else TenantScope.one(tenant_id)

    return CallerContext(
        request_id=request_id or uuid4(),
        user_id=user_id,
        is_system_admin=is_system_admin,
        tenant_scope=scope,
    )


# =============================================================================
# Context Variable Management
# =============================================================================

_caller_context: ContextVar[CallerContext | None] = ContextVar("caller_context", default=None)


def get_current_caller() -> CallerContext:
    """Get the caller context bound to the current execution context.

    Raises:
        ContextNotSetError: If no context is set
    """
    ctx = _caller_context.get()
    if ctx is None:
        raise ContextNotSetError("No caller context is set. Use caller_context().")
    return ctx


def get_current_caller_or_none() -> CallerContext | None:
    """Get the current caller context, or None if not set."""
    return _caller_context.get()


def set_caller(ctx: CallerContext) -> Token[CallerContext | None]:
    """Bind a caller context and return a token for restoration.

    This is a low-level API. Prefer the caller_context() context manager.
    """
    return _caller_context.set(ctx)


def reset_caller(token: Token[CallerContext | None]) -> None:
    """Restore the caller context that was active before set_caller()."""
    _caller_context.reset(token)


@contextmanager
def caller_context(ctx: CallerContext):
    """Bind a caller context for the duration of the block.

    Works for sync and async code since contextvars propagate into tasks.
    """
    token = set_caller(ctx)
    try:
        yield ctx
    finally:
        reset_caller(token)
