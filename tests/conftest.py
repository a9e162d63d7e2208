"""Pytest fixtures for Fabrica tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import timedelta
from uuid import UUID

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fabrica.config.settings import Settings
from fabrica.core.context import CallerContext, TenantScope
from fabrica.db.config import configure_sqlite_engine, get_db
from fabrica.db.models.base import Base, utcnow
from fabrica.db.models.invitation import Invitation
from fabrica.db.models.membership import Membership, TenantRole
from fabrica.db.models.rbac import Permission, Role, RolePermission
from fabrica.db.models.subscription import SubscriptionPlan
from fabrica.db.models.tenant import Tenant
from fabrica.db.models.user import User

TEST_API_SECRET = "test-gateway-secret"


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """Per-test in-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite_engine(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make_user(
        email: str = "user@example.com",
        is_system_admin: bool = False,
        is_active: bool = True,
        **fields,
    ) -> User:
        user = User(
            email=email,
            is_system_admin=is_system_admin,
            is_active=is_active,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_tenant(db_session: AsyncSession) -> Callable[..., Awaitable[Tenant]]:
    async def _make_tenant(
        name: str = "Acme",
        slug: str | None = None,
        owner: User | None = None,
        onboarding_completed: bool = True,
        onboarding_step: int = 4,
        is_active: bool = True,
        **fields,
    ) -> Tenant:
        tenant = Tenant(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            owner_user_id=owner.user_id if owner is not None else None,
            onboarding_completed=onboarding_completed,
            onboarding_step=onboarding_step,
            is_active=is_active,
            **fields,
        )
        db_session.add(tenant)
        await db_session.flush()
        if owner is not None:
            db_session.add(
                Membership(
                    user_id=owner.user_id,
                    tenant_id=tenant.tenant_id,
                    role=TenantRole.OWNER,
                    granted_by=owner.user_id,
                )
            )
        await db_session.commit()
        return tenant

    return _make_tenant


@pytest.fixture
def add_member(db_session: AsyncSession) -> Callable[..., Awaitable[Membership]]:
    async def _add_member(
        user: User,
        tenant: Tenant,
        role: TenantRole = TenantRole.MEMBER,
        is_active: bool = True,
    ) -> Membership:
        membership = Membership(
            user_id=user.user_id,
            tenant_id=tenant.tenant_id,
            role=role,
            is_active=is_active,
        )
        db_session.add(membership)
        await db_session.commit()
        return membership

    return _add_member


@pytest.fixture
def make_invitation(db_session: AsyncSession) -> Callable[..., Awaitable[Invitation]]:
    async def _make_invitation(
        email: str,
        tenant: Tenant,
        invited_by: UUID,
        expires_in: timedelta = timedelta(days=7),
        status: str = "pending",
    ) -> Invitation:
        invitation = Invitation(
            email=email,
            tenant_id=tenant.tenant_id,
            invited_by=invited_by,
            expires_at=utcnow() + expires_in,
            status=status,
        )
        db_session.add(invitation)
        await db_session.commit()
        return invitation

    return _make_invitation


@pytest.fixture
def make_plan(db_session: AsyncSession) -> Callable[..., Awaitable[SubscriptionPlan]]:
    async def _make_plan(
        name: str = "Starter",
        is_active: bool = True,
        display_order: int = 0,
        **fields,
    ) -> SubscriptionPlan:
        plan = SubscriptionPlan(
            name=name,
            is_active=is_active,
            display_order=display_order,
            price_cents=fields.pop("price_cents", 1900),
            **fields,
        )
        db_session.add(plan)
        await db_session.commit()
        return plan

    return _make_plan


@pytest_asyncio.fixture
async def viewer_role(db_session: AsyncSession) -> Role:
    """The default global role, with one permission."""
    role = Role(name="Viewer", description="Default role")
    permission = Permission(name="products:read", resource="products", action="read")
    db_session.add_all([role, permission])
    await db_session.flush()
    db_session.add(RolePermission(role_id=role.role_id, permission_id=permission.permission_id))
    await db_session.commit()
    return role


@pytest.fixture
def make_caller() -> Callable[..., CallerContext]:
    return build_caller


def build_caller(
    user: User | None = None,
    tenant: Tenant | None = None,
    is_system_admin: bool | None = None,
) -> CallerContext:
    """Build a CallerContext the way the middleware would."""
    return CallerContext(
        user_id=user.user_id if user is not None else None,
        is_system_admin=(
            is_system_admin
            if is_system_admin is not None
            else bool(user is not None and user.is_system_admin)
        ),
        tenant_scope=TenantScope.one(tenant.tenant_id) if tenant else TenantScope.all(),
    )


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create settings for API testing."""
    return Settings(
        API_SECRET_KEY=SecretStr(TEST_API_SECRET),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        ENVIRONMENT="test",
        DEBUG=False,
        log_level="DEBUG",
    )


@pytest.fixture
def test_app(test_settings: Settings, db_session: AsyncSession) -> FastAPI:
    """FastAPI application whose requests share the test session."""
    from fabrica.api.app import create_app

    app = create_app(settings=test_settings)

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return app


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Client without the gateway token."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Client that presents the gateway token on every request."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {TEST_API_SECRET}"},
    ) as client:
        yield client


@pytest.fixture
def headers_for() -> Callable[..., dict[str, str]]:
    return identity_headers


def identity_headers(
    user: User | None = None,
    tenant: Tenant | UUID | None = None,
    is_system_admin: bool = False,
) -> dict[str, str]:
    """Gateway identity headers for a request."""
    headers = {"X-Is-System-Admin": "true" if is_system_admin else "false"}
    if user is not None:
        headers["X-User-ID"] = str(user.user_id)
    if tenant is not None:
        tenant_id = tenant if isinstance(tenant, UUID) else tenant.tenant_id
        headers["X-Tenant-ID"] = str(tenant_id)
    return headers
