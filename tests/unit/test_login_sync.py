"""Unit tests for login synchronization."""

from uuid import uuid4

import pytest

from fabrica.core.context import ALL_TENANTS_ID
from fabrica.core.exceptions import BadRequestError
from fabrica.core.login import LoginSyncService
from fabrica.db.models.membership import TenantRole


@pytest.fixture
def service(db_session) -> LoginSyncService:
    return LoginSyncService(db_session)


class TestLoginSync:
    async def test_new_user_gets_default_role_and_onboarding(self, service, viewer_role):
        result = await service.sync("new@example.com", first_name="New", last_name="User")

        assert result.is_new_user is True
        assert result.display_name == "New User"
        assert result.roles == ["Viewer"]
        assert result.permissions == ["products:read"]
        assert result.tenants == []
        assert result.requires_onboarding is True
        assert result.onboarding_step == 0

    async def test_invited_user_joins_tenant(
        self, service, make_user, make_tenant, make_invitation
    ):
        owner = await make_user("owner@example.com")
        tenant = await make_tenant(name="T1", owner=owner)
        await make_invitation("a@x.com", tenant, owner.user_id)

        result = await service.sync("a@x.com")

        assert [(t.tenant_id, t.role) for t in result.tenants] == [
            (tenant.tenant_id, TenantRole.MEMBER)
        ]
        assert result.requires_onboarding is False

    async def test_returning_user(self, service, make_user, make_tenant, add_member):
        user = await make_user("jane@example.com")
        await add_member(user, await make_tenant())

        result = await service.sync("jane@example.com")

        assert result.is_new_user is False
        assert result.user_id == user.user_id
        assert [t.name for t in result.tenants] == ["Acme"]

    async def test_system_admin_sees_all_tenants(self, service, make_user):
        await make_user("admin@example.com", is_system_admin=True)

        result = await service.sync("admin@example.com")

        assert result.tenants[0].tenant_id == ALL_TENANTS_ID
        assert result.requires_onboarding is False

    async def test_invalid_email(self, service):
        with pytest.raises(BadRequestError):
            await service.sync("not-an-email")


class TestPermissions:
    async def test_unknown_user_has_nothing(self, service):
        assert await service.permissions(uuid4()) == ([], [])

    async def test_known_user(self, service, viewer_role):
        result = await service.sync("new@example.com")

        assert await service.permissions(result.user_id) == (["Viewer"], ["products:read"])
