"""Unit tests for TenantService."""

from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from fabrica.core.exceptions import (
    BadRequestError,
    DuplicateMembershipError,
    ForbiddenError,
    MembershipNotFoundError,
    ProtectedTenantError,
    SlugConflictError,
    TenantInactiveError,
    TenantNotFoundError,
    UserNotFoundError,
)
from fabrica.core.tenant import TenantService, normalize_slug, parse_role
from fabrica.db.models.audit import AuditEvent, AuditEventType
from fabrica.db.models.membership import TenantRole


@pytest.fixture
def service(db_session) -> TenantService:
    return TenantService(db_session)


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user("admin@example.com", is_system_admin=True)


class TestHelpers:
    def test_normalize_slug_accepts_canonical(self):
        assert normalize_slug(" acme-corp ") == "acme-corp"

    @pytest.mark.parametrize("slug", ["", "acme corp", "acme--corp", "-acme"])
    def test_normalize_slug_rejects_non_canonical(self, slug):
        with pytest.raises(BadRequestError):
            normalize_slug(slug)

    def test_parse_role(self):
        assert parse_role("owner") == TenantRole.OWNER
        with pytest.raises(BadRequestError):
            parse_role("system_admin")
        with pytest.raises(BadRequestError):
            parse_role("superuser")


class TestCreateTenant:
    async def test_create_derives_slug_and_audits(self, db_session, service, admin, make_caller):
        tenant = await service.create_tenant(make_caller(admin), "Acme Corp")

        assert tenant.slug == "acme-corp"
        assert tenant.onboarding_completed is True
        assert tenant.onboarding_step == 4

        events = (await db_session.execute(select(AuditEvent))).scalars().all()
        assert [e.event_type for e in events] == [AuditEventType.TENANT_CREATED.value]

    async def test_explicit_slug_conflict(self, service, admin, make_tenant, make_caller):
        await make_tenant(name="Acme", slug="acme")

        with pytest.raises(SlugConflictError):
            await service.create_tenant(make_caller(admin), "Other", slug="acme")

    async def test_owner_gets_membership(self, service, admin, make_user, make_caller):
        owner = await make_user("owner@example.com")

        tenant = await service.create_tenant(
            make_caller(admin), "Acme", owner_user_id=owner.user_id
        )

        pairs = await service.list_tenant_users(make_caller(admin), tenant.tenant_id)
        assert [(m.role, u.user_id) for m, u in pairs] == [
            (TenantRole.OWNER.value, owner.user_id)
        ]

    async def test_unknown_owner(self, service, admin, make_caller):
        with pytest.raises(UserNotFoundError):
            await service.create_tenant(make_caller(admin), "Acme", owner_user_id=uuid4())

    async def test_non_admin_forbidden(self, service, make_user, make_caller):
        user = await make_user()

        with pytest.raises(ForbiddenError):
            await service.create_tenant(make_caller(user), "Acme")


class TestUpdateAndDelete:
    async def test_update_changes_fields(self, service, admin, make_tenant, make_caller):
        tenant = await make_tenant(name="Acme")

        updated = await service.update_tenant(
            make_caller(admin), tenant.tenant_id, {"name": "Acme Labs", "slug": "acme-labs"}
        )

        assert updated.name == "Acme Labs"
        assert (await service.get_tenant_by_slug("acme-labs")).tenant_id == tenant.tenant_id

    async def test_update_to_taken_slug(self, service, admin, make_tenant, make_caller):
        await make_tenant(name="Taken")
        tenant = await make_tenant(name="Acme")

        with pytest.raises(SlugConflictError):
            await service.update_tenant(make_caller(admin), tenant.tenant_id, {"slug": "taken"})

    async def test_update_own_slug_is_not_a_conflict(
        self, service, admin, make_tenant, make_caller
    ):
        tenant = await make_tenant(name="Acme")

        updated = await service.update_tenant(
            make_caller(admin), tenant.tenant_id, {"slug": "acme", "description": "x"}
        )

        assert updated.description == "x"

    async def test_delete_deactivates(self, service, admin, make_tenant, make_caller):
        tenant = await make_tenant()

        deleted = await service.delete_tenant(make_caller(admin), tenant.tenant_id)

        assert deleted.is_active is False
        assert await service.list_tenants() == []
        assert len(await service.list_tenants(include_inactive=True)) == 1
        with pytest.raises(TenantInactiveError):
            await service.validate_tenant_active(tenant.tenant_id)

    async def test_system_tenant_protected(self, service, admin, make_tenant, make_caller):
        tenant = await make_tenant(name="System", slug="system")

        with pytest.raises(ProtectedTenantError):
            await service.delete_tenant(make_caller(admin), tenant.tenant_id)

    async def test_missing_tenant(self, service, admin, make_caller):
        with pytest.raises(TenantNotFoundError):
            await service.delete_tenant(make_caller(admin), uuid4())


class TestTenantUsers:
    async def test_owner_adds_and_removes_member(
        self, service, make_user, make_tenant, make_caller
    ):
        owner = await make_user("owner@example.com")
        member = await make_user("member@example.com")
        tenant = await make_tenant(owner=owner)
        ctx = make_caller(owner)

        membership = await service.add_user_to_tenant(ctx, tenant.tenant_id, member.user_id)
        assert membership.role == TenantRole.MEMBER.value

        with pytest.raises(DuplicateMembershipError):
            await service.add_user_to_tenant(ctx, tenant.tenant_id, member.user_id)

        await service.remove_user_from_tenant(ctx, tenant.tenant_id, member.user_id)
        users = [u.user_id for _, u in await service.list_tenant_users(ctx, tenant.tenant_id)]
        assert users == [owner.user_id]

        with pytest.raises(MembershipNotFoundError):
            await service.remove_user_from_tenant(ctx, tenant.tenant_id, member.user_id)

    async def test_removed_member_can_be_re_added(
        self, service, make_user, make_tenant, make_caller
    ):
        owner = await make_user("owner@example.com")
        member = await make_user("member@example.com")
        tenant = await make_tenant(owner=owner)
        ctx = make_caller(owner)

        first = await service.add_user_to_tenant(ctx, tenant.tenant_id, member.user_id)
        await service.remove_user_from_tenant(ctx, tenant.tenant_id, member.user_id)
        again = await service.add_user_to_tenant(ctx, tenant.tenant_id, member.user_id, "owner")

        assert again.membership_id == first.membership_id
        assert again.is_active is True
        assert again.role == TenantRole.OWNER.value

    async def test_member_cannot_manage(
        self, service, make_user, make_tenant, add_member, make_caller
    ):
        member = await make_user("member@example.com")
        other = await make_user("other@example.com")
        tenant = await make_tenant()
        await add_member(member, tenant)

        with pytest.raises(ForbiddenError):
            await service.add_user_to_tenant(make_caller(member), tenant.tenant_id, other.user_id)

    async def test_inactive_tenant_rejects_new_members(
        self, service, admin, make_user, make_tenant, make_caller
    ):
        user = await make_user()
        tenant = await make_tenant(is_active=False)

        with pytest.raises(TenantInactiveError):
            await service.add_user_to_tenant(make_caller(admin), tenant.tenant_id, user.user_id)
