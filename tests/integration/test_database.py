"""Integration tests for database constraints."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.db.models.membership import Membership
from fabrica.db.models.tenant import Tenant
from fabrica.db.models.user import User


@pytest.mark.asyncio
async def test_tenant_slug_is_unique(db_session: AsyncSession, make_tenant):
    await make_tenant(name="Acme", slug="acme")

    db_session.add(Tenant(name="Other", slug="acme"))
    with pytest.raises(IntegrityError):
        await db_session.commit()


@pytest.mark.asyncio
async def test_onboarding_step_range_enforced(db_session: AsyncSession):
    db_session.add(Tenant(name="Acme", slug="acme", onboarding_step=5))

    with pytest.raises(IntegrityError):
        await db_session.commit()


@pytest.mark.asyncio
async def test_one_membership_row_per_pair(
    db_session: AsyncSession, make_user, make_tenant, add_member
):
    user = await make_user()
    tenant = await make_tenant()
    await add_member(user, tenant)

    db_session.add(Membership(user_id=user.user_id, tenant_id=tenant.tenant_id))
    with pytest.raises(IntegrityError):
        await db_session.commit()


def test_membership_role_validated_on_assignment():
    with pytest.raises(ValueError):
        Membership(role="system_admin")


@pytest.mark.asyncio
async def test_deleting_user_cascades_to_memberships(
    db_session: AsyncSession, make_user, make_tenant, add_member
):
    user = await make_user()
    tenant = await make_tenant()
    await add_member(user, tenant)
    db_session.expunge_all()

    user = await db_session.get(User, user.user_id)
    await db_session.delete(user)
    await db_session.commit()

    result = await db_session.execute(
        select(Membership).where(Membership.tenant_id == tenant.tenant_id)
    )
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_timestamps_populated(db_session: AsyncSession, make_user):
    user = await make_user()

    stored = await db_session.get(User, user.user_id)

    assert stored.created_at is not None
    assert stored.updated_at is not None
