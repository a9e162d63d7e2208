"""Integration tests for the invitation endpoints."""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def owned(make_user, make_tenant):
    owner = await make_user("owner@example.com")
    tenant = await make_tenant(owner=owner)
    return owner, tenant


@pytest.mark.asyncio
class TestCreateInvitation:
    async def test_owner_invites(self, client: AsyncClient, headers_for, owned):
        owner, tenant = owned

        response = await client.post(
            "/v1/invitations", json={"email": "New@Example.com"}, headers=headers_for(owner, tenant)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new@example.com"
        assert data["status"] == "pending"
        assert data["tenant_id"] == str(tenant.tenant_id)
        assert data["tenant_name"] == "Acme"
        assert data["invited_by_name"] == ""
        assert data["invited_by"] == str(owner.user_id)

    async def test_without_tenant_returns_400(self, client: AsyncClient, headers_for, owned):
        owner, _ = owned

        response = await client.post(
            "/v1/invitations", json={"email": "new@example.com"}, headers=headers_for(owner)
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "X-Tenant-ID"}

    async def test_member_returns_403(
        self, client: AsyncClient, headers_for, owned, make_user, add_member
    ):
        _, tenant = owned
        member = await make_user("member@example.com")
        await add_member(member, tenant)

        response = await client.post(
            "/v1/invitations",
            json={"email": "new@example.com"},
            headers=headers_for(member, tenant),
        )

        assert response.status_code == 403

    async def test_duplicate_returns_409(self, client: AsyncClient, headers_for, owned):
        owner, tenant = owned
        headers = headers_for(owner, tenant)
        await client.post("/v1/invitations", json={"email": "new@example.com"}, headers=headers)

        response = await client.post(
            "/v1/invitations", json={"email": "NEW@example.com"}, headers=headers
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "conflict"

    async def test_self_invitation_returns_409(self, client: AsyncClient, headers_for, owned):
        owner, tenant = owned

        response = await client.post(
            "/v1/invitations",
            json={"email": "owner@example.com"},
            headers=headers_for(owner, tenant),
        )

        assert response.status_code == 409

    async def test_system_admin_can_invite_anywhere(
        self, client: AsyncClient, headers_for, owned, make_user
    ):
        _, tenant = owned
        admin = await make_user("admin@example.com", is_system_admin=True)

        response = await client.post(
            "/v1/invitations",
            json={"email": "new@example.com"},
            headers=headers_for(admin, tenant, is_system_admin=True),
        )

        assert response.status_code == 201


@pytest.mark.asyncio
class TestListAndRevoke:
    async def test_list_then_revoke(self, client: AsyncClient, headers_for, owned):
        owner, tenant = owned
        headers = headers_for(owner, tenant)
        created = await client.post(
            "/v1/invitations", json={"email": "new@example.com"}, headers=headers
        )
        invitation_id = created.json()["invitation_id"]

        listed = await client.get("/v1/invitations", headers=headers)
        assert [i["invitation_id"] for i in listed.json()] == [invitation_id]
        assert listed.json()[0]["tenant_name"] == "Acme"

        revoked = await client.delete(f"/v1/invitations/{invitation_id}", headers=headers)
        assert revoked.status_code == 200
        assert revoked.json()["status"] == "revoked"

        again = await client.delete(f"/v1/invitations/{invitation_id}", headers=headers)
        assert again.status_code == 412

        listed = await client.get("/v1/invitations", headers=headers)
        assert listed.json() == []

    async def test_revoke_unknown_returns_404(self, client: AsyncClient, headers_for, owned):
        owner, tenant = owned

        response = await client.delete(
            f"/v1/invitations/{uuid4()}", headers=headers_for(owner, tenant)
        )

        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "invitation"
