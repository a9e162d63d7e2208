"""Integration tests for the gateway check and /v1/auth endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from fabrica.core.context import ALL_TENANTS_ID


@pytest.mark.asyncio
class TestGatewayAuthentication:
    async def test_missing_token_returns_401(self, test_client: AsyncClient):
        response = await test_client.get("/v1/auth/tenants")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        body = response.json()
        assert body["error_code"] == "unauthorized"
        assert body["request_id"] == response.headers["X-Request-ID"]

    async def test_wrong_token_returns_401(self, test_client: AsyncClient):
        response = await test_client.get(
            "/v1/auth/tenants", headers={"Authorization": "Bearer wrong"}
        )

        assert response.status_code == 401

    async def test_malformed_identity_header_returns_400(self, client: AsyncClient):
        response = await client.get("/v1/auth/tenants", headers={"X-User-ID": "nope"})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "X-User-ID"}


@pytest.mark.asyncio
class TestLoginSync:
    async def test_first_login_creates_user(self, client: AsyncClient, viewer_role):
        response = await client.post(
            "/v1/auth/sync",
            json={
                "email": "Ada@Example.com",
                "external_auth_id": "idp|ada",
                "first_name": "Ada",
                "last_name": "Lovelace",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "ada@example.com"
        assert data["is_new_user"] is True
        assert data["display_name"] == "Ada Lovelace"
        assert data["requires_onboarding"] is True
        assert data["onboarding_step"] == 0
        assert data["roles"] == ["Viewer"]
        assert data["permissions"] == ["products:read"]
        assert data["tenants"] == []

    async def test_login_accepts_invitation(
        self, client: AsyncClient, make_user, make_tenant, make_invitation
    ):
        owner = await make_user("owner@x.com")
        tenant = await make_tenant(name="T1", owner=owner)
        await make_invitation("a@x.com", tenant, owner.user_id)

        response = await client.post("/v1/auth/sync", json={"email": "a@x.com"})

        data = response.json()
        assert data["requires_onboarding"] is False
        assert [(t["tenant_id"], t["role"]) for t in data["tenants"]] == [
            (str(tenant.tenant_id), "member")
        ]

    async def test_second_login_is_not_new(self, client: AsyncClient, make_user):
        await make_user("jane@example.com")

        response = await client.post("/v1/auth/sync", json={"email": "jane@example.com"})

        assert response.json()["is_new_user"] is False

    async def test_invalid_email_returns_400(self, client: AsyncClient):
        response = await client.post("/v1/auth/sync", json={"email": "nope"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "bad_request"

    async def test_missing_email_is_validation_error(self, client: AsyncClient):
        response = await client.post("/v1/auth/sync", json={})

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"


@pytest.mark.asyncio
class TestCurrentTenants:
    async def test_no_user_gets_empty_list(self, client: AsyncClient, headers_for):
        response = await client.get("/v1/auth/tenants", headers=headers_for())

        assert response.status_code == 200
        assert response.json() == {
            "tenants": [],
            "requires_onboarding": False,
            "onboarding_step": 0,
        }

    async def test_member_tenants_ordered_by_name(
        self, client: AsyncClient, headers_for, make_user, make_tenant, add_member
    ):
        user = await make_user()
        await add_member(user, await make_tenant(name="Zeta"))
        await add_member(user, await make_tenant(name="Alpha"))

        response = await client.get("/v1/auth/tenants", headers=headers_for(user))

        assert [t["name"] for t in response.json()["tenants"]] == ["Alpha", "Zeta"]

    async def test_system_admin_gets_all_tenants_entry(
        self, client: AsyncClient, headers_for, make_user
    ):
        admin = await make_user("admin@example.com", is_system_admin=True)

        response = await client.get(
            "/v1/auth/tenants", headers=headers_for(admin, is_system_admin=True)
        )

        tenants = response.json()["tenants"]
        assert tenants[0]["tenant_id"] == str(ALL_TENANTS_ID)
        assert tenants[0]["role"] == "system_admin"

    async def test_user_without_tenants_requires_onboarding(
        self, client: AsyncClient, headers_for, make_user
    ):
        user = await make_user()

        response = await client.get("/v1/auth/tenants", headers=headers_for(user))

        assert response.json()["requires_onboarding"] is True


@pytest.mark.asyncio
class TestPermissions:
    async def test_unknown_user_has_empty_lists(self, client: AsyncClient):
        user_id = uuid4()

        response = await client.get(f"/v1/auth/permissions/{user_id}")

        assert response.status_code == 200
        assert response.json() == {"user_id": str(user_id), "roles": [], "permissions": []}

    async def test_invalid_user_id_is_validation_error(self, client: AsyncClient):
        response = await client.get("/v1/auth/permissions/not-a-uuid")

        assert response.status_code == 400
