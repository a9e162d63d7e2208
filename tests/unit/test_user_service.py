"""Unit tests for UserService."""

from uuid import uuid4

import pytest

from fabrica.core.exceptions import BadRequestError, EmailConflictError, UserNotFoundError
from fabrica.core.users import UserService, default_display_name, validate_email
from fabrica.db.repositories.rbac import RoleRepository


@pytest.fixture
def service(db_session) -> UserService:
    return UserService(db_session)


class TestHelpers:
    def test_validate_email_normalizes(self):
        assert validate_email("  Jane@Example.COM ") == "jane@example.com"

    @pytest.mark.parametrize("email", [None, "", "jane", "@example.com", "jane@"])
    def test_validate_email_rejects(self, email):
        with pytest.raises(BadRequestError):
            validate_email(email)

    def test_default_display_name(self):
        assert default_display_name("Jane", "Doe") == "Jane Doe"
        assert default_display_name(" ", "Doe") == "Doe"
        assert default_display_name(None, None) is None


class TestCrud:
    async def test_create_assigns_default_role(
        self, db_session, service, viewer_role, make_caller
    ):
        user = await service.create_user(
            make_caller(is_system_admin=True), "Jane@Example.com", "Jane", "Doe"
        )

        assert user.email == "jane@example.com"
        assert user.display_name == "Jane Doe"
        roles = await RoleRepository(db_session).role_names_for_user(user.user_id)
        assert roles == ["Viewer"]

    async def test_create_without_default_role_still_succeeds(self, service, make_caller):
        user = await service.create_user(make_caller(is_system_admin=True), "jane@example.com")

        assert user.user_id is not None

    async def test_duplicate_email(self, service, make_user, make_caller):
        await make_user("jane@example.com")

        with pytest.raises(EmailConflictError):
            await service.create_user(make_caller(is_system_admin=True), "JANE@example.com")

    async def test_update_ignores_unknown_fields(self, service, make_user, make_caller):
        user = await make_user()

        updated = await service.update_user(
            make_caller(is_system_admin=True),
            user.user_id,
            {"first_name": "Jane", "user_id": uuid4()},
        )

        assert updated.first_name == "Jane"
        assert updated.user_id == user.user_id

    async def test_update_email_conflict(self, service, make_user, make_caller):
        await make_user("taken@example.com")
        user = await make_user("jane@example.com")

        with pytest.raises(EmailConflictError):
            await service.update_user(
                make_caller(is_system_admin=True), user.user_id, {"email": "taken@example.com"}
            )

    async def test_delete(self, service, make_user, make_caller):
        user = await make_user()

        await service.delete_user(make_caller(is_system_admin=True), user.user_id)

        with pytest.raises(UserNotFoundError):
            await service.get_user(user.user_id)


class TestUpsertForLogin:
    async def test_new_user(self, service, viewer_role):
        user, is_new = await service.upsert_for_login(
            "new@example.com", external_auth_id="idp|1", first_name="New"
        )

        assert is_new is True
        assert user.external_auth_id == "idp|1"
        assert user.last_login_at is not None

    async def test_existing_user_is_backfilled_not_overwritten(self, service, make_user):
        existing = await make_user("jane@example.com", first_name="Jane")

        user, is_new = await service.upsert_for_login(
            "JANE@example.com", external_auth_id="idp|2", first_name="Janet", last_name="Doe"
        )

        assert is_new is False
        assert user.user_id == existing.user_id
        assert user.first_name == "Jane"
        assert user.last_name == "Doe"
        assert user.external_auth_id == "idp|2"

    async def test_matched_by_external_id(self, service, make_user):
        existing = await make_user("old@example.com", external_auth_id="idp|3")

        user, is_new = await service.upsert_for_login("new@example.com", external_auth_id="idp|3")

        assert is_new is False
        assert user.user_id == existing.user_id

    async def test_concurrent_first_login_converges(self, service, make_user, monkeypatch):
        # Another device created the user after this login looked it up
        existing = await make_user("a@x.com")
        lookup = service.users.find_for_login
        calls = []

        async def stale_then_fresh(email, external_auth_id):
            calls.append(email)
            if len(calls) == 1:
                return None
            return await lookup(email, external_auth_id)

        monkeypatch.setattr(service.users, "find_for_login", stale_then_fresh)

        user, is_new = await service.upsert_for_login("a@x.com", first_name="Ann")

        assert is_new is False
        assert user.user_id == existing.user_id
        assert user.first_name == "Ann"
        assert len(calls) == 2
        assert await service.users.count() == 1
