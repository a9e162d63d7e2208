"""Unit tests for caller context resolution."""

from uuid import uuid4

import pytest

from fabrica.core.context import (
    ALL_TENANTS_ID,
    CallerContext,
    ScopeKind,
    TenantScope,
    caller_context,
    get_current_caller,
    get_current_caller_or_none,
    resolve_caller_context,
)
from fabrica.core.exceptions import BadRequestError, ContextNotSetError


class TestTenantScope:
    def test_all_has_no_tenant(self):
        scope = TenantScope.all()
        assert scope.is_all
        assert scope.tenant_id is None

    def test_one_carries_tenant(self):
        tenant_id = uuid4()
        scope = TenantScope.one(tenant_id)
        assert scope.kind == ScopeKind.ONE
        assert scope.tenant_id == tenant_id

    def test_zero_id_means_all(self):
        assert TenantScope.one(ALL_TENANTS_ID).is_all

    def test_one_without_tenant_is_invalid(self):
        with pytest.raises(ValueError):
            TenantScope(kind=ScopeKind.ONE)


class TestResolveCallerContext:
    """Tests for translating gateway headers into a CallerContext."""

    def test_all_headers(self):
        user_id, tenant_id = uuid4(), uuid4()

        ctx = resolve_caller_context(str(user_id), "true", str(tenant_id))

        assert ctx.user_id == user_id
        assert ctx.is_system_admin is True
        assert ctx.tenant_id == tenant_id

    @pytest.mark.parametrize("tenant_header", [None, "", "   ", str(ALL_TENANTS_ID)])
    def test_missing_or_zero_tenant_means_all(self, tenant_header):
        ctx = resolve_caller_context(None, None, tenant_header)

        assert ctx.tenant_scope.is_all
        assert ctx.tenant_id is None

    @pytest.mark.parametrize("flag", [None, "", "false", "yes", "1"])
    def test_admin_flag_only_true_for_true(self, flag):
        assert resolve_caller_context(None, flag, None).is_system_admin is False

    def test_admin_flag_case_insensitive(self):
        assert resolve_caller_context(None, " TRUE ", None).is_system_admin is True

    def test_malformed_user_id_rejected(self):
        with pytest.raises(BadRequestError) as exc_info:
            resolve_caller_context("not-a-uuid", None, None)
        assert exc_info.value.field == "X-User-ID"

    def test_malformed_tenant_id_rejected(self):
        with pytest.raises(BadRequestError):
            resolve_caller_context(None, None, "tenant-1")

    def test_request_id_is_carried(self):
        request_id = uuid4()
        assert resolve_caller_context(None, None, None, request_id=request_id).request_id == request_id


class TestCallerContext:
    def test_require_user_id(self):
        with pytest.raises(BadRequestError):
            CallerContext().require_user_id()

    def test_require_tenant_id(self):
        with pytest.raises(BadRequestError):
            CallerContext().require_tenant_id()

    def test_is_frozen(self):
        ctx = CallerContext()
        with pytest.raises(ValueError):
            ctx.is_system_admin = True

    def test_log_dict(self):
        ctx = CallerContext(user_id=uuid4())
        data = ctx.to_log_dict()
        assert data["tenant_scope"] == "all"
        assert data["user_id"] == str(ctx.user_id)


class TestContextVar:
    def test_unset_raises(self):
        with pytest.raises(ContextNotSetError):
            get_current_caller()

    def test_bound_for_block(self):
        ctx = CallerContext(user_id=uuid4())
        with caller_context(ctx):
            assert get_current_caller() is ctx
        assert get_current_caller_or_none() is None
