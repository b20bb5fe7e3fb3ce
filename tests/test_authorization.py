import logging

import pytest

from smartedu.core.exceptions import Unauthorized
from smartedu.models import UserRole
from smartedu.services.authorization import AuthorizationService
from smartedu.services.permissions import PermissionRegistry


@pytest.fixture
def authz():
    return AuthorizationService(PermissionRegistry())


def test_permission_checks_accept_enum_roles(authz):
    assert authz.has_permission(UserRole.TEACHER, "assessment:create")
    assert authz.has_permission("admin", "anything:here")
    assert authz.has_all_permissions(UserRole.STUDENT, ["profile:read", "progress:view"])
    assert not authz.has_any_permission(UserRole.STUDENT, ["analytics:view"])


def test_owner_fallback(authz):
    assert authz.can_access_resource("student", 7, 7, "unknown:perm", True)
    assert not authz.can_access_resource("student", 7, 8, "unknown:perm", False)
    assert not authz.can_access_resource("student", 7, 7, "unknown:perm", False)
    assert authz.can_access_resource("teacher", 1, 2, "student:read")


def test_role_hierarchy(authz):
    assert authz.role_hierarchy_allows("admin", "teacher")
    assert authz.role_hierarchy_allows("teacher", "teacher")
    assert authz.role_hierarchy_allows("teacher", "student")
    assert not authz.role_hierarchy_allows("student", "teacher")
    assert not authz.role_hierarchy_allows("teacher", "admin")


def test_ensure_owner_or_admin(authz, caplog):
    authz.ensure_owner_or_admin("teacher", 3, 3, "update_assessment")
    authz.ensure_owner_or_admin("admin", 1, 3, "update_assessment")
    with caplog.at_level(logging.WARNING):
        with pytest.raises(Unauthorized):
            authz.ensure_owner_or_admin("teacher", 4, 3, "update_assessment", resource_id=10)
    assert "Unauthorized access attempt" in caplog.text


def test_sensitive_data(authz):
    assert authz.can_access_sensitive_data("admin", "financial_data")
    assert authz.can_access_sensitive_data("student", "user_personal_info")
    assert not authz.can_access_sensitive_data("teacher", "system_logs")
    assert not authz.can_access_sensitive_data("admin", "unknown_kind")


def test_access_context(authz):
    ctx = authz.create_access_context(UserRole.STUDENT, 7)
    assert ctx.role == "student"
    assert ctx.has_permission("assessment:take")
    assert not ctx.has_all_permissions(["assessment:take", "assessment:create"])
    assert ctx.has_any_permission(["assessment:take", "assessment:create"])
    assert ctx.can_access_resource(7, "grades:edit")
    assert not ctx.can_access_resource(8, "grades:edit")
    assert "progress:view" in ctx.permissions


def test_context_sees_registry_changes(authz):
    ctx = authz.create_access_context("teacher", 2)
    authz.registry.set_role_permissions("teacher", ["content:read"])
    assert not ctx.has_permission("assessment:create")
