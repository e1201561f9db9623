"""Tests for the role-based mutation gate."""

import pytest

from pica_monitor.core.exceptions import AuthenticationRequired, PermissionDenied, SelfDeletionError
from pica_monitor.services.mutation_gate import (
    ActorContext,
    Role,
    authorize,
    authorize_user_delete,
    is_allowed,
)

ANON = ActorContext.anonymous()
USER = ActorContext(organization_id=1, role=Role.USER, actor_id=10)
ADMIN = ActorContext(organization_id=1, role=Role.ADMIN, actor_id=11)


class TestRole:
    def test_roles_are_ordered(self):
        assert Role.PUBLIC < Role.USER < Role.ADMIN

    @pytest.mark.parametrize("raw,expected", [
        ("admin", Role.ADMIN),
        ("USER", Role.USER),
        (" user ", Role.USER),
        ("public", Role.PUBLIC),
        ("superuser", Role.PUBLIC),
        (None, Role.PUBLIC),
        (2, Role.PUBLIC),
    ])
    def test_parse(self, raw, expected):
        assert Role.parse(raw) is expected

    def test_label(self):
        assert Role.ADMIN.label == "admin"


class TestAuthorize:
    def test_anonymous_may_read(self):
        authorize(ANON, "read")

    @pytest.mark.parametrize("action", ["create", "update", "delete"])
    def test_anonymous_writes_require_authentication(self, action):
        with pytest.raises(AuthenticationRequired):
            authorize(ANON, action)

    @pytest.mark.parametrize("action", ["read", "create", "update"])
    def test_user_allowed(self, action):
        authorize(USER, action)

    def test_user_cannot_delete(self):
        with pytest.raises(PermissionDenied) as exc:
            authorize(USER, "delete")
        assert "admin" in exc.value.reason

    @pytest.mark.parametrize("action", ["read", "create", "update", "delete"])
    def test_admin_allowed_everything(self, action):
        authorize(ADMIN, action)

    def test_write_without_organization_is_denied(self):
        orphan = ActorContext(organization_id=None, role=Role.ADMIN, actor_id=12)
        with pytest.raises(PermissionDenied):
            authorize(orphan, "create")

    def test_authenticated_public_role_cannot_write(self):
        viewer = ActorContext(organization_id=1, role=Role.PUBLIC, actor_id=13)
        with pytest.raises(PermissionDenied):
            authorize(viewer, "update")

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            authorize(ADMIN, "archive")

    def test_is_allowed(self):
        assert is_allowed(ADMIN, "delete") is True
        assert is_allowed(USER, "delete") is False
        assert is_allowed(ANON, "create") is False


class TestUserDelete:
    def test_admin_may_delete_another_user(self):
        authorize_user_delete(ADMIN, 99)

    def test_self_deletion_is_rejected(self):
        with pytest.raises(SelfDeletionError) as exc:
            authorize_user_delete(ADMIN, ADMIN.actor_id)
        assert exc.value.status == 400

    def test_user_role_cannot_delete_users(self):
        with pytest.raises(PermissionDenied):
            authorize_user_delete(USER, 99)

    def test_anonymous_cannot_delete_users(self):
        with pytest.raises(AuthenticationRequired):
            authorize_user_delete(ANON, 99)
