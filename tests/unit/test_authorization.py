"""Unit tests for role policies."""

import pytest

from storageup.services.authorization import (
    has_admin_access,
    has_any_role,
    is_client_only,
    require_admin_access,
    require_any_of,
    require_client_only,
)
from storageup.services.errors import AuthError, AuthErrorKind


class TestClientOnly:
    @pytest.mark.parametrize(
        "roles,expected",
        [
            (["user"], True),
            (["admin"], False),
            (["moderator"], False),
            (["user", "admin"], False),
            (["user", "moderator"], False),
            ([], False),
        ],
    )
    def test_is_client_only(self, roles, expected):
        assert is_client_only(roles) is expected

    def test_require_passes_plain_user(self):
        require_client_only(["user"])

    def test_require_rejects_staff_with_user_role(self):
        with pytest.raises(AuthError) as exc_info:
            require_client_only(["user", "admin"])

        assert exc_info.value.kind is AuthErrorKind.FORBIDDEN_CLIENT_ONLY
        assert exc_info.value.status_code == 403


class TestAdminAccess:
    @pytest.mark.parametrize(
        "roles,expected",
        [
            (["admin"], True),
            (["moderator"], True),
            (["user", "admin"], True),
            (["user"], False),
            ([], False),
        ],
    )
    def test_has_admin_access(self, roles, expected):
        assert has_admin_access(roles) is expected

    def test_require_rejects_plain_user(self):
        with pytest.raises(AuthError) as exc_info:
            require_admin_access(["user"])

        assert exc_info.value.kind is AuthErrorKind.FORBIDDEN_ADMIN_ONLY
        assert exc_info.value.message == "Access denied. Admin privileges required."


class TestAnyOf:
    def test_has_any_role(self):
        assert has_any_role(["moderator"], ["admin", "moderator"])
        assert not has_any_role(["user"], ["admin", "moderator"])

    def test_require_any_of_passes(self):
        require_any_of(["admin"], ["admin", "moderator"])

    def test_require_any_of_reports_required_roles(self):
        with pytest.raises(AuthError) as exc_info:
            require_any_of(["user"], ["moderator", "admin"])

        error = exc_info.value
        assert error.kind is AuthErrorKind.INSUFFICIENT_ROLE
        assert error.details == {"required_roles": ["admin", "moderator"]}
        assert "Required roles: admin, moderator" in error.message
