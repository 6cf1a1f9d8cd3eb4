"""Tests for role checks."""

import pytest

from learninghub.auth.permissions import (
    ROLE_HIERARCHY,
    UserRole,
    get_role_level,
    has_permission,
    is_admin,
)


class TestUserRole:
    def test_role_values(self) -> None:
        assert UserRole.USER.value == "user"
        assert UserRole.ADMIN.value == "admin"

    def test_all_roles_have_levels(self) -> None:
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.USER, 0),
            (UserRole.ADMIN, 1),
            ("user", 0),
            ("admin", 1),
        ],
    )
    def test_known_roles(self, role: UserRole | str, expected_level: int) -> None:
        assert get_role_level(role) == expected_level

    def test_invalid_role_returns_zero(self) -> None:
        assert get_role_level("tutor") == 0


class TestHasPermission:
    def test_admin_has_all_permissions(self) -> None:
        assert has_permission(UserRole.ADMIN, UserRole.ADMIN)
        assert has_permission(UserRole.ADMIN, UserRole.USER)

    def test_user_is_not_admin(self) -> None:
        assert has_permission(UserRole.USER, UserRole.USER)
        assert not has_permission(UserRole.USER, UserRole.ADMIN)

    def test_string_roles(self) -> None:
        assert has_permission("admin", "user")
        assert not has_permission("user", "admin")

    def test_is_admin(self) -> None:
        assert is_admin("admin")
        assert not is_admin("user")
        assert not is_admin("unknown")
