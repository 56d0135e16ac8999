import pytest

from app.db.schema import User, UserRole
from app.services.authorization import policy


def _user(role: UserRole, is_active: bool = True) -> User:
    return User(
        email=f"{role.value}@example.com",
        hashed_password="x",
        first_name="Test",
        last_name="User",
        role=role,
        is_active=is_active,
    )


@pytest.mark.parametrize("role,expected", [
    (UserRole.MEMBER, {UserRole.MEMBER}),
    (UserRole.TEACHER, {UserRole.TEACHER}),
    (UserRole.ADMIN, {UserRole.ADMIN, UserRole.TEACHER}),
    (UserRole.SUPER_ADMIN, {UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.TEACHER}),
])
def test_effective_roles(role, expected):
    assert policy.effective_roles(_user(role)) == expected


def test_super_admin_counts_as_admin():
    assert policy.has_role(_user(UserRole.SUPER_ADMIN), UserRole.ADMIN)
    assert not policy.has_role(_user(UserRole.ADMIN), UserRole.SUPER_ADMIN)


def test_inactive_and_anonymous_users_hold_nothing():
    assert policy.effective_roles(None) == set()
    assert not policy.has_any_role(_user(UserRole.ADMIN, is_active=False), [UserRole.ADMIN])
