from typing import Iterable, Optional

from app.db.schema import User, UserRole


# Roles implied by holding another role
ROLE_IMPLICATIONS = {
    UserRole.SUPER_ADMIN: {UserRole.ADMIN, UserRole.TEACHER},
    UserRole.ADMIN: {UserRole.TEACHER},
}


class AuthorizationPolicy:
    """
    The single place role checks are decided.
    Certificate logic only ever asks `has_role`, it never inspects tokens or
    identity-provider data itself.
    """

    def effective_roles(self, user: Optional[User]) -> set[UserRole]:
        if user is None or not user.is_active:
            return set()
        return {user.role} | ROLE_IMPLICATIONS.get(user.role, set())

    def has_role(self, user: Optional[User], role: UserRole) -> bool:
        return role in self.effective_roles(user)

    def has_any_role(self, user: Optional[User], roles: Iterable[UserRole]) -> bool:
        granted = self.effective_roles(user)
        return any(role in granted for role in roles)


policy = AuthorizationPolicy()
