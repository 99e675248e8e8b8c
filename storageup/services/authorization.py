"""Role-based access policy.

Client and staff sessions are kept strictly apart: an identity holding an
elevated role can never act through client-only endpoints, even if it also
holds ``user``.
"""

from typing import Iterable

from storageup.models.user import UserRole
from storageup.services.errors import AuthError, AuthErrorKind

ELEVATED_ROLES = frozenset({UserRole.ADMIN.value, UserRole.MODERATOR.value})


def is_client_only(roles: Iterable[str]) -> bool:
    role_set = frozenset(roles)
    return UserRole.USER.value in role_set and not (role_set & ELEVATED_ROLES)


def has_admin_access(roles: Iterable[str]) -> bool:
    return bool(frozenset(roles) & ELEVATED_ROLES)


def has_any_role(roles: Iterable[str], required: Iterable[str]) -> bool:
    return bool(frozenset(roles) & frozenset(required))


def require_client_only(roles: Iterable[str]) -> None:
    if not is_client_only(roles):
        raise AuthError(AuthErrorKind.FORBIDDEN_CLIENT_ONLY)


def require_admin_access(roles: Iterable[str]) -> None:
    if not has_admin_access(roles):
        raise AuthError(AuthErrorKind.FORBIDDEN_ADMIN_ONLY)


def require_any_of(roles: Iterable[str], required: Iterable[str]) -> None:
    """Raise INSUFFICIENT_ROLE unless ``roles`` intersects ``required``."""
    role_list = sorted(frozenset(roles))
    required_list = sorted(frozenset(required))
    if not has_any_role(role_list, required_list):
        raise AuthError(
            AuthErrorKind.INSUFFICIENT_ROLE,
            message=(
                f"User role '{', '.join(role_list)}' is not authorized to access "
                f"this route. Required roles: {', '.join(required_list)}"
            ),
            details={"required_roles": required_list},
        )
