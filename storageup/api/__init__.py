"""API package exports."""

from storageup.api.dependencies import (
    get_auth_context,
    get_current_user,
    require_admin,
    require_client,
    require_roles,
)

__all__ = [
    "get_auth_context",
    "get_current_user",
    "require_admin",
    "require_client",
    "require_roles",
]
