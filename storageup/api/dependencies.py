"""FastAPI dependencies for authentication and authorization."""

from typing import Callable

from fastapi import Depends, Request

from storageup.models.user import User
from storageup.services.authorization import (
    require_admin_access,
    require_any_of,
    require_client_only,
)
from storageup.services.session_service import AuthContext, SessionService


async def get_auth_context(request: Request) -> AuthContext:
    """Authenticate the request from its admin cookie, user cookie or Bearer header.

    The resulting context is also stored on ``request.state.auth``.

    Raises:
        AuthError 401: TOKEN_MISSING, TOKEN_INVALID, TOKEN_EXPIRED or ACCOUNT_NOT_FOUND
        AuthError 503: SERVICE_UNAVAILABLE if the credential store cannot be reached
    """
    session_service = SessionService()
    context = await session_service.authenticate(request)
    request.state.auth = context
    return context


async def get_current_user(context: AuthContext = Depends(get_auth_context)) -> User:
    return context.user


async def require_client(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Allow only plain customers (role ``user`` without admin/moderator).

    Raises:
        AuthError 403: FORBIDDEN_CLIENT_ONLY
    """
    require_client_only(context.roles)
    return context


async def require_admin(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Allow admins and moderators.

    Raises:
        AuthError 403: FORBIDDEN_ADMIN_ONLY
    """
    require_admin_access(context.roles)
    return context


def require_roles(*roles: str) -> Callable:
    """Build a dependency allowing any identity holding one of ``roles``.

    Raises:
        AuthError 403: INSUFFICIENT_ROLE
    """
    required = frozenset(roles)

    async def dependency(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        require_any_of(context.roles, required)
        return context

    return dependency
