"""Admin API endpoints for identity management."""

import math
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
import structlog

from storageup.api.dependencies import require_admin
from storageup.models.auth import (
    AdminUpdateUserRequest,
    Pagination,
    UserListResponse,
    UserResponse,
)
from storageup.models.user import UserUpdate
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.session_service import AuthContext
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    name: Optional[str] = Query(None, max_length=100),
    admin: AuthContext = Depends(require_admin),
) -> UserListResponse:
    """List identities, newest first, optionally filtered by name."""
    user_service = UserService()
    users, total = await user_service.list_users(page=page, limit=limit, name=name)

    total_pages = math.ceil(total / limit) if total else 0
    return UserListResponse(
        count=len(users),
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
        users=users,
    )


@router.get("/users/{user_id}")
async def get_user(
    user_id: UUID,
    admin: AuthContext = Depends(require_admin),
) -> UserResponse:
    user = await UserService().get_by_id(user_id)
    if user is None:
        raise AuthError(AuthErrorKind.USER_NOT_FOUND)
    return UserResponse(user=user)


@router.put("/users/{user_id}")
async def update_user(
    user_id: UUID,
    request: AdminUpdateUserRequest,
    admin: AuthContext = Depends(require_admin),
) -> UserResponse:
    """Update an identity's allow-listed fields.

    Raises:
        AuthError 400: DUPLICATE_EMAIL
        AuthError 404: USER_NOT_FOUND
    """
    user_service = UserService()

    if request.email is not None and await user_service.email_in_use(
        request.email, exclude_id=user_id
    ):
        raise AuthError(AuthErrorKind.DUPLICATE_EMAIL)

    update = UserUpdate(**request.model_dump(exclude_unset=True))
    updated = await user_service.update_user(user_id, update)

    if updated is None:
        raise AuthError(AuthErrorKind.USER_NOT_FOUND)

    logger.info(
        "admin_updated_user",
        admin_id=str(admin.user.id),
        target_user_id=str(user_id),
    )
    return UserResponse(user=updated)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: UUID,
    admin: AuthContext = Depends(require_admin),
) -> dict:
    """Delete an identity. Staff cannot delete their own account.

    Raises:
        AuthError 403: CANNOT_DELETE_SELF
        AuthError 404: USER_NOT_FOUND
    """
    if admin.user.id == user_id:
        raise AuthError(AuthErrorKind.CANNOT_DELETE_SELF)

    deleted = await UserService().delete_user(user_id)
    if not deleted:
        raise AuthError(AuthErrorKind.USER_NOT_FOUND)

    logger.info(
        "admin_deleted_user",
        admin_id=str(admin.user.id),
        deleted_user_id=str(user_id),
    )
    return {"success": True, "message": "User deleted successfully"}
