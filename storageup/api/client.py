"""Client-side endpoints for customers managing their own account."""

from fastapi import APIRouter, Depends
import structlog

from storageup.api.dependencies import require_client
from storageup.models.auth import ProfileUpdateRequest, UserResponse
from storageup.models.user import UserUpdate
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.session_service import AuthContext
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/client", tags=["Client"])


@router.get("/profile")
async def get_profile(client: AuthContext = Depends(require_client)) -> UserResponse:
    return UserResponse(user=client.user)


@router.put("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    client: AuthContext = Depends(require_client),
) -> UserResponse:
    """Update the caller's own profile.

    Changing first or last name also rebuilds the display name.

    Raises:
        AuthError 400: DUPLICATE_EMAIL if the new email belongs to someone else
    """
    user = client.user
    user_service = UserService()
    changes = request.model_dump(exclude_unset=True)

    if changes.get("email") is not None and changes["email"] != user.email:
        if await user_service.email_in_use(changes["email"], exclude_id=user.id):
            raise AuthError(AuthErrorKind.DUPLICATE_EMAIL, "Email address is already in use")

    if changes.get("first_name") or changes.get("last_name"):
        first_name = changes.get("first_name") or user.first_name
        last_name = changes.get("last_name") or user.last_name
        full_name = " ".join(filter(None, [first_name, last_name])).strip()
        if full_name:
            changes["name"] = full_name

    updated = await user_service.update_user(user.id, UserUpdate(**changes))
    if updated is None:
        raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

    logger.info("profile_updated", user_id=str(user.id), fields=sorted(changes))
    return UserResponse(user=updated)
