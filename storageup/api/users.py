"""Staff endpoints for creating and looking up customer identities."""

from fastapi import APIRouter, Depends, Query, status
import structlog

from storageup.api.dependencies import require_roles
from storageup.models.auth import CreateUserRequest, UserResponse, UserSearchResult
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.session_service import AuthContext
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

staff_only = require_roles("admin", "moderator")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    staff: AuthContext = Depends(staff_only),
) -> UserResponse:
    """Create an identity on someone's behalf (roles default to ``user``).

    Raises:
        AuthError 400: DUPLICATE_EMAIL
    """
    user_service = UserService()

    if await user_service.get_by_email(request.email) is not None:
        raise AuthError(AuthErrorKind.DUPLICATE_EMAIL)

    user = await user_service.create_user(
        name=request.name,
        email=request.email,
        phone_number=request.phone_number,
        password=request.password,
        roles=request.roles,
    )

    logger.info(
        "staff_created_user",
        staff_id=str(staff.user.id),
        new_user_id=str(user.id),
        roles=user.roles,
    )
    return UserResponse(user=user)


@router.get("/search")
async def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    staff: AuthContext = Depends(staff_only),
) -> list[UserSearchResult]:
    """Search customers by name or email for autocomplete."""
    if not q.strip():
        raise AuthError(
            AuthErrorKind.VALIDATION_ERROR,
            "Search query is required. Please provide a name to search.",
        )

    users = await UserService().search_users(q, limit=limit)
    return [
        UserSearchResult(
            id=user.id,
            name=user.name,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone_number=user.phone_number,
            display_name=user.name
            or " ".join(filter(None, [user.first_name, user.last_name])),
        )
        for user in users
    ]
