"""Authentication API endpoints for client and admin sessions."""

import asyncpg
from fastapi import APIRouter, Depends, Query, Request, Response, status
import structlog

from storageup.api.cookies import clear_session_cookies, set_session_cookie
from storageup.api.dependencies import get_auth_context, get_current_user
from storageup.database import DatabaseUnavailableError
from storageup.models.auth import (
    AdminSignupRequest,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshResponse,
    ResetPasswordRequest,
    SignupRequest,
    UserResponse,
)
from storageup.models.user import User
from storageup.services.auth_service import AuthService
from storageup.services.authorization import require_admin_access, require_client_only
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.password_reset_service import PasswordResetService
from storageup.services.session_service import (
    ADMIN_COOKIE_NAME,
    USER_COOKIE_NAME,
    AuthContext,
    SessionService,
)
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


async def _register(request: SignupRequest, roles: list[str]) -> User:
    """Create an identity after checking the email is free."""
    user_service = UserService()

    try:
        if await user_service.get_by_email(request.email) is not None:
            raise AuthError(AuthErrorKind.DUPLICATE_EMAIL)

        return await user_service.create_user(
            name=request.name,
            email=request.email,
            phone_number=request.phone_number,
            password=request.password,
            roles=roles,
        )
    except (asyncpg.PostgresError, DatabaseUnavailableError, OSError) as e:
        logger.error("signup_store_failed", error=str(e))
        raise AuthError(AuthErrorKind.SERVICE_UNAVAILABLE)


async def _check_credentials(request: LoginRequest) -> User:
    """Return the identity for valid credentials.

    Unknown email and wrong password produce the same error.
    """
    user_service = UserService()
    auth_service = AuthService()

    try:
        result = await user_service.get_by_email(request.email)
    except (asyncpg.PostgresError, DatabaseUnavailableError, OSError) as e:
        logger.error("login_lookup_failed", error=str(e))
        raise AuthError(AuthErrorKind.SERVICE_UNAVAILABLE)
    if result is None:
        raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

    user, password_hash = result
    if not auth_service.verify_password(request.password, password_hash):
        logger.warning("login_password_mismatch", user_id=str(user.id))
        raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

    return user


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, response: Response) -> AuthResponse:
    """Register a customer account.

    The role is always ``user`` regardless of the request body. Sets the
    user session cookie.

    Raises:
        AuthError 400: DUPLICATE_EMAIL
    """
    user = await _register(request, roles=["user"])

    token = AuthService().issue_token(str(user.id))
    set_session_cookie(response, USER_COOKIE_NAME, token)

    logger.info("user_signed_up", user_id=str(user.id))
    return AuthResponse(message="User registered successfully", token=token, user=user)


@router.post("/login")
async def login(request: LoginRequest, response: Response) -> AuthResponse:
    """Log a customer in and set the user session cookie.

    Raises:
        AuthError 401: INVALID_CREDENTIALS
        AuthError 403: FORBIDDEN_CLIENT_ONLY for staff accounts
    """
    user = await _check_credentials(request)
    require_client_only(user.roles)

    token = AuthService().issue_token(str(user.id))
    set_session_cookie(response, USER_COOKIE_NAME, token)

    logger.info("user_logged_in", user_id=str(user.id))
    return AuthResponse(message="Login successful", token=token, user=user)


@router.post("/admin/signup", status_code=status.HTTP_201_CREATED)
async def admin_signup(request: AdminSignupRequest, response: Response) -> AuthResponse:
    """Register a staff account (``admin`` unless ``moderator`` is requested).

    Sets the admin session cookie.

    Raises:
        AuthError 400: DUPLICATE_EMAIL
    """
    user = await _register(request, roles=[request.resolved_role])

    token = AuthService().issue_token(str(user.id))
    set_session_cookie(response, ADMIN_COOKIE_NAME, token)

    logger.info("admin_signed_up", user_id=str(user.id), roles=user.roles)
    return AuthResponse(message="Admin user registered successfully", token=token, user=user)


@router.post("/admin/login")
async def admin_login(request: LoginRequest, response: Response) -> AuthResponse:
    """Log a staff member in and set the admin session cookie.

    Raises:
        AuthError 401: INVALID_CREDENTIALS
        AuthError 403: FORBIDDEN_ADMIN_ONLY for customer accounts
    """
    user = await _check_credentials(request)
    require_admin_access(user.roles)

    token = AuthService().issue_token(str(user.id))
    set_session_cookie(response, ADMIN_COOKIE_NAME, token)

    logger.info("admin_logged_in", user_id=str(user.id))
    return AuthResponse(message="Admin login successful", token=token, user=user)


@router.post("/logout")
async def logout(
    response: Response,
    context: AuthContext = Depends(get_auth_context),
) -> MessageResponse:
    """Expire both session cookies."""
    clear_session_cookies(response)
    logger.info("user_logged_out", user_id=str(context.user.id))
    return MessageResponse(message="Logged out successfully")


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=current_user)


@router.post("/refresh-token")
async def refresh_token(request: Request, response: Response) -> RefreshResponse:
    """Issue a new session token, accepting a correctly signed expired one.

    The new token is written to the admin cookie when the old one came from
    it, and to the user cookie otherwise.

    Raises:
        AuthError 401: TOKEN_MISSING, TOKEN_INVALID or ACCOUNT_NOT_FOUND
    """
    session = await SessionService().refresh(request)
    set_session_cookie(response, session.carrier.cookie_name, session.token)

    message = (
        "Session expired and has been renewed"
        if session.was_expired
        else "Token refreshed successfully"
    )
    return RefreshResponse(
        message=message,
        token=session.token,
        refreshed=session.was_expired,
        user=session.user,
    )


@router.post("/forgot-password")
async def forgot_password(request: ForgotPasswordRequest) -> MessageResponse:
    """Email a password reset link.

    The response is the same whether or not the email is registered.

    Raises:
        AuthError 500: EMAIL_DELIVERY_FAILED
        AuthError 503: SERVICE_UNAVAILABLE
    """
    message = await PasswordResetService().request_reset(request.email)
    return MessageResponse(message=message)


@router.get("/reset-password/verify")
async def verify_reset_token(token: str = Query(..., min_length=1, max_length=256)) -> MessageResponse:
    """Check a password reset token without consuming it.

    Raises:
        AuthError 400: RESET_TOKEN_INVALID_OR_EXPIRED
    """
    await PasswordResetService().verify_reset(token)
    return MessageResponse(message="Reset token is valid")


@router.post("/reset-password")
async def reset_password(request: ResetPasswordRequest) -> MessageResponse:
    """Set a new password using a reset token. Each token works once.

    Raises:
        AuthError 400: RESET_TOKEN_INVALID_OR_EXPIRED
    """
    await PasswordResetService().redeem_reset(request.token, request.password)
    return MessageResponse(message="Password has been reset successfully")
