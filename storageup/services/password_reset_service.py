"""Password reset tickets: issue, verify and redeem.

Only ``sha256(raw_token)`` and an absolute expiry are stored on the identity.
The raw token leaves the server exactly once, inside the emailed link.
Requesting a new ticket overwrites the previous one, so at most one ticket
per identity is ever redeemable.
"""

import hashlib
import secrets
from datetime import timedelta
from typing import Optional

import asyncpg
import structlog

from storageup.config import get_settings
from storageup.database import DatabaseUnavailableError
from storageup.models.user import User
from storageup.services.auth_service import Clock, utc_now
from storageup.services.email_service import EmailService
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

RESET_TOKEN_BYTES = 32

# Identical for known and unknown emails so responses cannot enumerate accounts.
RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class PasswordResetService:
    """Service for the password reset ticket lifecycle."""

    def __init__(
        self,
        user_service: Optional[UserService] = None,
        email_service: Optional[EmailService] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = get_settings()
        self.user_service = user_service or UserService()
        self.email_service = email_service or EmailService()
        self.clock = clock or utc_now

    async def request_reset(self, email: str) -> str:
        """Issue a reset ticket for ``email`` and mail the link.

        Args:
            email: Email the reset was requested for (any casing)

        Returns:
            The generic confirmation message

        Raises:
            AuthError: EMAIL_DELIVERY_FAILED if the email could not be sent;
                the ticket is removed again before raising.
                SERVICE_UNAVAILABLE if the credential store fails
        """
        try:
            result = await self.user_service.get_by_email(email)
            if result is None:
                logger.info("password_reset_requested_unknown_email")
                return RESET_REQUESTED_MESSAGE

            user, _ = result
            raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
            token_hash = hash_reset_token(raw_token)
            expires_minutes = self.settings.password_reset_token_expire_minutes
            expires_at = self.clock() + timedelta(minutes=expires_minutes)

            await self.user_service.set_password_reset(user.id, token_hash, expires_at)
        except (asyncpg.PostgresError, DatabaseUnavailableError, OSError) as e:
            logger.error("password_reset_store_failed", error=str(e))
            raise AuthError(AuthErrorKind.SERVICE_UNAVAILABLE)

        reset_url = f"{self.settings.frontend_url.rstrip('/')}/reset-password?token={raw_token}"
        try:
            await self.email_service.send_password_reset_email(
                to=user.email,
                name=user.name,
                reset_url=reset_url,
                expires_minutes=expires_minutes,
            )
        except Exception as e:
            await self.user_service.clear_password_reset(user.id, token_hash=token_hash)
            logger.error(
                "password_reset_rolled_back",
                user_id=str(user.id),
                error=str(e),
            )
            raise AuthError(AuthErrorKind.EMAIL_DELIVERY_FAILED) from e

        logger.info(
            "password_reset_requested",
            user_id=str(user.id),
            expires_at=expires_at.isoformat(),
        )
        return RESET_REQUESTED_MESSAGE

    async def verify_reset(self, raw_token: str) -> User:
        """Check that ``raw_token`` matches a live ticket. Read-only.

        Raises:
            AuthError: RESET_TOKEN_INVALID_OR_EXPIRED
        """
        user = await self.user_service.find_by_reset_token(
            hash_reset_token(raw_token), self.clock()
        )
        if user is None:
            raise AuthError(AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED)
        return user

    async def redeem_reset(self, raw_token: str, new_password: str) -> User:
        """Set a new password and consume the ticket in one store operation.

        Raises:
            AuthError: RESET_TOKEN_INVALID_OR_EXPIRED
        """
        user = await self.user_service.redeem_password_reset(
            hash_reset_token(raw_token), self.clock(), new_password
        )
        if user is None:
            logger.warning("password_reset_redeem_rejected")
            raise AuthError(AuthErrorKind.RESET_TOKEN_INVALID_OR_EXPIRED)

        logger.info("password_reset_completed", user_id=str(user.id))
        return user
