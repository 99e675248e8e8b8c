"""Authentication primitives: bcrypt password hashing and JWT session tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import bcrypt
import jwt
import structlog

from storageup.config import get_settings
from storageup.services.errors import ConfigurationError

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenStatus(str, Enum):
    """Outcome of verifying a session token."""

    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenVerification:
    """Verification result. ``subject_id`` is only set for VALID tokens."""

    status: TokenStatus
    subject_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return self.status is TokenStatus.VALID


class AuthService:
    """Service for password hashing and session token issue/verification."""

    def __init__(self, clock: Optional[Clock] = None):
        self.settings = get_settings()
        if not self.settings.jwt_secret:
            raise ConfigurationError("JWT_SECRET is not configured")
        self.clock = clock or utc_now

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Malformed hashes or inputs count as a mismatch.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except (ValueError, TypeError, AttributeError):
            logger.warning("password_verification_error")
            return False

    def issue_token(self, subject_id: str, ttl: Optional[timedelta] = None) -> str:
        """Create a signed session token for an identity.

        Args:
            subject_id: Identity id (placed in the 'sub' claim)
            ttl: Token lifetime; defaults to JWT_EXPIRE_MINUTES

        Returns:
            Encoded JWT string
        """
        if ttl is None:
            ttl = timedelta(minutes=self.settings.jwt_expire_minutes)
        now = self.clock()
        payload = {
            "sub": subject_id,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        token = jwt.encode(payload, self.settings.jwt_secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "session_token_issued",
            user_id=subject_id,
            expires_seconds=int(ttl.total_seconds()),
        )
        return token

    def verify_token(self, token: str) -> TokenVerification:
        """Verify a session token's signature, then its expiry.

        Expiry is only evaluated once the signature has been accepted, so a
        tampered token is always INVALID and never EXPIRED.

        Args:
            token: Encoded JWT string

        Returns:
            TokenVerification with status VALID, EXPIRED or INVALID
        """
        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "exp"],
                },
            )
        except jwt.InvalidTokenError as e:
            logger.info("session_token_rejected", reason=type(e).__name__)
            return TokenVerification(status=TokenStatus.INVALID)

        subject_id = claims.get("sub")
        try:
            exp = int(claims["exp"])
        except (TypeError, ValueError):
            return TokenVerification(status=TokenStatus.INVALID)
        if not isinstance(subject_id, str) or not subject_id:
            return TokenVerification(status=TokenStatus.INVALID)

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if self.clock() >= expires_at:
            return TokenVerification(status=TokenStatus.EXPIRED, expires_at=expires_at)

        return TokenVerification(
            status=TokenStatus.VALID,
            subject_id=subject_id,
            expires_at=expires_at,
        )

    def decode_unsafe(self, token: str) -> Optional[dict[str, Any]]:
        """Read a token's claims without checking signature or expiry.

        Only the refresh flow may use this, and only after ``verify_token``
        reported EXPIRED. Never authorize anything from these claims alone.

        Returns:
            Claims dict, or None if the token is not a decodable JWT
        """
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
