"""Session resolution, authentication and token refresh.

A session token can arrive through one of three carriers. They are tried in
the order of ``TOKEN_EXTRACTORS`` and the first one present wins:

1. the admin cookie (``adminToken``), which signals an elevated session,
2. the user cookie (``token``),
3. an ``Authorization: Bearer <token>`` header.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

import asyncpg
import structlog

from storageup.config import get_settings
from storageup.database import DatabaseUnavailableError
from storageup.models.user import User
from storageup.services.auth_service import AuthService, TokenStatus
from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.user_service import UserService

logger = structlog.get_logger(__name__)

ADMIN_COOKIE_NAME = "adminToken"
USER_COOKIE_NAME = "token"


class TokenCarrier(str, Enum):
    """Channel a session token arrived on."""

    ADMIN_COOKIE = "admin_cookie"
    USER_COOKIE = "user_cookie"
    BEARER_HEADER = "bearer_header"

    @property
    def cookie_name(self) -> str:
        """Cookie a refreshed token is written back to."""
        if self is TokenCarrier.ADMIN_COOKIE:
            return ADMIN_COOKIE_NAME
        return USER_COOKIE_NAME


def _from_admin_cookie(request: Any) -> Optional[str]:
    return request.cookies.get(ADMIN_COOKIE_NAME) or None


def _from_user_cookie(request: Any) -> Optional[str]:
    return request.cookies.get(USER_COOKIE_NAME) or None


def _from_bearer_header(request: Any) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme != "Bearer":
        return None
    return credentials.strip() or None


TOKEN_EXTRACTORS: tuple[tuple[TokenCarrier, Callable[[Any], Optional[str]]], ...] = (
    (TokenCarrier.ADMIN_COOKIE, _from_admin_cookie),
    (TokenCarrier.USER_COOKIE, _from_user_cookie),
    (TokenCarrier.BEARER_HEADER, _from_bearer_header),
)


@dataclass(frozen=True)
class TokenCandidate:
    token: Optional[str]
    carrier: Optional[TokenCarrier]


def extract_token(request: Any) -> TokenCandidate:
    """Find the session token on a request.

    Args:
        request: Anything exposing ``cookies`` and ``headers`` mappings

    Returns:
        The first token found with its carrier, or TokenCandidate(None, None)
    """
    for carrier, extractor in TOKEN_EXTRACTORS:
        token = extractor(request)
        if token:
            return TokenCandidate(token=token, carrier=carrier)
    return TokenCandidate(token=None, carrier=None)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated identity attached to a request for downstream guards."""

    user: User
    roles: frozenset[str]
    carrier: TokenCarrier


@dataclass(frozen=True)
class RefreshedSession:
    token: str
    carrier: TokenCarrier
    user: User
    was_expired: bool


class SessionService:
    """Turns inbound requests into authenticated identities."""

    def __init__(
        self,
        auth_service: Optional[AuthService] = None,
        user_service: Optional[UserService] = None,
    ):
        self.settings = get_settings()
        self.auth_service = auth_service or AuthService()
        self.user_service = user_service or UserService()

    async def authenticate(self, request: Any) -> AuthContext:
        """Resolve, verify and load the identity behind a request.

        Raises:
            AuthError: TOKEN_MISSING, TOKEN_INVALID, TOKEN_EXPIRED,
                ACCOUNT_NOT_FOUND or SERVICE_UNAVAILABLE
        """
        candidate = extract_token(request)
        if candidate.token is None:
            raise AuthError(AuthErrorKind.TOKEN_MISSING)

        verification = self.auth_service.verify_token(candidate.token)
        if verification.status is TokenStatus.INVALID:
            raise AuthError(AuthErrorKind.TOKEN_INVALID)
        if verification.status is TokenStatus.EXPIRED:
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED)

        user = await self._load_identity(verification.subject_id)
        context = AuthContext(
            user=user,
            roles=user.role_set,
            carrier=candidate.carrier,
        )
        structlog.contextvars.bind_contextvars(
            user_id=str(user.id),
            auth_carrier=candidate.carrier.value,
        )
        return context

    async def refresh(self, request: Any) -> RefreshedSession:
        """Issue a fresh token for the request's session, tolerating expiry.

        A token that failed signature verification never reaches the
        unverified decode below; only signature-valid EXPIRED tokens do.

        Raises:
            AuthError: TOKEN_MISSING, TOKEN_INVALID, ACCOUNT_NOT_FOUND or
                SERVICE_UNAVAILABLE
        """
        candidate = extract_token(request)
        if candidate.token is None:
            raise AuthError(AuthErrorKind.TOKEN_MISSING)

        verification = self.auth_service.verify_token(candidate.token)
        if verification.status is TokenStatus.INVALID:
            raise AuthError(AuthErrorKind.TOKEN_INVALID)

        was_expired = verification.status is TokenStatus.EXPIRED
        if was_expired:
            claims = self.auth_service.decode_unsafe(candidate.token)
            subject_id = claims.get("sub") if claims else None
            if not isinstance(subject_id, str) or not subject_id:
                raise AuthError(AuthErrorKind.TOKEN_INVALID)
        else:
            subject_id = verification.subject_id

        user = await self._load_identity(subject_id)
        token = self.auth_service.issue_token(str(user.id))

        if candidate.carrier is TokenCarrier.ADMIN_COOKIE:
            carrier = TokenCarrier.ADMIN_COOKIE
        else:
            carrier = TokenCarrier.USER_COOKIE

        logger.info(
            "session_token_refreshed",
            user_id=str(user.id),
            source=candidate.carrier.value,
            carrier=carrier.value,
            was_expired=was_expired,
        )
        return RefreshedSession(
            token=token,
            carrier=carrier,
            user=user,
            was_expired=was_expired,
        )

    async def _load_identity(self, subject_id: str) -> User:
        """Load a token's subject, failing closed on store errors."""
        try:
            user_id = UUID(subject_id)
        except (TypeError, ValueError):
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

        try:
            user = await asyncio.wait_for(
                self.user_service.get_by_id(user_id),
                timeout=self.settings.store_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("identity_lookup_timeout", user_id=subject_id)
            raise AuthError(AuthErrorKind.SERVICE_UNAVAILABLE)
        except (asyncpg.PostgresError, DatabaseUnavailableError, OSError) as e:
            logger.error("identity_lookup_failed", user_id=subject_id, error=str(e))
            raise AuthError(AuthErrorKind.SERVICE_UNAVAILABLE)

        if user is None:
            logger.warning("token_subject_missing", user_id=subject_id)
            raise AuthError(AuthErrorKind.ACCOUNT_NOT_FOUND)

        return user
