"""Closed error taxonomy for authentication, authorization and identity flows.

Every failure the auth stack can produce is one member of ``AuthErrorKind``.
Each member carries a stable machine-readable code, the HTTP status it maps
to, and a default client-facing message. Components raise ``AuthError`` with
a kind; callers branch on ``error.kind``, never on message text.
"""

from enum import Enum
from typing import Any, Optional


class AuthErrorKind(Enum):
    """Every failure kind with its (code, HTTP status, default message)."""

    TOKEN_MISSING = ("TOKEN_MISSING", 401, "Authentication token is missing")
    TOKEN_INVALID = ("TOKEN_INVALID", 401, "Invalid token")
    TOKEN_EXPIRED = ("TOKEN_EXPIRED", 401, "Token expired")
    ACCOUNT_NOT_FOUND = ("ACCOUNT_NOT_FOUND", 401, "User no longer exists")
    INVALID_CREDENTIALS = ("INVALID_CREDENTIALS", 401, "Invalid email or password")
    FORBIDDEN_CLIENT_ONLY = (
        "FORBIDDEN_CLIENT_ONLY",
        403,
        "Access denied. Client credentials required.",
    )
    FORBIDDEN_ADMIN_ONLY = (
        "FORBIDDEN_ADMIN_ONLY",
        403,
        "Access denied. Admin privileges required.",
    )
    INSUFFICIENT_ROLE = (
        "INSUFFICIENT_ROLE",
        403,
        "Your role is not authorized to access this route",
    )
    VALIDATION_ERROR = ("VALIDATION_ERROR", 400, "Validation error")
    DUPLICATE_EMAIL = ("DUPLICATE_EMAIL", 400, "User with this email already exists")
    RESET_TOKEN_INVALID_OR_EXPIRED = (
        "RESET_TOKEN_INVALID_OR_EXPIRED",
        400,
        "Password reset token is invalid or has expired",
    )
    USER_NOT_FOUND = ("USER_NOT_FOUND", 404, "User not found")
    CANNOT_DELETE_SELF = ("CANNOT_DELETE_SELF", 403, "Cannot delete your own account")
    EMAIL_DELIVERY_FAILED = (
        "EMAIL_DELIVERY_FAILED",
        500,
        "There was an error sending the email. Please try again later.",
    )
    SERVICE_UNAVAILABLE = (
        "SERVICE_UNAVAILABLE",
        503,
        "Authentication service temporarily unavailable",
    )

    def __init__(self, code: str, status_code: int, default_message: str):
        self.code = code
        self.status_code = status_code
        self.default_message = default_message


class AuthError(Exception):
    """A failure from the auth stack, tagged with its ``AuthErrorKind``."""

    def __init__(
        self,
        kind: AuthErrorKind,
        message: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.kind = kind
        self.message = message or kind.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing."""
