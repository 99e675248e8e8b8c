"""Services package exports."""

from storageup.services.errors import AuthError, AuthErrorKind
from storageup.services.logging_service import configure_logging, get_logger

__all__ = [
    "AuthError",
    "AuthErrorKind",
    "configure_logging",
    "get_logger",
]
