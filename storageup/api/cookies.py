"""Session cookie helpers.

Both session cookies are HttpOnly and SameSite=Strict, and Secure in
production. Logging out expires both names regardless of which one was in
use.
"""

from datetime import datetime, timezone

from fastapi import Response

from storageup.config import get_settings
from storageup.services.session_service import ADMIN_COOKIE_NAME, USER_COOKIE_NAME

SESSION_COOKIE_MAX_AGE = 7 * 24 * 60 * 60  # 7 days

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def set_session_cookie(response: Response, name: str, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=name,
        value=token,
        max_age=SESSION_COOKIE_MAX_AGE,
        expires=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_session_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (USER_COOKIE_NAME, ADMIN_COOKIE_NAME):
        response.set_cookie(
            key=name,
            value="",
            expires=_EPOCH,
            httponly=True,
            secure=settings.is_production,
            samesite="strict",
        )
