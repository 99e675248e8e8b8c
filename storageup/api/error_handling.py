"""Exception handlers rendering every failure in one error envelope."""

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storageup.services.errors import AuthError, AuthErrorKind

logger = structlog.get_logger(__name__)


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    detail: str,
    details: object = None,
) -> JSONResponse:
    # Use correlation ID from middleware if available, otherwise generate
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    content = {
        "success": False,
        "error": code,
        "detail": detail,
        "correlation_id": correlation_id,
    }
    if details is not None:
        content["details"] = details

    headers = {"X-Correlation-Id": correlation_id}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for AuthError and request validation errors."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "auth_failed",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.code,
        )
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with a 400 and a readable detail."""
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
            message = first_error.get("msg", "Validation failed")
            detail = f"Field '{field}': {message}"
        else:
            detail = "Request validation failed"

        messages = [error.get("msg", "") for error in errors]

        logger.warning(
            "validation_error",
            path=request.url.path,
            detail=detail,
        )

        kind = AuthErrorKind.VALIDATION_ERROR
        return _error_response(request, kind.status_code, kind.code, detail, messages)
