"""Service root and health endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from storageup.database import health_check as db_health_check

router = APIRouter()


@router.get("/")
async def root() -> dict:
    return {
        "message": "Welcome to StorageUp Backend API",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "auth": "/auth",
            "auth_admin": "/auth/admin",
            "users": "/users",
            "admin": "/admin",
            "client": "/client",
        },
    }


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format, and database connectivity
    """
    db_healthy = await db_health_check()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_healthy else "disconnected",
    }
