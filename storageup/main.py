"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storageup.api.admin import router as admin_router
from storageup.api.auth import router as auth_router
from storageup.api.client import router as client_router
from storageup.api.error_handling import register_exception_handlers
from storageup.api.middleware import CorrelationIdMiddleware
from storageup.api.routes import router
from storageup.api.users import router as users_router
from storageup.config import get_settings
from storageup.database import close_database, init_database, run_migrations
from storageup.services.auth_service import AuthService
from storageup.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: a missing JWT_SECRET fails here and the app refuses to start
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")
    AuthService()

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - authenticated routes will return 503",
        )

    logger.info(
        "application_started",
        environment=settings.environment,
        log_level=settings.log_level,
        email_channel=settings.email_channel,
    )

    yield

    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="StorageUp Backend API",
    description="Customer, staff and session management for StorageUp self-storage",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Session cookies require credentialed CORS
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=".*",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(users_router)
app.include_router(client_router)
app.include_router(router)
