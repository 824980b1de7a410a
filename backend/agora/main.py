"""
Agora Backend Application.

FastAPI application for a community discussion forum with role- and
permission-based access control.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from agora.api.envelope import error_envelope
from agora.api.v1 import router as api_v1_router
from agora.core.config import Settings, get_settings, settings
from agora.core.database import close_db, init_db
from agora.core.exceptions import ForumError
from agora.modules.auth import CredentialVerifier, HttpMailer, Mailer


def init_services(
    app: FastAPI,
    app_settings: Settings,
    mailer: Mailer | None = None,
) -> None:
    """
    Build collaborators once and attach them to ``app.state``.

    Raises:
        ConfigurationError: JWT signing secret is missing
    """
    app.state.settings = app_settings
    app.state.verifier = CredentialVerifier.from_settings(app_settings)
    app.state.mailer = mailer or HttpMailer.from_settings(app_settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting Agora Backend...")

    # Fails fast without a signing secret
    init_services(app, get_settings())

    await init_db()
    logger.info("Database initialized")

    logger.info("Agora Backend started successfully")

    yield

    logger.info("Shutting down Agora Backend...")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Agora Forum Backend

    ## Features

    - **Auth**: Signup, login, password reset with signed session tokens
    - **Forum**: Threads and threaded comments with likes
    - **Moderation**: Locking, visibility, comment removal
    - **Admin**: Role and permission management
    """,
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError) -> ORJSONResponse:
    """Render service errors as the standard envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return ORJSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.message, exc.category),
        headers=headers,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Unexpected failures are logged and reported as server errors."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return ORJSONResponse(
        status_code=500,
        content=error_envelope("Internal server error", "server_error"),
    )


# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


@app.get("/", tags=["System"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }
