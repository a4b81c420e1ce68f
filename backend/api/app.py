"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import get_settings
from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CareLinkError,
    ConflictError,
    DocumentNotFoundError,
    NotFoundError,
    StorePermissionDeniedError,
    ValidationError,
)
from .routes import accounts, assignments, health, linking

logger = logging.getLogger(__name__)

# First match wins; anything else is an upstream failure
ERROR_STATUS: list[tuple[type[CareLinkError], int]] = [
    (NotFoundError, 404),
    (DocumentNotFoundError, 404),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (StorePermissionDeniedError, 403),
    (ConflictError, 409),
]


def status_for(error: CareLinkError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 503


async def carelink_error_handler(request: Request, exc: CareLinkError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    # Startup
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(
        "Starting %s on %s:%s (store=%s, credentials=%s)",
        settings.app_name, settings.host, settings.port,
        settings.document_store, settings.credential_backend,
    )
    yield
    # Shutdown
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Identity, linking and assignment progress engine for CareLink",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.add_exception_handler(CareLinkError, carelink_error_handler)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(accounts.router, prefix="/api/accounts", tags=["accounts"])
    app.include_router(linking.router, prefix="/api/linking", tags=["linking"])
    app.include_router(assignments.router, prefix="/api/assignments", tags=["assignments"])

    return app


# Application instance for uvicorn
app = create_app()
