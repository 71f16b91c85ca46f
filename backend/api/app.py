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
from shared.exceptions import StoreError, VaryError

from .models.errors import ErrorResponse
from .routes import health
from modules.access.routes import (
    admin_router,
    models_router,
    progression_router,
    promo_router,
)
from modules.billing.routes import router as credits_router, stripe_router
from modules.generations.routes import router as generations_router
from modules.model_costs.routes import router as model_costs_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    # Startup
    settings = get_settings()
    logger.info(
        f"Starting vARY API on {settings.host}:{settings.port} "
        f"(store backend: {settings.store_backend})"
    )
    yield
    # Shutdown
    logger.info("Shutting down vARY API")


async def vary_error_handler(request: Request, exc: VaryError) -> JSONResponse:
    """Map module exceptions that reach the app to their status code."""
    if isinstance(exc, StoreError):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    body = ErrorResponse(**exc.to_dict())
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Credits, model access and progression for vARY",
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

    app.add_exception_handler(VaryError, vary_error_handler)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(credits_router, prefix="/api/credits", tags=["credits"])
    app.include_router(promo_router, prefix="/api/promo", tags=["promo"])
    app.include_router(admin_router, prefix="/api/admin", tags=["admin"])
    app.include_router(progression_router, prefix="/api/progression", tags=["progression"])
    app.include_router(models_router, prefix="/api/models", tags=["models"])
    app.include_router(model_costs_router, prefix="/api", tags=["models"])
    app.include_router(stripe_router, prefix="/api/stripe", tags=["stripe"])
    app.include_router(generations_router, prefix="/api/generations", tags=["generations"])

    return app


# Application instance for uvicorn
app = create_app()
