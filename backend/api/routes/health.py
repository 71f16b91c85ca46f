"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shared.config import get_settings
from shared.exceptions import StoreError

from ..dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    store: str
    models: int
    providers: list[str]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running.
    """
    return HealthResponse(status="healthy", version=get_settings().app_version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    container: ServiceContainer = Depends(get_container),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Loads the model registry (which reads the store when the Supabase
    backend is configured) and lists providers with credentials.
    """
    from modules.generations import get_providers

    try:
        models = len(container.registry.list_models())
        status = "ready"
    except StoreError as e:
        logger.error(f"Readiness check failed: {e.message}")
        models = 0
        status = "degraded"

    return ReadinessResponse(
        status=status,
        store=container.settings.store_backend,
        models=models,
        providers=sorted(get_providers(container.settings)),
    )
