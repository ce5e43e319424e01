"""
Health check and monitoring endpoints.
"""
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.database import is_db_available
from app.dependencies import Registry, get_store
from app.repositories.base import DocumentStore

router = APIRouter(tags=["health"])


@router.get("/")
async def root() -> dict:
    """API root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@router.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
    }


@router.get("/health/ready")
async def readiness_check(
    store: Annotated[DocumentStore, Depends(get_store)],
    registry: Registry,
) -> dict:
    """
    Readiness probe - checks if the service can handle requests.
    Verifies the document store answers a read.
    """
    try:
        await store.get("_health", "ping")
        store_status = "connected"
    except Exception as e:
        store_status = f"error: {str(e)}"

    is_ready = store_status == "connected"

    return {
        "status": "ready" if is_ready else "not_ready",
        "checks": {
            "document_store": store_status,
            "backend": type(store).__name__,
            "database": "connected" if is_db_available() else "unavailable",
            "storefronts": registry.storefronts,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """
    Liveness probe - checks if the service is alive.
    Simple check that doesn't verify dependencies.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
