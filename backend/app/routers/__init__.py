"""
API routers package.
"""
from app.routers.admin import router as admin_router
from app.routers.health import router as health_router
from app.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "webhooks_router",
    "admin_router",
]
