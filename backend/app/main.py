"""
Storefront Sync API - Main Application Entry Point.

Receives Shopify product and inventory webhooks and reconciles the
canonical product state into the mirror records and storefront replicas.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import async_session_factory, close_db, init_db, is_db_available
from app.core.logging import configure_logging, get_logger
from app.middleware import ErrorHandlerMiddleware, LoggerContextMiddleware, RequestIdMiddleware
from app.repositories import InMemoryDocumentStore, SqlDocumentStore
from app.routers import admin_router, health_router, webhooks_router
from app.services.shopify_client import ShopifyAdminClient
from app.services.storefronts import StorefrontRegistry

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    await init_db()
    if is_db_available():
        app.state.store = SqlDocumentStore(async_session_factory)
    else:
        app.state.store = InMemoryDocumentStore()

    app.state.registry = StorefrontRegistry.from_settings()
    app.state.commerce = ShopifyAdminClient()
    if not app.state.commerce.configured:
        logger.warning("Shopify Admin API credentials not configured")

    logger.info(
        "Document store ready",
        backend=type(app.state.store).__name__,
        storefronts=app.state.registry.storefronts,
    )

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await app.state.store.close()
    await close_db()


def create_app() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Shopify catalog reconciliation API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - last added = outermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Admin-Key",
            "X-Request-ID",
        ],
    )

    # Clears per-request log context, so it wraps everything else
    app.add_middleware(LoggerContextMiddleware)

    # Register routers
    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router, prefix="/api")

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
