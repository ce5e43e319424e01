"""
FastAPI dependencies shared by the routers.

The document store, storefront registry and commerce client live on
`app.state`, set up by the application lifespan.
"""
import json
from typing import Annotated, Any, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from app.core.exceptions import PayloadError, WebhookAuthError
from app.core.logging import get_logger
from app.core.security import verify_admin_key, verify_shopify_hmac
from app.repositories.base import DocumentStore
from app.repositories.catalog import CatalogRepository
from app.services.deletion import DeletionCascade
from app.services.drift_corrector import DriftCorrector
from app.services.mirror_updater import MirrorUpdater
from app.services.replica_propagator import ReplicaPropagator
from app.services.storefronts import StorefrontRegistry

logger = get_logger(__name__)


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_registry(request: Request) -> StorefrontRegistry:
    return request.app.state.registry


def get_commerce(request: Request) -> Any:
    return request.app.state.commerce


def get_catalog_repository(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> CatalogRepository:
    """Dependency to get catalog repository."""
    return CatalogRepository(store)


Repository = Annotated[CatalogRepository, Depends(get_catalog_repository)]
Registry = Annotated[StorefrontRegistry, Depends(get_registry)]
Commerce = Annotated[Any, Depends(get_commerce)]


def get_mirror_updater(repo: Repository, commerce: Commerce) -> MirrorUpdater:
    return MirrorUpdater(repo, commerce)


def get_propagator(repo: Repository, registry: Registry) -> ReplicaPropagator:
    return ReplicaPropagator(repo, registry)


def get_deletion_cascade(repo: Repository, registry: Registry) -> DeletionCascade:
    return DeletionCascade(repo, registry)


def get_drift_corrector(
    repo: Repository,
    registry: Registry,
    commerce: Commerce,
    deletion: Annotated[DeletionCascade, Depends(get_deletion_cascade)],
) -> DriftCorrector:
    return DriftCorrector(repo, registry, commerce, deletion)


async def verified_webhook_payload(request: Request) -> dict[str, Any]:
    """
    Verify the Shopify HMAC over the raw body, then parse it as JSON.

    Raises:
        WebhookAuthError: Signature header missing or wrong
        PayloadError: Body is not a JSON object
    """
    body = await request.body()
    if not verify_shopify_hmac(request.headers.get("X-Shopify-Hmac-Sha256"), body):
        logger.warning("Rejected webhook with invalid signature")
        raise WebhookAuthError("Invalid webhook signature")

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise PayloadError("Request body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object")
    return payload


async def require_admin_key(
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject admin requests without a valid `X-Admin-Key` header."""
    if not verify_admin_key(x_admin_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin key",
        )


WebhookPayload = Annotated[dict[str, Any], Depends(verified_webhook_payload)]
