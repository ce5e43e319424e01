"""
Shopify webhook routes.

Every POST is HMAC-verified against the raw body before it is parsed.
"""
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.core.exceptions import MirrorNotFoundError, PayloadError
from app.core.logging import get_logger
from app.dependencies import (
    WebhookPayload,
    get_deletion_cascade,
    get_drift_corrector,
    get_mirror_updater,
    get_propagator,
)
from app.schemas.catalog import CanonicalProduct, normalize_shopify_id, parse_canonical_product
from app.schemas.reports import MirrorUpdate, PropagationResult
from app.services.deletion import DeletionCascade
from app.services.drift_corrector import DriftCorrector
from app.services.mirror_updater import MirrorUpdater
from app.services.replica_propagator import ReplicaPropagator

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks/shopify", tags=["webhooks"])

Updater = Annotated[MirrorUpdater, Depends(get_mirror_updater)]
Propagator = Annotated[ReplicaPropagator, Depends(get_propagator)]


def stage_failure(stage: str, error: str, message: str, **applied: Any) -> JSONResponse:
    """500 body for a failed stage; `applied` reports what was written before it failed."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "stage": stage, "error": error, "message": message, **applied},
    )


def propagation_body(update: MirrorUpdate, result: PropagationResult) -> dict[str, Any]:
    return {
        "ok": True,
        "productId": result.shopify_id,
        "updated": [ref.model_dump(by_alias=True) for ref in result.updated],
        "storefronts": {
            "succeeded": result.succeeded_storefronts,
            "failed": result.failed_storefronts,
        },
        "marketsChanged": update.markets_changed,
        "publicationChanged": update.publication_changed,
        "secondaryEffects": [
            effect.model_dump()
            for effect in (update.auto_publish, result.cart_fan_out)
            if effect is not None
        ],
    }


async def propagate_update(
    propagator: ReplicaPropagator,
    update: MirrorUpdate,
    canonical: CanonicalProduct,
) -> Any:
    """Run propagation for a merged mirror; map failures to a 500 body."""
    try:
        result = await propagator.propagate(update.mirror, canonical)
    except Exception as e:
        logger.error("Propagation failed", shopify_id=canonical.id, error=str(e))
        return stage_failure("propagation", "Failed to update storefront products", str(e))

    if not result.ok:
        logger.error(
            "Propagation failed for some storefronts",
            shopify_id=canonical.id,
            failed=result.failed_storefronts,
        )
        errors = "; ".join(f"{o.storefront}: {o.error}" for o in result.outcomes if not o.succeeded)
        body = propagation_body(update, result)
        return stage_failure(
            "propagation",
            "Failed to update storefront products",
            errors,
            productId=body["productId"],
            updated=body["updated"],
            storefronts=body["storefronts"],
            secondaryEffects=body["secondaryEffects"],
        )

    return propagation_body(update, result)


@router.post("/products-update")
async def products_update(
    payload: WebhookPayload,
    updater: Updater,
    propagator: Propagator,
) -> Any:
    """Merge a product update into its mirror record, then into every replica."""
    canonical = parse_canonical_product(payload)
    logger.info("Received products/update webhook", shopify_id=canonical.id, title=canonical.title)

    try:
        update = await updater.update(canonical)
    except MirrorNotFoundError:
        logger.info("No mirror record for product, skipping", shopify_id=canonical.id)
        return {"ok": True, "productId": canonical.id, "skipped": True, "message": "Product not tracked"}
    except Exception as e:
        logger.error("Mirror update failed", shopify_id=canonical.id, error=str(e))
        return stage_failure("mirror", "Failed to update shopifyItems document", str(e))

    return await propagate_update(propagator, update, canonical)


@router.post("/products-create")
async def products_create(
    payload: WebhookPayload,
    updater: Updater,
    propagator: Propagator,
) -> Any:
    """Create the mirror record for a new product."""
    canonical = parse_canonical_product(payload)
    logger.info("Received products/create webhook", shopify_id=canonical.id, title=canonical.title)

    try:
        update = await updater.create(canonical)
    except Exception as e:
        logger.error("Mirror create failed", shopify_id=canonical.id, error=str(e))
        return stage_failure("mirror", "Failed to create shopifyItems document", str(e))

    if update.created:
        return {
            "ok": True,
            "productId": canonical.id,
            "docId": update.mirror.doc_id,
            "created": True,
            "secondaryEffects": [update.auto_publish.model_dump()],
        }

    return await propagate_update(propagator, update, canonical)


@router.post("/products-delete")
async def products_delete(
    payload: WebhookPayload,
    deletion: Annotated[DeletionCascade, Depends(get_deletion_cascade)],
) -> Any:
    """Remove a deleted product from the mirror and every storefront."""
    shopify_id = normalize_shopify_id(payload.get("id"))
    if not shopify_id:
        raise PayloadError("Missing product id")

    logger.info("Received products/delete webhook", shopify_id=shopify_id)
    try:
        report = await deletion.delete_product(shopify_id)
    except Exception as e:
        logger.error("Deletion cascade failed", shopify_id=shopify_id, error=str(e))
        return stage_failure("deletion", "Failed to delete product", str(e))

    return {"ok": True, "productId": shopify_id, "deletion": report.model_dump(by_alias=True)}


@router.post("/inventory-levels-update")
async def inventory_levels_update(
    payload: WebhookPayload,
    drift: Annotated[DriftCorrector, Depends(get_drift_corrector)],
) -> Any:
    """Sync a changed inventory level into the mirror and the replicas."""
    inventory_item_id = normalize_shopify_id(payload.get("inventory_item_id"))
    if not inventory_item_id:
        return {"ok": False, "message": "Missing inventory_item_id"}

    logger.info(
        "Received inventory_levels/update webhook",
        inventory_item_id=inventory_item_id,
        available=payload.get("available"),
        location_id=payload.get("location_id"),
    )
    try:
        result = await drift.sync_inventory_level(
            inventory_item_id,
            payload.get("available"),
            payload.get("location_id"),
        )
    except Exception as e:
        logger.error("Inventory sync failed", inventory_item_id=inventory_item_id, error=str(e))
        return stage_failure("inventory", "Failed to sync inventory level", str(e))

    return {
        "ok": True,
        "inventoryItemId": inventory_item_id,
        "productId": result.shopify_id,
        "result": result.model_dump(by_alias=True),
    }


@router.get("/products-update")
async def products_update_active() -> dict:
    return {"message": "Shopify products/update webhook endpoint is active"}


@router.get("/products-create")
async def products_create_active() -> dict:
    return {"message": "Shopify products/create webhook endpoint is active"}


@router.get("/products-delete")
async def products_delete_active() -> dict:
    return {"message": "Shopify products/delete webhook endpoint is active"}


@router.get("/inventory-levels-update")
async def inventory_levels_update_active() -> dict:
    return {"message": "Shopify inventory_levels/update webhook endpoint is active"}
