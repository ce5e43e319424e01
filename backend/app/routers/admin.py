"""
Admin API routes: drift correction, reprocessing and storefront assignment.
"""
from typing import Annotated, Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.core.exceptions import MirrorNotFoundError
from app.core.logging import get_logger
from app.dependencies import (
    Registry,
    Repository,
    get_drift_corrector,
    get_mirror_updater,
    get_propagator,
    require_admin_key,
)
from app.services.drift_corrector import DriftCorrector
from app.services.mirror_updater import MirrorUpdater
from app.services.replica_propagator import ReplicaPropagator

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


class DriftCorrectionRequest(BaseModel):
    shopify_ids: Optional[list[str]] = Field(None, alias="shopifyIds")


class StorefrontAssignment(BaseModel):
    storefronts: list[str]


async def run_drift_correction(corrector: DriftCorrector, shopify_ids: Optional[list[str]]) -> None:
    """Background task wrapper that logs the report instead of raising."""
    try:
        report = await corrector.correct(shopify_ids)
        logger.info("Scheduled drift correction completed", **report.model_dump())
    except Exception as e:
        logger.error("Scheduled drift correction failed", error=str(e))


@router.post("/drift-correction", status_code=status.HTTP_202_ACCEPTED)
async def schedule_drift_correction(
    background_tasks: BackgroundTasks,
    corrector: Annotated[DriftCorrector, Depends(get_drift_corrector)],
    body: Optional[DriftCorrectionRequest] = None,
) -> dict:
    """Schedule a drift-correction pass over all (or the given) mirror records."""
    shopify_ids = body.shopify_ids if body else None
    background_tasks.add_task(run_drift_correction, corrector, shopify_ids)
    logger.info("Drift correction scheduled", shopify_ids=shopify_ids)
    return {"ok": True, "status": "scheduled", "shopifyIds": shopify_ids}


@router.post("/shopify-items/{shopify_id}/reprocess")
async def reprocess_product(
    shopify_id: str,
    repo: Repository,
    propagator: Annotated[ReplicaPropagator, Depends(get_propagator)],
) -> Any:
    """Re-run propagation from the stored mirror snapshot."""
    mirror = await repo.get_mirror(shopify_id)
    if mirror is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mirror record not found",
        )
    if mirror.raw_product is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Mirror record has no product snapshot",
        )

    result = await propagator.propagate(mirror, mirror.raw_product)
    return {
        "ok": result.ok,
        "productId": mirror.shopify_id,
        "updated": [ref.model_dump(by_alias=True) for ref in result.updated],
        "storefronts": {
            "succeeded": result.succeeded_storefronts,
            "failed": result.failed_storefronts,
        },
    }


@router.put("/shopify-items/{shopify_id}/storefronts")
async def assign_storefronts(
    shopify_id: str,
    assignment: StorefrontAssignment,
    registry: Registry,
    updater: Annotated[MirrorUpdater, Depends(get_mirror_updater)],
) -> dict:
    """Set the storefronts a product is published to."""
    unknown = [s for s in assignment.storefronts if s not in registry]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown storefronts: {', '.join(unknown)}",
        )

    try:
        mirror = await updater.assign_storefronts(shopify_id, assignment.storefronts)
    except MirrorNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mirror record not found",
        )

    return {
        "ok": True,
        "productId": mirror.shopify_id,
        "storefronts": mirror.storefronts,
        "processedStorefronts": mirror.processed_storefronts,
        "storefrontUsageCount": mirror.storefront_usage_count,
    }


@router.post("/variants/{shopify_variant_id}/sync")
async def sync_variant(
    shopify_variant_id: str,
    drift: Annotated[DriftCorrector, Depends(get_drift_corrector)],
    inventory_item_id: Optional[str] = None,
) -> dict:
    """Sync one variant against live Shopify inventory."""
    result = await drift.sync_variant(shopify_variant_id, inventory_item_id)
    return {"ok": True, "result": result.model_dump(by_alias=True)}
