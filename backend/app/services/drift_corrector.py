"""
Drift correction: re-applies mirror state to storefront replicas out of
band, and syncs single variants against live Shopify inventory.
"""
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from app.core.exceptions import MirrorNotFoundError
from app.core.logging import get_logger
from app.repositories.catalog import CatalogRepository
from app.schemas.catalog import (
    CanonicalVariant,
    MirrorRecord,
    ReplicaProduct,
    StockRollup,
    normalize_shopify_id,
)
from app.schemas.reports import DriftReport, VariantSyncResult
from app.services.deletion import DeletionCascade
from app.services.replica_propagator import changed_fields, stock_updates
from app.services.shopify_client import ShopifyAPIError, ShopifyNotFoundError
from app.services.stock import aggregate_stock
from app.services.storefronts import StorefrontRegistry
from app.services.variant_matcher import match_variant_by_ids

logger = get_logger(__name__)


class DriftCorrector:
    """
    Heal divergence between mirror records and storefront replicas.

    Uses the same matching and stock primitives as propagation so the
    webhook and batch paths converge on the same state.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        registry: StorefrontRegistry,
        commerce: Any,
        deletion: Optional[DeletionCascade] = None,
    ) -> None:
        self.repository = repository
        self.registry = registry
        self.commerce = commerce
        self.deletion = deletion or DeletionCascade(repository, registry)

    def _storefronts(self, mirror: MirrorRecord) -> list[str]:
        storefronts = self.registry.storefronts
        return storefronts + [s for s in mirror.storefronts if s not in storefronts]

    async def correct(self, shopify_ids: Optional[Sequence[str]] = None) -> DriftReport:
        """
        Run drift correction over every mirror record (or only the given ids).

        Raises:
            MirrorNotFoundError: A requested id has no mirror record
        """
        report = DriftReport()

        if shopify_ids:
            mirrors = []
            for shopify_id in shopify_ids:
                mirror = await self.repository.get_mirror(shopify_id)
                if mirror is None:
                    raise MirrorNotFoundError(normalize_shopify_id(shopify_id))
                mirrors.append(mirror)
        else:
            mirrors = []
            for doc in await self.repository.list_mirror_documents():
                if not doc.data.get("shopifyId"):
                    logger.info("Skipping mirror record without shopifyId", doc_id=doc.id)
                    report.skipped += 1
                    continue
                try:
                    mirrors.append(self.repository.mirror_from_document(doc))
                except ValidationError as e:
                    logger.error("Invalid mirror record", doc_id=doc.id, error=str(e))
                    report.errors += 1

        for mirror in mirrors:
            await self._correct_mirror(mirror, report)

        logger.info("Drift correction finished", **report.model_dump())
        return report

    async def _correct_mirror(self, mirror: MirrorRecord, report: DriftReport) -> None:
        variants = mirror.raw_product.variants if mirror.raw_product else []
        rollup = aggregate_stock(variants)
        found_any = False

        for storefront in self._storefronts(mirror):
            try:
                replicas = await self.repository.find_replicas(storefront, mirror.shopify_id, mirror.doc_id)
                if not replicas:
                    continue
                found_any = True
                for replica in replicas:
                    product_updated, variant_count = await self.sync_replica_stock(replica, variants, rollup)
                    if product_updated or variant_count:
                        report.updated += 1
                        report.variant_updates += variant_count
            except Exception as e:
                logger.error(
                    "Drift correction failed for storefront",
                    shopify_id=mirror.shopify_id,
                    storefront=storefront,
                    error=str(e),
                )
                report.errors += 1

        if not found_any:
            logger.info("No storefront replicas for mirror record", shopify_id=mirror.shopify_id)
            report.skipped += 1

    async def sync_replica_stock(
        self,
        replica: ReplicaProduct,
        canonical_variants: Sequence[CanonicalVariant],
        rollup: StockRollup,
    ) -> tuple[bool, int]:
        """
        Bring one replica's rollup, variant stock and per-location levels
        in line with the mirror.

        Only differing values are written. Returns (product updated,
        variant updates).
        """
        storefront = replica.storefront
        product_updated = False
        if replica.rollup() != rollup:
            await self.repository.update_replica(storefront, replica.id, rollup.as_fields())
            product_updated = True

        variant_count = 0
        for variant in await self.repository.list_variants(storefront, replica.id):
            canonical = match_variant_by_ids(variant, canonical_variants)
            if canonical is None:
                continue
            updates = stock_updates(variant, canonical.quantity)
            if canonical.location_levels is not None:
                updates["inventory_levels"] = canonical.location_levels
            fields = changed_fields(variant.model_dump(by_alias=True), updates)
            if fields:
                await self.repository.update_variant(storefront, replica.id, variant.id, fields)
                variant_count += 1

        return product_updated, variant_count

    async def apply_inventory_quantity(
        self,
        inventory_item_id: Any,
        quantity: int,
        levels: Optional[list[dict[str, Any]]] = None,
    ) -> VariantSyncResult:
        """
        Write a variant's total inventory into the mirror snapshot, then
        into storefront replicas.
        """
        item_id = normalize_shopify_id(inventory_item_id)
        mirror = await self.repository.find_mirror_by_inventory_item(item_id)
        if mirror is None or mirror.raw_product is None:
            logger.warning("No mirror record holds inventory item", inventory_item_id=item_id)
            return VariantSyncResult(action="not_found", quantity=quantity)

        raw = mirror.raw_product
        extra = {"inventory_levels": levels} if levels is not None else {}
        raw.variants = [
            v.model_copy(update={"inventory_quantity": quantity, **extra}) if v.inventory_item_id == item_id else v
            for v in raw.variants
        ]
        rollup = aggregate_stock(raw.variants)
        await self.repository.update_mirror(mirror.doc_id, {"rawProduct": raw.snapshot(), **rollup.as_fields()})

        updated_replicas = 0
        for storefront in self._storefronts(mirror):
            try:
                for replica in await self.repository.find_replicas(storefront, mirror.shopify_id, mirror.doc_id):
                    product_updated, variant_count = await self.sync_replica_stock(replica, raw.variants, rollup)
                    if product_updated or variant_count:
                        updated_replicas += 1
            except Exception as e:
                logger.error(
                    "Failed to sync inventory to storefront",
                    shopify_id=mirror.shopify_id,
                    storefront=storefront,
                    error=str(e),
                )

        logger.info(
            "Synced inventory level",
            shopify_id=mirror.shopify_id,
            inventory_item_id=item_id,
            quantity=quantity,
            updated_replicas=updated_replicas,
        )
        return VariantSyncResult(
            action="updated",
            shopify_id=mirror.shopify_id,
            quantity=quantity,
            updated_replicas=updated_replicas,
        )

    async def sync_inventory_level(
        self,
        inventory_item_id: Any,
        available: Optional[int],
        location_id: Any = None,
    ) -> VariantSyncResult:
        """
        Handle an inventory level change at one location.

        The total across locations is fetched from Shopify; when that
        fails the location's `available` value is used.
        """
        levels = None
        try:
            inventory = await self.commerce.get_inventory_levels(inventory_item_id)
            quantity = inventory["totalAvailable"]
            levels = inventory["levels"]
        except Exception as e:
            logger.warning(
                "Could not fetch inventory levels, using webhook quantity",
                inventory_item_id=normalize_shopify_id(inventory_item_id),
                location_id=location_id,
                error=str(e),
            )
            quantity = available or 0

        return await self.apply_inventory_quantity(inventory_item_id, quantity, levels)

    async def sync_variant(
        self,
        shopify_variant_id: Any,
        inventory_item_id: Any = None,
    ) -> VariantSyncResult:
        """
        Sync one variant against live Shopify inventory.

        When the inventory is gone upstream, checks whether the whole
        product was deleted and runs the matching deletion cascade.
        """
        variant_id = normalize_shopify_id(shopify_variant_id)
        item_id = normalize_shopify_id(inventory_item_id)

        mirror = await self.repository.find_mirror_by_variant(variant_id)
        if mirror is None and item_id:
            mirror = await self.repository.find_mirror_by_inventory_item(item_id)
        shopify_id = mirror.shopify_id if mirror else None

        if not item_id and mirror is not None:
            canonical = mirror.raw_product.find_variant(variant_id) if mirror.raw_product else None
            item_id = canonical.inventory_item_id if canonical else None

        if not item_id:
            try:
                variant = await self.commerce.get_variant(variant_id)
                item_id = normalize_shopify_id(variant.get("inventory_item_id"))
                shopify_id = shopify_id or normalize_shopify_id(variant.get("product_id"))
            except ShopifyNotFoundError:
                return await self._handle_missing(variant_id, None, shopify_id)
            except ShopifyAPIError as e:
                logger.warning("Failed to look up variant", shopify_variant_id=variant_id, error=str(e))
                return VariantSyncResult(action="skipped", shopify_id=shopify_id)

        if not item_id:
            return VariantSyncResult(action="not_found", shopify_id=shopify_id)

        try:
            inventory = await self.commerce.get_inventory_levels(item_id)
        except ShopifyNotFoundError:
            return await self._handle_missing(variant_id, item_id, shopify_id)
        except ShopifyAPIError as e:
            logger.warning("Failed to fetch inventory levels", inventory_item_id=item_id, error=str(e))
            return VariantSyncResult(action="skipped", shopify_id=shopify_id)

        return await self.apply_inventory_quantity(item_id, inventory["totalAvailable"], inventory["levels"])

    async def _handle_missing(
        self,
        variant_id: Optional[str],
        item_id: Optional[str],
        shopify_id: Optional[str],
    ) -> VariantSyncResult:
        """Inventory is gone upstream: delete the product or just the variant."""
        if shopify_id:
            try:
                product = await self.commerce.get_product(shopify_id)
            except ShopifyNotFoundError:
                logger.info("Product deleted from Shopify", shopify_id=shopify_id)
                report = await self.deletion.delete_product(shopify_id)
                return VariantSyncResult(action="product_deleted", shopify_id=shopify_id, deletion=report)
            except ShopifyAPIError as e:
                logger.warning("Failed to check product, not deleting", shopify_id=shopify_id, error=str(e))
                return VariantSyncResult(action="skipped", shopify_id=shopify_id)

            upstream_ids = {normalize_shopify_id(v.get("id")) for v in product.get("variants") or []}
            if variant_id in upstream_ids:
                logger.info("Variant still exists upstream", shopify_variant_id=variant_id)
                return VariantSyncResult(action="skipped", shopify_id=shopify_id)

        logger.info("Variant deleted from Shopify", shopify_variant_id=variant_id, inventory_item_id=item_id)
        report = await self.deletion.delete_variant(variant_id, item_id)
        return VariantSyncResult(action="variant_deleted", shopify_id=shopify_id, deletion=report)
