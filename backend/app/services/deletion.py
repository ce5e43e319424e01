"""
Deletion cascade for products and variants removed from Shopify.

Deletes the mirror record, storefront replicas and their variants, and
cleans up the storefront categories that referenced deleted products.
"""
from typing import Any, Optional

from app.core.logging import get_logger
from app.repositories.catalog import CatalogRepository
from app.schemas.catalog import ReplicaProduct, ReplicaVariant, normalize_shopify_id
from app.schemas.reports import DeletionReport
from app.services.stock import aggregate_stock
from app.services.storefronts import StorefrontRegistry

logger = get_logger(__name__)


def lowest_positive_price(variants: list[ReplicaVariant]) -> Optional[float]:
    prices = [v.price for v in variants if v.price is not None and v.price > 0]
    return min(prices) if prices else None


def is_default_variant(replica: ReplicaProduct, variant: ReplicaVariant) -> bool:
    """`defaultVariantId` may hold either the variant document id or the Shopify variant id."""
    default_id = replica.default_variant_id
    return bool(default_id) and default_id in (variant.id, variant.shopify_variant_id)


class DeletionCascade:
    """Remove deleted Shopify products and variants from the catalog."""

    def __init__(self, repository: CatalogRepository, registry: StorefrontRegistry) -> None:
        self.repository = repository
        self.registry = registry

    def _storefronts(self, *assigned: list[str]) -> list[str]:
        storefronts = list(self.registry)
        for names in assigned:
            storefronts.extend(s for s in names if s not in storefronts)
        return storefronts

    async def delete_product(self, shopify_id: Any) -> DeletionReport:
        """
        Delete every trace of a canonical product.

        Storefronts are processed independently; a failing storefront is
        logged and the remaining ones are still cleaned up.
        """
        shopify_id = normalize_shopify_id(shopify_id)
        report = DeletionReport(shopify_id=shopify_id)
        mirrors = await self.repository.find_mirrors(shopify_id)
        mirror_doc_id = mirrors[0].doc_id if mirrors else None

        for storefront in self._storefronts(*(m.storefronts for m in mirrors)):
            try:
                replicas = await self.repository.find_replicas(storefront, shopify_id, mirror_doc_id)
                deleted_ids: list[str] = []
                category_ids: set[str] = set()
                for replica in replicas:
                    report.deleted_variants += await self.repository.delete_replica(storefront, replica.id)
                    report.deleted_products += 1
                    deleted_ids.append(replica.id)
                    category_ids.update(replica.category_ids)

                if deleted_ids:
                    await self._cleanup_categories(storefront, deleted_ids, category_ids, report)
            except Exception as e:
                logger.error(
                    "Failed to delete storefront replicas",
                    shopify_id=shopify_id,
                    storefront=storefront,
                    error=str(e),
                )

        for mirror in mirrors:
            if await self.repository.delete_mirror(mirror.doc_id):
                report.deleted_mirrors += 1

        logger.info("Deleted product", **report.model_dump())
        return report

    async def delete_variant(
        self,
        shopify_variant_id: Any,
        inventory_item_id: Any = None,
    ) -> DeletionReport:
        """
        Delete a single variant from the mirror snapshot and from replicas.

        Replica products left without variants are deleted. Otherwise their
        rollup and base price are recomputed and, when the deleted variant
        was the default, the first remaining variant becomes the default.
        """
        variant_id = normalize_shopify_id(shopify_variant_id)
        item_id = normalize_shopify_id(inventory_item_id)
        report = DeletionReport()

        mirror = None
        if item_id:
            mirror = await self.repository.find_mirror_by_inventory_item(item_id)
        if mirror is None and variant_id:
            mirror = await self.repository.find_mirror_by_variant(variant_id)

        if mirror is not None and mirror.raw_product is not None:
            report.shopify_id = mirror.shopify_id
            raw = mirror.raw_product
            remaining = [
                v for v in raw.variants
                if not ((item_id and v.inventory_item_id == item_id) or (variant_id and v.id == variant_id))
            ]
            raw.variants = remaining
            await self.repository.update_mirror(
                mirror.doc_id,
                {"rawProduct": raw.snapshot(), **aggregate_stock(remaining).as_fields()},
            )

        for storefront in self._storefronts(mirror.storefronts if mirror else []):
            try:
                if mirror is not None:
                    replicas = await self.repository.find_replicas(storefront, mirror.shopify_id, mirror.doc_id)
                else:
                    replicas = [r for r in await self.repository.list_replicas(storefront) if r.source_shopify_id]
                for replica in replicas:
                    await self._delete_replica_variant(storefront, replica, variant_id, item_id, report)
            except Exception as e:
                logger.error(
                    "Failed to delete variant from storefront",
                    shopify_variant_id=variant_id,
                    storefront=storefront,
                    error=str(e),
                )

        logger.info("Deleted variant", shopify_variant_id=variant_id, **report.model_dump())
        return report

    async def _delete_replica_variant(
        self,
        storefront: str,
        replica: ReplicaProduct,
        variant_id: Optional[str],
        item_id: Optional[str],
        report: DeletionReport,
    ) -> None:
        variants = await self.repository.list_variants(storefront, replica.id)
        target = next((v for v in variants if variant_id and v.shopify_variant_id == variant_id), None)
        if target is None and item_id:
            target = next((v for v in variants if v.shopify_inventory_item_id == item_id), None)
        if target is None:
            return

        await self.repository.delete_variant(storefront, replica.id, target.id)
        report.deleted_variants += 1
        remaining = [v for v in variants if v is not target]

        if not remaining:
            await self.repository.delete_replica(storefront, replica.id)
            report.deleted_products += 1
            await self._cleanup_categories(storefront, [replica.id], set(replica.category_ids), report)
            return

        updates: dict[str, Any] = aggregate_stock(remaining).as_fields()
        base_price = lowest_positive_price(remaining)
        if base_price is not None:
            updates["basePrice"] = base_price
        if is_default_variant(replica, target):
            new_default = remaining[0]
            updates["defaultVariantId"] = new_default.id
            if new_default.price is not None:
                updates["defaultVariantPrice"] = new_default.price
            logger.info(
                "Deleted variant was default, selected new default",
                storefront=storefront,
                replica_id=replica.id,
                default_variant_id=new_default.id,
            )

        await self.repository.update_replica(storefront, replica.id, updates)
        report.updated_products += 1

    async def _cleanup_categories(
        self,
        storefront: str,
        deleted_ids: list[str],
        category_ids: set[str],
        report: DeletionReport,
    ) -> None:
        """Drop deleted products from category previews; delete referenced categories left empty."""
        remaining_products = await self.repository.list_replicas(storefront)
        for category in await self.repository.list_categories(storefront):
            if category.id in category_ids and not any(
                category.id in product.category_ids for product in remaining_products
            ):
                if await self.repository.delete_category(storefront, category.id):
                    report.deleted_categories += 1
                continue

            preview = [pid for pid in category.preview_product_ids if pid not in deleted_ids]
            if preview != category.preview_product_ids:
                await self.repository.update_category(storefront, category.id, {"previewProductIds": preview})
                report.updated_categories += 1
