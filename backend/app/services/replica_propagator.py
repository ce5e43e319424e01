"""
Replica propagator: pushes merged mirror state into every storefront
replica of a product, then fans new prices out to carts.
"""
import asyncio
from typing import Any, Optional, Sequence

from app.core.config import settings
from app.core.logging import get_logger
from app.repositories.catalog import CatalogRepository
from app.schemas.catalog import (
    CanonicalProduct,
    CanonicalVariant,
    MirrorRecord,
    ReplicaProduct,
    ReplicaVariant,
    normalize_shopify_id,
)
from app.schemas.reports import (
    CartFanOutResult,
    PropagationResult,
    SecondaryEffect,
    StorefrontOutcome,
)
from app.services.image_reconciler import reconcile_product_images, reconcile_variant_images
from app.services.stock import aggregate_stock
from app.services.storefronts import StorefrontRegistry
from app.services.variant_matcher import pair_variants

logger = get_logger(__name__)

PRICE_EPSILON = 1e-9


def changed_fields(current: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """The subset of `updates` that differs from `current`."""
    return {key: value for key, value in updates.items() if current.get(key) != value}


def stock_updates(replica: ReplicaVariant, quantity: int) -> dict[str, Any]:
    """Stock fields for a replica variant, including legacy quantity fields it carries."""
    updates: dict[str, Any] = {"stock": quantity}
    # Legacy quantity fields on the document would shadow `stock`
    for alias in ("inventory_quantity", "inventoryQuantity"):
        if alias in (replica.model_extra or {}):
            updates[alias] = quantity
    return updates


def variant_updates(
    replica: ReplicaVariant,
    canonical_variant: CanonicalVariant,
    canonical: CanonicalProduct,
) -> dict[str, Any]:
    """Fields a matched canonical variant writes to its replica variant."""
    updates: dict[str, Any] = {
        "shopifyVariantId": canonical_variant.id,
        **stock_updates(replica, canonical_variant.quantity),
    }
    if canonical_variant.inventory_item_id:
        updates["shopifyInventoryItemId"] = canonical_variant.inventory_item_id
    if canonical_variant.price is not None:
        updates["price"] = canonical_variant.price
    if canonical_variant.inventory_policy:
        updates["inventory_policy"] = canonical_variant.inventory_policy

    candidates = list(
        dict.fromkeys([*canonical.image_urls_for_variant(canonical_variant.id), *canonical.image_urls()])
    )
    images = reconcile_variant_images(replica.images, candidates)
    if images != replica.images:
        updates["images"] = images

    return changed_fields(replica.model_dump(by_alias=True), updates)


def find_default_pair(
    replica: ReplicaProduct,
    pairs: Sequence[tuple[ReplicaVariant, CanonicalVariant]],
) -> Optional[tuple[ReplicaVariant, CanonicalVariant]]:
    """The matched pair for the replica's default variant, if any."""
    default_id = replica.default_variant_id
    if not default_id:
        return None
    for pair in pairs:
        if pair[1].id == default_id:
            return pair
    for pair in pairs:
        if default_id in (pair[0].id, pair[0].shopify_variant_id):
            return pair
    return None


class ReplicaPropagator:
    """Apply merged mirror state to storefront replicas."""

    def __init__(
        self,
        repository: CatalogRepository,
        registry: StorefrontRegistry,
        price_tolerance: Optional[float] = None,
    ) -> None:
        self.repository = repository
        self.registry = registry
        self.price_tolerance = settings.cart_price_tolerance if price_tolerance is None else price_tolerance

    async def propagate(
        self,
        mirror: MirrorRecord,
        canonical: CanonicalProduct,
        target_storefronts: Optional[Sequence[str]] = None,
    ) -> PropagationResult:
        """
        Propagate one product to all of its storefront replicas.

        Storefronts are processed concurrently; a failure in one is
        recorded on its outcome and does not affect the others.
        """
        storefronts = list(target_storefronts) if target_storefronts else self.registry.targets(mirror.storefronts)

        outcomes = await asyncio.gather(
            *(self._propagate_storefront(storefront, mirror, canonical) for storefront in storefronts)
        )
        result = PropagationResult(shopify_id=canonical.id, outcomes=list(outcomes))
        result.cart_fan_out = await self._cart_fan_out_effect(canonical)

        logger.info(
            "Propagated product to storefronts",
            shopify_id=canonical.id,
            updated=len(result.updated),
            succeeded=result.succeeded_storefronts,
            failed=result.failed_storefronts,
        )
        return result

    async def _propagate_storefront(
        self,
        storefront: str,
        mirror: MirrorRecord,
        canonical: CanonicalProduct,
    ) -> StorefrontOutcome:
        outcome = StorefrontOutcome(storefront=storefront)
        try:
            replicas = await self.repository.find_replicas(storefront, canonical.id, mirror.doc_id)
            for replica in replicas:
                await self.reconcile_replica(replica, mirror, canonical)
                outcome.replica_ids.append(replica.id)
        except Exception as e:
            logger.error(
                "Failed to update storefront replicas",
                shopify_id=canonical.id,
                storefront=storefront,
                error=str(e),
            )
            outcome.succeeded = False
            outcome.error = str(e)
        return outcome

    async def reconcile_replica(
        self,
        replica: ReplicaProduct,
        mirror: MirrorRecord,
        canonical: CanonicalProduct,
    ) -> dict[str, Any]:
        """Reconcile one replica product and its variants. Returns the product fields written."""
        storefront = replica.storefront
        updates: dict[str, Any] = {}

        first_price = canonical.first_variant_price()
        if first_price is not None:
            updates["basePrice"] = first_price

        updates["images"] = reconcile_product_images(
            replica.images, canonical.image_urls(), replica.manually_edited
        )

        if mirror.markets:
            updates["markets"] = list(mirror.markets)
        if mirror.markets_object:
            updates["marketsObject"] = mirror.markets_object_fields()
        updates["publishedToOnlineStore"] = mirror.published_to_online_store

        variants = await self.repository.list_variants(storefront, replica.id)
        pairs = pair_variants(canonical.variants, variants)
        current = {id(v): v for v in variants}

        for variant, canonical_variant in pairs:
            fields = variant_updates(variant, canonical_variant, canonical)
            if fields:
                await self.repository.update_variant(storefront, replica.id, variant.id, fields)
                current[id(variant)] = ReplicaVariant.model_validate(
                    {**variant.model_dump(by_alias=True), **fields, "id": variant.id}
                )

        default_pair = find_default_pair(replica, pairs)
        if default_pair is not None and default_pair[1].price is not None:
            updates["defaultVariantPrice"] = default_pair[1].price

        updates.update(aggregate_stock(current.values()).as_fields())

        fields = changed_fields(replica.model_dump(by_alias=True), updates)
        if fields:
            await self.repository.update_replica(storefront, replica.id, fields)

        logger.debug(
            "Reconciled replica",
            storefront=storefront,
            replica_id=replica.id,
            matched_variants=len(pairs),
            changed=sorted(fields),
        )
        return fields

    async def _cart_fan_out_effect(self, canonical: CanonicalProduct) -> SecondaryEffect:
        try:
            fan_out = await self.fan_out_cart_prices(canonical)
        except Exception as e:
            logger.warning("Cart price fan-out failed", shopify_id=canonical.id, error=str(e))
            return SecondaryEffect(name="cart_price_fan_out", ok=False, detail=str(e))
        return SecondaryEffect(
            name="cart_price_fan_out",
            ok=True,
            detail=f"{fan_out.items_updated} items in {fan_out.carts_updated} carts updated",
        )

    async def fan_out_cart_prices(self, canonical: CanonicalProduct) -> CartFanOutResult:
        """
        Update `priceAtAdd` on cart items of this product's variants.

        An item is updated only when its price differs from the canonical
        price by more than the tolerance. Only changed carts are written.
        """
        prices = {v.id: v.price for v in canonical.variants if v.price is not None}
        result = CartFanOutResult()
        if not prices:
            return result

        for cart in await self.repository.list_carts():
            result.carts_scanned += 1
            changed = 0
            for item in cart.items:
                variant_id = item.shopify_variant_id or normalize_shopify_id(item.variant_id)
                new_price = prices.get(variant_id)
                if new_price is None or item.price_at_add is None:
                    continue
                if abs(item.price_at_add - new_price) - self.price_tolerance > PRICE_EPSILON:
                    item.price_at_add = new_price
                    changed += 1

            if changed:
                await self.repository.update_cart_items(
                    cart.id,
                    [item.model_dump(by_alias=True, exclude_unset=True) for item in cart.items],
                )
                result.carts_updated += 1
                result.items_updated += changed

        return result
