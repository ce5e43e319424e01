"""
Mirror updater: merges canonical Shopify product state into the single
`shopifyItems` mirror record.
"""
from typing import Any, Mapping

from app.core.exceptions import MirrorNotFoundError
from app.core.logging import get_logger
from app.repositories.base import server_timestamp
from app.repositories.catalog import CatalogRepository
from app.schemas.catalog import CanonicalProduct, MarketEntry, MirrorRecord
from app.schemas.reports import MirrorUpdate, SecondaryEffect
from app.services.markets import (
    MARKET_CONFIG,
    MarketConfig,
    build_markets_array,
    load_shipping_rates,
    resolve_markets,
)
from app.services.stock import aggregate_stock

logger = get_logger(__name__)


async def apply_canonical_update(
    existing: MirrorRecord,
    canonical: CanonicalProduct,
    commerce: Any,
    market_config: Mapping[str, MarketConfig] = MARKET_CONFIG,
) -> MirrorUpdate:
    """
    Merge a canonical product into a mirror record.

    Market, publication and marketsObject values are recomputed through
    the commerce API; when that fails the previous values are kept.
    Products not yet on the Online Store are published best-effort.
    """
    markets = list(existing.markets)
    published = existing.published_to_online_store
    markets_object: dict[str, MarketEntry] = dict(existing.markets_object)

    try:
        flags = await commerce.get_product_markets(canonical.id)
        markets = build_markets_array(flags)
        published = bool(flags.get("publishedToOnlineStore"))

        if published and markets:
            try:
                shipping_rates = await load_shipping_rates(commerce)
                resolved = await resolve_markets(
                    canonical.id, markets, shipping_rates, market_config, commerce=commerce
                )
                if resolved:
                    markets_object = resolved
            except Exception as e:
                logger.warning(
                    "Failed to resolve marketsObject, keeping existing",
                    shopify_id=canonical.id,
                    error=str(e),
                )
    except Exception as e:
        logger.warning(
            "Failed to get markets/publication status, keeping existing",
            shopify_id=canonical.id,
            error=str(e),
        )
        markets = list(existing.markets)
        published = existing.published_to_online_store

    if not published:
        try:
            await commerce.publish_product(canonical.id)
            published = True
            auto_publish = SecondaryEffect(name="auto_publish", ok=True)
        except Exception as e:
            logger.warning("Auto-publish to Online Store failed", shopify_id=canonical.id, error=str(e))
            auto_publish = SecondaryEffect(name="auto_publish", ok=False, detail=str(e))
    else:
        auto_publish = SecondaryEffect(name="auto_publish", skipped=True)

    if existing.title and canonical.title and existing.title != canonical.title:
        logger.info("Title changed", shopify_id=canonical.id, old=existing.title, new=canonical.title)

    merged = existing.model_copy(
        update={
            "title": canonical.title or existing.title,
            "handle": canonical.handle,
            "status": canonical.status,
            "vendor": canonical.vendor,
            "product_type": canonical.product_type,
            "tags": list(canonical.tags),
            "image_urls": canonical.image_urls(),
            "raw_product": canonical,
            "markets": markets,
            "markets_object": markets_object,
            "published_to_online_store": published,
        },
        deep=True,
    )

    return MirrorUpdate(
        mirror=merged,
        markets_changed=(
            merged.markets != existing.markets
            or merged.markets_object_fields() != existing.markets_object_fields()
        ),
        publication_changed=merged.published_to_online_store != existing.published_to_online_store,
        auto_publish=auto_publish,
    )


def mirror_fields(mirror: MirrorRecord) -> dict[str, Any]:
    """Fields a canonical update writes to the mirror document."""
    fields: dict[str, Any] = {
        "title": mirror.title,
        "handle": mirror.handle,
        "status": mirror.status,
        "vendor": mirror.vendor,
        "productType": mirror.product_type,
        "tags": mirror.tags,
        "imageUrls": mirror.image_urls,
        "rawProduct": mirror.raw_product.snapshot() if mirror.raw_product else None,
        "markets": mirror.markets,
        "publishedToOnlineStore": mirror.published_to_online_store,
    }
    if mirror.markets_object:
        fields["marketsObject"] = mirror.markets_object_fields()
    if mirror.raw_product:
        fields.update(aggregate_stock(mirror.raw_product.variants).as_fields())
    return fields


class MirrorUpdater:
    """Locate, merge and persist mirror records."""

    def __init__(
        self,
        repository: CatalogRepository,
        commerce: Any,
        market_config: Mapping[str, MarketConfig] = MARKET_CONFIG,
    ) -> None:
        self.repository = repository
        self.commerce = commerce
        self.market_config = market_config

    async def update(self, canonical: CanonicalProduct) -> MirrorUpdate:
        """
        Apply a canonical update to the stored mirror record.

        Raises:
            MirrorNotFoundError: No mirror exists for the product
        """
        existing = await self.repository.get_mirror(canonical.id)
        if existing is None:
            raise MirrorNotFoundError(canonical.id)

        result = await apply_canonical_update(existing, canonical, self.commerce, self.market_config)
        await self.repository.update_mirror(existing.doc_id, mirror_fields(result.mirror))

        logger.info(
            "Updated mirror record",
            shopify_id=canonical.id,
            doc_id=existing.doc_id,
            markets=result.mirror.markets,
            markets_changed=result.markets_changed,
            publication_changed=result.publication_changed,
        )
        return result

    async def create(self, canonical: CanonicalProduct) -> MirrorUpdate:
        """Create the mirror record for a new product, or update the existing one."""
        if await self.repository.get_mirror(canonical.id) is not None:
            logger.info("Mirror record already exists, updating", shopify_id=canonical.id)
            return await self.update(canonical)

        doc_id = await self.repository.new_mirror_doc_id(canonical.handle, canonical.title, canonical.id)
        blank = MirrorRecord(doc_id=doc_id, shopify_id=canonical.id)
        result = await apply_canonical_update(blank, canonical, self.commerce, self.market_config)

        data = {
            "shopifyId": canonical.id,
            **mirror_fields(result.mirror),
            "storefronts": [],
            "processedStorefronts": [],
            "storefrontUsageCount": 0,
            "autoProcess": False,
            "fetchedAt": server_timestamp(),
        }
        await self.repository.create_mirror(doc_id, data)
        result.mirror.doc_id = doc_id
        result.created = True

        logger.info("Created mirror record", shopify_id=canonical.id, doc_id=doc_id)
        return result

    async def assign_storefronts(self, shopify_id: str, storefronts: list[str]) -> MirrorRecord:
        """Set the storefronts a product is published to."""
        mirror = await self.repository.get_mirror(shopify_id)
        if mirror is None:
            raise MirrorNotFoundError(shopify_id)

        mirror.assign_storefronts(storefronts)
        await self.repository.update_mirror(
            mirror.doc_id,
            {
                "storefronts": mirror.storefronts,
                "processedStorefronts": mirror.processed_storefronts,
                "storefrontUsageCount": mirror.storefront_usage_count,
            },
        )
        return mirror

