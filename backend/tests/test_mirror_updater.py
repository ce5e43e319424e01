"""
Tests for merging canonical product state into mirror records.
"""
import pytest

from app.core.exceptions import MirrorNotFoundError
from app.repositories.catalog import MIRROR_COLLECTION
from app.schemas.catalog import CanonicalProduct, MirrorRecord
from app.services.mirror_updater import MirrorUpdater, apply_canonical_update
from factories import product_payload, seed_mirror

VARIANTS = [
    {"id": 1001, "sku": "RED-M", "price": "29.99", "inventory_quantity": 5, "inventory_item_id": 5001},
    {"id": 1002, "sku": "RED-L", "price": "29.99", "inventory_quantity": 0, "inventory_item_id": 5002},
]


@pytest.fixture
def canonical() -> CanonicalProduct:
    return CanonicalProduct.model_validate(
        product_payload(variants=VARIANTS, images=[{"id": 1, "src": "https://cdn.shopify.com/a.jpg?v=2"}])
    )


@pytest.fixture
def updater(repository, commerce) -> MirrorUpdater:
    return MirrorUpdater(repository, commerce)


class TestApplyCanonicalUpdate:
    async def test_overwrites_basic_fields(self, canonical, commerce):
        existing = MirrorRecord(shopify_id="123", title="Old title", markets=["FI"])

        update = await apply_canonical_update(existing, canonical, commerce)

        assert update.mirror.title == "Silk Dress"
        assert update.mirror.tags == ["summer", "silk"]
        assert update.mirror.image_urls == ["https://cdn.shopify.com/a.jpg?v=2"]
        assert update.mirror.markets == ["DE"]
        assert update.markets_changed is True
        assert "DE" in update.mirror.markets_object

    async def test_keeps_markets_when_lookup_fails(self, canonical, commerce):
        commerce.get_product_markets.side_effect = RuntimeError("graphql down")
        existing = MirrorRecord(
            shopify_id="123",
            markets=["FI"],
            published_to_online_store=True,
            markets_object={"FI": {"shippingRate": "3.00"}},
        )

        update = await apply_canonical_update(existing, canonical, commerce)

        assert update.mirror.markets == ["FI"]
        assert update.mirror.markets_object["FI"].shipping_rate == "3.00"
        assert update.markets_changed is False
        assert update.auto_publish.skipped is True

    async def test_auto_publishes_unpublished_product(self, canonical, commerce):
        commerce.get_product_markets.return_value = {"publishedInDE": True, "publishedToOnlineStore": False}
        existing = MirrorRecord(shopify_id="123")

        update = await apply_canonical_update(existing, canonical, commerce)

        commerce.publish_product.assert_awaited_once_with("123")
        assert update.mirror.published_to_online_store is True
        assert update.publication_changed is True
        assert update.auto_publish.ok is True

    async def test_auto_publish_failure_is_reported(self, canonical, commerce):
        commerce.get_product_markets.return_value = {"publishedToOnlineStore": False}
        commerce.publish_product.side_effect = RuntimeError("no scope")
        existing = MirrorRecord(shopify_id="123")

        update = await apply_canonical_update(existing, canonical, commerce)

        assert update.mirror.published_to_online_store is False
        assert update.auto_publish.ok is False
        assert update.auto_publish.detail == "no scope"


class TestMirrorUpdater:
    async def test_update_persists_merged_state(self, updater, store, canonical):
        await seed_mirror(store, "silk-dress", 123, title="Old", storefronts=["LUNERA"])

        await updater.update(canonical)

        doc = await store.get(MIRROR_COLLECTION, "silk-dress")
        assert doc.data["title"] == "Silk Dress"
        assert doc.data["storefronts"] == ["LUNERA"]
        assert doc.data["rawProduct"]["variants"][0]["inventory_quantity"] == 5
        assert doc.data["totalStock"] == 5
        assert doc.data["inStockVariantCount"] == 1
        assert doc.data["marketsObject"]["DE"]["shippingRate"] == "2.90"

    async def test_update_matches_string_and_numeric_ids(self, updater, store, canonical):
        await seed_mirror(store, "silk-dress", "gid://shopify/Product/123")
        update = await updater.update(canonical)
        assert update.mirror.doc_id == "silk-dress"

    async def test_update_missing_mirror(self, updater, canonical):
        with pytest.raises(MirrorNotFoundError):
            await updater.update(canonical)

    async def test_create_uses_handle_slug(self, updater, store, canonical):
        update = await updater.create(canonical)

        assert update.created is True
        doc = await store.get(MIRROR_COLLECTION, "silk-dress")
        assert doc.data["shopifyId"] == "123"
        assert doc.data["storefronts"] == []
        assert doc.data["autoProcess"] is False

    async def test_create_on_slug_collision_appends_id(self, updater, store, canonical):
        await seed_mirror(store, "silk-dress", 999)

        update = await updater.create(canonical)

        assert update.mirror.doc_id == "silk-dress-123"

    async def test_create_existing_updates_instead(self, updater, store, canonical):
        await seed_mirror(store, "legacy-doc", 123)

        update = await updater.create(canonical)

        assert update.created is False
        assert update.mirror.doc_id == "legacy-doc"
        assert await store.get(MIRROR_COLLECTION, "silk-dress") is None

    async def test_assign_storefronts_is_monotonic(self, updater, store):
        await seed_mirror(store, "silk-dress", 123)

        await updater.assign_storefronts("123", ["LUNERA", "FIVESTARFINDS"])
        mirror = await updater.assign_storefronts("123", ["FIVESTARFINDS"])

        assert mirror.storefronts == ["FIVESTARFINDS"]
        assert mirror.processed_storefronts == ["LUNERA", "FIVESTARFINDS"]
        assert mirror.storefront_usage_count == 2
