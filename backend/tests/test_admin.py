"""
Tests for the admin endpoints.
"""
from fastapi.testclient import TestClient

from app.repositories.catalog import MIRROR_COLLECTION, products_collection, variants_collection
from factories import ADMIN_KEY, product_payload, seed_mirror, seed_replica

ADMIN_HEADERS = {"X-Admin-Key": ADMIN_KEY}

RAW_PRODUCT = product_payload(
    variants=[{"id": 1001, "sku": "RED-M", "price": "29.99", "inventory_quantity": 4, "inventory_item_id": 5001}],
)


async def seed_catalog(store):
    await seed_mirror(store, "silk-dress", 123, rawProduct=RAW_PRODUCT)
    await seed_replica(
        store,
        "LUNERA",
        "prod-1",
        {"sourceShopifyId": 123, "basePrice": 10.0},
        variants={"v": {"sku": "RED-M", "shopifyInventoryItemId": 5001, "stock": 0}},
    )


class TestAdminAuth:
    def test_missing_key(self, client: TestClient):
        response = client.post("/api/admin/drift-correction")
        assert response.status_code == 403

    def test_wrong_key(self, client: TestClient):
        response = client.post("/api/admin/drift-correction", headers={"X-Admin-Key": "nope"})
        assert response.status_code == 403


class TestDriftCorrection:
    async def test_schedules_and_runs(self, client: TestClient, store):
        await seed_catalog(store)

        response = client.post("/api/admin/drift-correction", headers=ADMIN_HEADERS)

        assert response.status_code == 202
        assert response.json()["status"] == "scheduled"
        # TestClient runs background tasks before returning
        variant = await store.get(variants_collection("LUNERA", "prod-1"), "v")
        assert variant.data["stock"] == 4

    async def test_missing_target_does_not_fail_request(self, client: TestClient, store):
        response = client.post(
            "/api/admin/drift-correction",
            headers=ADMIN_HEADERS,
            json={"shopifyIds": ["404"]},
        )

        assert response.status_code == 202


class TestReprocess:
    async def test_repropagates_stored_snapshot(self, client: TestClient, store):
        await seed_catalog(store)

        response = client.post("/api/admin/shopify-items/123/reprocess", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json()["updated"] == [{"replicaId": "prod-1", "storefront": "LUNERA"}]
        product = await store.get(products_collection("LUNERA"), "prod-1")
        assert product.data["basePrice"] == 29.99

    def test_unknown_product(self, client: TestClient):
        response = client.post("/api/admin/shopify-items/999/reprocess", headers=ADMIN_HEADERS)
        assert response.status_code == 404

    async def test_mirror_without_snapshot(self, client: TestClient, store):
        await seed_mirror(store, "bare", 555)

        response = client.post("/api/admin/shopify-items/555/reprocess", headers=ADMIN_HEADERS)

        assert response.status_code == 409


class TestAssignStorefronts:
    async def test_assigns(self, client: TestClient, store):
        await seed_catalog(store)

        response = client.put(
            "/api/admin/shopify-items/123/storefronts",
            headers=ADMIN_HEADERS,
            json={"storefronts": ["LUNERA"]},
        )

        assert response.status_code == 200
        assert response.json()["storefrontUsageCount"] == 1
        doc = await store.get(MIRROR_COLLECTION, "silk-dress")
        assert doc.data["storefronts"] == ["LUNERA"]

    def test_unknown_storefront(self, client: TestClient):
        response = client.put(
            "/api/admin/shopify-items/123/storefronts",
            headers=ADMIN_HEADERS,
            json={"storefronts": ["ELSEWHERE"]},
        )
        assert response.status_code == 400

    def test_unknown_product(self, client: TestClient):
        response = client.put(
            "/api/admin/shopify-items/999/storefronts",
            headers=ADMIN_HEADERS,
            json={"storefronts": ["LUNERA"]},
        )
        assert response.status_code == 404


async def test_sync_variant(client: TestClient, store, commerce):
    await seed_catalog(store)
    commerce.get_inventory_levels.return_value = {"levels": [{"available": 8}], "totalAvailable": 8}

    response = client.post("/api/admin/variants/1001/sync", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["result"]["action"] == "updated"
    variant = await store.get(variants_collection("LUNERA", "prod-1"), "v")
    assert variant.data["stock"] == 8
