"""
Tests for the Shopify Admin client using httpx.MockTransport.
"""
import json

import httpx
import pytest

from app.services import shopify_client
from app.services.shopify_client import (
    ShopifyAdminClient,
    ShopifyAPIError,
    ShopifyNotFoundError,
    product_gid,
)


def make_client(handler, **kwargs) -> ShopifyAdminClient:
    return ShopifyAdminClient(
        store_url="https://lunera.myshopify.com",
        access_token="shpat_test",
        api_version="2025-10",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def graphql(data: dict) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


def test_product_gid_normalizes():
    assert product_gid(123) == "gid://shopify/Product/123"
    assert product_gid("gid://shopify/Product/123") == "gid://shopify/Product/123"


class TestGraphQL:
    async def test_product_markets(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/admin/api/2025-10/graphql.json"
            assert request.headers["X-Shopify-Access-Token"] == "shpat_test"
            body = json.loads(request.content)
            assert body["variables"] == {"id": "gid://shopify/Product/123"}
            return graphql(
                {
                    "product": {
                        "publishedInDE": True,
                        "publishedInFI": False,
                        "resourcePublications": {
                            "edges": [
                                {"node": {"isPublished": True, "publication": {"name": "Online Store"}}},
                                {"node": {"isPublished": False, "publication": {"name": "Shop"}}},
                            ]
                        },
                    }
                }
            )

        flags = await make_client(handler).get_product_markets(123)

        assert flags["publishedInDE"] is True
        assert flags["publishedInFI"] is False
        assert flags["publishedToOnlineStore"] is True

    async def test_missing_product_is_not_found(self):
        client = make_client(lambda request: graphql({"product": None}))

        with pytest.raises(ShopifyNotFoundError):
            await client.get_product_markets(123)

    async def test_graphql_errors_raise(self):
        client = make_client(lambda request: httpx.Response(200, json={"errors": [{"message": "Throttled"}]}))

        with pytest.raises(ShopifyAPIError, match="Throttled"):
            await client.execute_query("{ shop { name } }")

    async def test_publish_caches_publication_id(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["query"]
            calls.append(query)
            if "publications(" in query:
                return graphql({"publications": {"edges": [{"node": {"id": "gid://pub/1", "name": "Online Store"}}]}})
            return graphql({"publishablePublish": {"publishable": {"id": "gid://shopify/Product/123"}, "userErrors": []}})

        client = make_client(handler)
        await client.publish_product(123)
        await client.publish_product(456)

        assert sum("publications(" in q for q in calls) == 1
        assert len(calls) == 3

    async def test_publish_user_errors_raise(self):
        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["query"]
            if "publications(" in query:
                return graphql({"publications": {"edges": [{"node": {"id": "gid://pub/1", "name": "Online Store"}}]}})
            return graphql({"publishablePublish": {"userErrors": [{"field": "id", "message": "Access denied"}]}})

        with pytest.raises(ShopifyAPIError, match="Access denied"):
            await make_client(handler).publish_product(123)


class TestREST:
    async def test_inventory_levels_total(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["inventory_item_ids"] == "5001"
            return httpx.Response(
                200,
                json={"inventory_levels": [{"location_id": 1, "available": 3}, {"location_id": 2, "available": None}]},
            )

        inventory = await make_client(handler).get_inventory_levels("gid://shopify/InventoryItem/5001")

        assert inventory["totalAvailable"] == 3
        assert len(inventory["levels"]) == 2

    async def test_empty_inventory_levels_is_not_found(self):
        client = make_client(lambda request: httpx.Response(200, json={"inventory_levels": []}))

        with pytest.raises(ShopifyNotFoundError):
            await client.get_inventory_levels(5001)

    async def test_http_404_is_not_found(self):
        client = make_client(lambda request: httpx.Response(404, json={"errors": "Not Found"}))

        with pytest.raises(ShopifyNotFoundError):
            await client.get_product(123)

    async def test_rate_limit_is_retried(self, monkeypatch):
        async def no_sleep(seconds):
            return None

        monkeypatch.setattr(shopify_client.asyncio, "sleep", no_sleep)
        responses = iter([httpx.Response(429), httpx.Response(200, json={"variant": {"id": 1001, "inventory_item_id": 5001}})])

        variant = await make_client(lambda request: next(responses)).get_variant(1001)

        assert variant["inventory_item_id"] == 5001

    async def test_server_error_raises(self):
        client = make_client(lambda request: httpx.Response(500))

        with pytest.raises(ShopifyAPIError, match="500"):
            await client.get_variant(1001)


class TestConfiguration:
    async def test_missing_credentials(self, monkeypatch):
        monkeypatch.setattr(shopify_client.settings, "shopify_store_url", None)
        monkeypatch.setattr(shopify_client.settings, "shopify_access_token", None)
        client = ShopifyAdminClient()

        assert client.configured is False
        with pytest.raises(ShopifyAPIError):
            await client.get_product(123)

    async def test_market_availability_without_storefront_token(self, monkeypatch):
        monkeypatch.setattr(shopify_client.settings, "shopify_storefront_access_token", None)
        client = make_client(lambda request: pytest.fail("no request expected"))

        assert await client.get_market_availability(123, "DE") is None

    async def test_market_availability(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/2025-10/graphql.json"
            assert json.loads(request.content)["variables"]["country"] == "SE"
            return graphql(
                {
                    "product": {
                        "availableForSale": True,
                        "priceRange": {"minVariantPrice": {"amount": "299.0", "currencyCode": "SEK"}},
                    }
                }
            )

        client = make_client(handler, storefront_access_token="storefront-token")

        assert await client.get_market_availability(123, "SE") == {"available": True, "currency": "SEK"}
