"""
Shopify Admin client for API interactions.
Handles retries on rate limits and transient failures, GraphQL and REST.
"""
import asyncio
from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.catalog import normalize_shopify_id
from app.services.markets import SUPPORTED_MARKETS, ShippingRates, parse_delivery_profiles

logger = get_logger(__name__)

ONLINE_STORE_PUBLICATION = "Online Store"

SHIPPING_RATES_QUERY = """
query {
    deliveryProfiles(first: 10) {
        edges {
            node {
                id
                name
                profileLocationGroups {
                    locationGroupZones(first: 20) {
                        edges {
                            node {
                                zone {
                                    id
                                    name
                                    countries {
                                        code { countryCode }
                                    }
                                }
                                methodDefinitions(first: 10) {
                                    edges {
                                        node {
                                            id
                                            name
                                            active
                                            rateProvider {
                                                ... on DeliveryRateDefinition {
                                                    id
                                                    price { amount currencyCode }
                                                }
                                            }
                                        }
                                    }
                                }
                            }
                        }
                    }
                }
            }
        }
    }
}
"""

PUBLICATIONS_QUERY = """
query {
    publications(first: 10) {
        edges { node { id name } }
    }
}
"""

PUBLISH_MUTATION = """
mutation publishablePublish($id: ID!, $input: [PublicationInput!]!) {
    publishablePublish(id: $id, input: $input) {
        publishable {
            ... on Product { id title }
        }
        userErrors { field message }
    }
}
"""

MARKET_AVAILABILITY_QUERY = """
query ($id: ID!, $country: CountryCode!) @inContext(country: $country) {
    product(id: $id) {
        id
        availableForSale
        priceRange {
            minVariantPrice { amount currencyCode }
        }
    }
}
"""


def product_gid(product_id: Any) -> str:
    return f"gid://shopify/Product/{normalize_shopify_id(product_id)}"


def _product_markets_query() -> str:
    contexts = "\n".join(
        f"        publishedIn{code}: publishedInContext(context: {{country: {code}}})"
        for code in SUPPORTED_MARKETS
    )
    return f"""
query getProductMarkets($id: ID!) {{
    product(id: $id) {{
        id
        title
{contexts}
        resourcePublications(first: 10) {{
            edges {{
                node {{
                    publication {{ id name }}
                    isPublished
                }}
            }}
        }}
    }}
}}
"""


class ShopifyAdminClient:
    """
    Async Shopify Admin API client.

    Features:
    - GraphQL for markets, publication and delivery profiles
    - REST for products, variants and inventory levels
    - Retry logic for rate limits and transient failures
    """

    GRAPHQL_PATH = "/admin/api/{version}/graphql.json"
    STOREFRONT_PATH = "/api/{version}/graphql.json"
    MAX_RETRIES = 3

    def __init__(
        self,
        store_url: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        storefront_access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        store_url = store_url or settings.shopify_store_url or ""
        self.shop_domain = store_url.replace("https://", "").replace("http://", "").rstrip("/")
        self.access_token = access_token or settings.shopify_access_token
        self.api_version = api_version or settings.shopify_api_version
        self.storefront_access_token = storefront_access_token or settings.shopify_storefront_access_token
        self.timeout = timeout or settings.shopify_request_timeout
        self.transport = transport
        self._publication_id: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.shop_domain and self.access_token)

    def _base_url(self) -> str:
        if not self.configured:
            raise ShopifyAPIError("Missing Shopify Admin API credentials (SHOPIFY_STORE_URL, SHOPIFY_ACCESS_TOKEN)")
        return f"https://{self.shop_domain}"

    async def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        **kwargs: Any,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(self.MAX_RETRIES):
                try:
                    response = await client.request(method, url, headers=headers, **kwargs)
                    response.raise_for_status()
                    return response

                except httpx.HTTPStatusError as e:
                    status = e.response.status_code
                    if status == 404:
                        raise ShopifyNotFoundError(f"Not found: {url}")
                    if status == 429 and attempt < self.MAX_RETRIES - 1:
                        # Rate limited - wait and retry
                        await asyncio.sleep(2 ** attempt)
                        continue
                    raise ShopifyAPIError(f"HTTP error: {status}")

                except httpx.RequestError as e:
                    if attempt < self.MAX_RETRIES - 1:
                        continue
                    raise ShopifyAPIError(f"Request failed: {str(e)}")

        raise ShopifyAPIError("Max retries exceeded")

    async def execute_query(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Execute a GraphQL query against the Admin API.

        Raises:
            ShopifyAPIError: On HTTP or GraphQL errors
        """
        url = self._base_url() + self.GRAPHQL_PATH.format(version=self.api_version)
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        data = (await self._request("POST", url, headers, json=payload)).json()
        if "errors" in data:
            logger.error("Shopify GraphQL errors", errors=data["errors"], shop=self.shop_domain)
            raise ShopifyAPIError(data["errors"])
        return data.get("data") or {}

    async def rest_get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """GET an Admin REST resource, e.g. ``products/123.json``."""
        url = f"{self._base_url()}/admin/api/{self.api_version}/{path}"
        headers = {"X-Shopify-Access-Token": self.access_token}
        return (await self._request("GET", url, headers, params=params)).json()

    async def get_product_markets(self, product_id: Any) -> dict[str, bool]:
        """
        Market and Online Store publication flags for a product.

        Returns ``publishedIn{CODE}`` for each supported market plus
        ``publishedToOnlineStore``.
        """
        data = await self.execute_query(_product_markets_query(), {"id": product_gid(product_id)})
        product = data.get("product")
        if not product:
            raise ShopifyNotFoundError(f"Product {product_id} not found")

        edges = (product.get("resourcePublications") or {}).get("edges") or []
        online_store = next(
            (
                edge["node"]
                for edge in edges
                if ((edge.get("node") or {}).get("publication") or {}).get("name") == ONLINE_STORE_PUBLICATION
            ),
            None,
        )
        flags = {f"publishedIn{code}": bool(product.get(f"publishedIn{code}")) for code in SUPPORTED_MARKETS}
        flags["publishedToOnlineStore"] = bool(online_store and online_store.get("isPublished"))
        return flags

    async def get_online_store_publication_id(self) -> str:
        if self._publication_id:
            return self._publication_id
        data = await self.execute_query(PUBLICATIONS_QUERY)
        for edge in (data.get("publications") or {}).get("edges") or []:
            node = edge.get("node") or {}
            if node.get("name") == ONLINE_STORE_PUBLICATION:
                self._publication_id = node["id"]
                return self._publication_id
        raise ShopifyAPIError("Online Store publication not found")

    async def publish_product(self, product_id: Any) -> dict[str, Any]:
        """Publish a product to the Online Store sales channel."""
        publication_id = await self.get_online_store_publication_id()
        data = await self.execute_query(
            PUBLISH_MUTATION,
            {"id": product_gid(product_id), "input": [{"publicationId": publication_id}]},
        )
        result = data.get("publishablePublish") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyAPIError(user_errors)
        logger.info("Published product to Online Store", shopify_id=normalize_shopify_id(product_id))
        return result.get("publishable") or {}

    async def get_shipping_rates(self) -> dict[str, ShippingRates]:
        """Per-country shipping rate table from the delivery profiles."""
        return parse_delivery_profiles(await self.execute_query(SHIPPING_RATES_QUERY))

    async def get_market_availability(self, product_id: Any, market: str) -> Optional[dict[str, Any]]:
        """
        Availability and currency of a product in one market.

        Uses the Storefront API; returns None when it is not configured or
        the product is not visible there.
        """
        if not self.shop_domain or not self.storefront_access_token:
            return None

        url = f"https://{self.shop_domain}" + self.STOREFRONT_PATH.format(version=self.api_version)
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Storefront-Access-Token": self.storefront_access_token,
        }
        payload = {
            "query": MARKET_AVAILABILITY_QUERY,
            "variables": {"id": product_gid(product_id), "country": market},
        }
        data = (await self._request("POST", url, headers, json=payload)).json()
        product = (data.get("data") or {}).get("product")
        if data.get("errors") or not product:
            return None

        min_price = (product.get("priceRange") or {}).get("minVariantPrice") or {}
        return {
            "available": bool(product.get("availableForSale")),
            "currency": min_price.get("currencyCode") or "EUR",
        }

    async def get_inventory_levels(self, inventory_item_id: Any) -> dict[str, Any]:
        """
        Inventory levels of an item across all locations.

        Raises:
            ShopifyNotFoundError: When the item has no inventory levels
        """
        item_id = normalize_shopify_id(inventory_item_id)
        data = await self.rest_get("inventory_levels.json", {"inventory_item_ids": item_id})
        levels = data.get("inventory_levels") or []
        if not levels:
            raise ShopifyNotFoundError(f"No inventory levels for inventory item {item_id}")
        return {
            "levels": levels,
            "totalAvailable": sum(level.get("available") or 0 for level in levels),
        }

    async def get_variant(self, variant_id: Any) -> dict[str, Any]:
        data = await self.rest_get(f"variants/{normalize_shopify_id(variant_id)}.json")
        variant = data.get("variant")
        if not variant:
            raise ShopifyNotFoundError(f"Variant {variant_id} not found")
        return variant

    async def get_product(self, product_id: Any) -> dict[str, Any]:
        data = await self.rest_get(f"products/{normalize_shopify_id(product_id)}.json")
        product = data.get("product")
        if not product:
            raise ShopifyNotFoundError(f"Product {product_id} not found")
        return product


class ShopifyAPIError(Exception):
    """Custom exception for Shopify API errors."""

    def __init__(self, message: str | list) -> None:
        if isinstance(message, list):
            message = "; ".join(str(e.get("message", e)) for e in message)
        super().__init__(message)


class ShopifyNotFoundError(ShopifyAPIError):
    """The requested Shopify entity does not exist."""
