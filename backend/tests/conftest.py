"""
Shared fixtures: in-memory document store, mocked Shopify client and
the FastAPI app wired to both.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.dependencies import get_commerce, get_registry, get_store
from app.main import app as fastapi_app
from app.repositories import CatalogRepository, InMemoryDocumentStore
from app.services.shopify_client import ShopifyAdminClient
from app.services.storefronts import StorefrontRegistry
from factories import ADMIN_KEY, STOREFRONTS, WEBHOOK_SECRET


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store) -> CatalogRepository:
    return CatalogRepository(store)


@pytest.fixture
def registry() -> StorefrontRegistry:
    return StorefrontRegistry(STOREFRONTS)


@pytest.fixture
def commerce():
    """Shopify client double: product published to DE, no storefront API."""
    client = MagicMock(spec=ShopifyAdminClient)
    client.configured = True
    client.get_product_markets = AsyncMock(
        return_value={"publishedInDE": True, "publishedToOnlineStore": True}
    )
    client.publish_product = AsyncMock(return_value={})
    client.get_shipping_rates = AsyncMock(return_value={})
    client.get_market_availability = AsyncMock(return_value=None)
    client.get_inventory_levels = AsyncMock(return_value={"levels": [], "totalAvailable": 0})
    client.get_variant = AsyncMock(return_value={})
    client.get_product = AsyncMock(return_value={"variants": []})
    return client


@pytest.fixture
def configured_settings(monkeypatch):
    monkeypatch.setattr(settings, "shopify_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    return settings


@pytest.fixture
def app(store, registry, commerce, configured_settings):
    fastapi_app.dependency_overrides[get_store] = lambda: store
    fastapi_app.dependency_overrides[get_registry] = lambda: registry
    fastapi_app.dependency_overrides[get_commerce] = lambda: commerce
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Synchronous test client; the lifespan is not run."""
    return TestClient(app)


@pytest.fixture
async def async_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
