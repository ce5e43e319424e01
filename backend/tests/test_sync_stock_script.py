"""
Tests for the batch stock sync command.
"""
from unittest.mock import AsyncMock

import pytest

from app.core.config import settings
from app.repositories import InMemoryDocumentStore
from app.scripts import sync_stock
from factories import seed_mirror, seed_replica


@pytest.fixture
def script_store(monkeypatch):
    store = InMemoryDocumentStore()
    monkeypatch.setattr(sync_stock, "init_db", AsyncMock())
    monkeypatch.setattr(sync_stock, "close_db", AsyncMock())
    monkeypatch.setattr(sync_stock, "is_db_available", lambda: True)
    monkeypatch.setattr(sync_stock, "SqlDocumentStore", lambda session_factory: store)
    monkeypatch.setattr(sync_stock, "configure_logging", lambda: None)
    monkeypatch.setattr(settings, "storefronts_str", "LUNERA")
    return store


def test_parse_args_repeatable_ids():
    args = sync_stock.parse_args(["--shopify-id", "1", "--shopify-id", "2"])
    assert args.shopify_ids == ["1", "2"]
    assert sync_stock.parse_args([]).shopify_ids is None


async def test_success_exit_code(script_store, capsys):
    await seed_mirror(
        script_store,
        "silk-dress",
        123,
        rawProduct={"id": 123, "variants": [{"id": "v1", "inventory_item_id": "i1", "inventory_quantity": 3}]},
    )
    await seed_replica(
        script_store,
        "LUNERA",
        "prod-1",
        {"sourceShopifyId": 123},
        variants={"v": {"shopifyInventoryItemId": "i1", "stock": 0}},
    )

    exit_code = await sync_stock.main([])

    assert exit_code == 0
    assert "Products updated: 1" in capsys.readouterr().out
    assert (await script_store.get("LUNERA/products/items/prod-1/variants", "v")).data["stock"] == 3


async def test_errors_exit_non_zero(script_store):
    await script_store.set("shopifyItems", "bad", {"shopifyId": "1", "markets": "not-a-list"})

    assert await sync_stock.main([]) == 1


async def test_missing_target_is_fatal(script_store):
    assert await sync_stock.main(["--shopify-id", "404"]) == 1


async def test_database_unavailable(monkeypatch, script_store):
    monkeypatch.setattr(sync_stock, "is_db_available", lambda: False)

    assert await sync_stock.main([]) == 1
