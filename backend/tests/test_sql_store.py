"""
Tests for the SQL document store on sqlite+aiosqlite.
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import Base, create_engine
from app.models import Document  # noqa: F401
from app.repositories import CatalogRepository, DocumentNotFoundError, SqlDocumentStore


@pytest.fixture
async def sql_store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'documents.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    store = SqlDocumentStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    yield store
    await engine.dispose()


async def test_set_get_and_timestamps(sql_store):
    await sql_store.set("shopifyItems", "silk-dress", {"shopifyId": "123", "title": "Silk Dress"})

    doc = await sql_store.get("shopifyItems", "silk-dress")

    assert doc.data["title"] == "Silk Dress"
    assert "createdAt" in doc.data
    assert "updatedAt" in doc.data
    assert doc.path == "shopifyItems/silk-dress"


async def test_set_replaces_unless_merge(sql_store):
    await sql_store.set("carts", "c1", {"a": 1, "b": 2})
    await sql_store.set("carts", "c1", {"a": 3})
    assert "b" not in (await sql_store.get("carts", "c1")).data

    await sql_store.set("carts", "c1", {"b": 4}, merge=True)
    data = (await sql_store.get("carts", "c1")).data
    assert data["a"] == 3
    assert data["b"] == 4


async def test_update_merges_top_level_fields(sql_store):
    await sql_store.set("LUNERA/products/items", "p1", {"basePrice": 10, "images": ["a"]})

    await sql_store.update("LUNERA/products/items", "p1", {"basePrice": 12})

    data = (await sql_store.get("LUNERA/products/items", "p1")).data
    assert data["basePrice"] == 12
    assert data["images"] == ["a"]


async def test_update_missing_raises(sql_store):
    with pytest.raises(DocumentNotFoundError):
        await sql_store.update("carts", "missing", {"items": []})


async def test_subcollections_are_separate(sql_store):
    await sql_store.set("LUNERA/products/items", "p1", {"name": "Dress"})
    await sql_store.set("LUNERA/products/items/p1/variants", "v1", {"stock": 1})

    products = await sql_store.list("LUNERA/products/items")

    assert [d.id for d in products] == ["p1"]
    assert [d.id for d in await sql_store.list("LUNERA/products/items/p1/variants")] == ["v1"]


async def test_delete_query_and_add(sql_store):
    doc_id = await sql_store.add("carts", {"owner": "x"})
    await sql_store.set("carts", "c2", {"owner": "y"})

    assert [d.id for d in await sql_store.query("carts", "owner", "x")] == [doc_id]
    assert await sql_store.delete("carts", doc_id) is True
    assert await sql_store.delete("carts", doc_id) is False
    assert await sql_store.get("carts", doc_id) is None


async def test_catalog_repository_on_sql(sql_store):
    repo = CatalogRepository(sql_store)
    await sql_store.set("shopifyItems", "silk-dress", {"shopifyId": 123})
    await sql_store.set("LUNERA/products/items", "p1", {"sourceShopifyId": "123"})
    await sql_store.set("LUNERA/products/items/p1/variants", "v1", {"stock": 2})

    mirror = await repo.get_mirror("gid://shopify/Product/123")
    replicas = await repo.find_replicas("LUNERA", 123)
    deleted_variants = await repo.delete_replica("LUNERA", "p1")

    assert mirror.doc_id == "silk-dress"
    assert [r.id for r in replicas] == ["p1"]
    assert deleted_variants == 1
    assert await sql_store.list("LUNERA/products/items") == []
