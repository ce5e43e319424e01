"""
Catalog repository: typed access to mirror records, storefront replicas,
categories and carts on top of a DocumentStore.
"""
import re
from typing import Any, Optional

from pydantic import ValidationError

from app.core.logging import get_logger
from app.repositories.base import DocumentStore, StoredDocument
from app.schemas.catalog import (
    Cart,
    Category,
    MirrorRecord,
    ReplicaProduct,
    ReplicaVariant,
    normalize_shopify_id,
)

logger = get_logger(__name__)

MIRROR_COLLECTION = "shopifyItems"
CART_COLLECTION = "carts"


def products_collection(storefront: str) -> str:
    return f"{storefront}/products/items"


def variants_collection(storefront: str, product_id: str) -> str:
    return f"{products_collection(storefront)}/{product_id}/variants"


def categories_collection(storefront: str) -> str:
    return f"{storefront}/categories/items"


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to dashes, trim dashes."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


class CatalogRepository:
    """
    Repository for the documents the reconciliation pipeline reads and writes.

    Canonical ids are compared in their normalized string form, so replicas
    that stored `sourceShopifyId` as a number and those that stored it as a
    string are both found.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # Mirror records

    async def list_mirror_documents(self) -> list[StoredDocument]:
        """Raw mirror documents, including ones without a `shopifyId`."""
        return await self.store.list(MIRROR_COLLECTION)

    @staticmethod
    def mirror_from_document(doc: StoredDocument) -> MirrorRecord:
        return MirrorRecord.model_validate({**doc.data, "doc_id": doc.id})

    async def list_mirrors(self) -> list[MirrorRecord]:
        mirrors = []
        for doc in await self.list_mirror_documents():
            if not doc.data.get("shopifyId"):
                logger.warning("Skipping mirror record without shopifyId", doc_id=doc.id)
                continue
            try:
                mirrors.append(self.mirror_from_document(doc))
            except ValidationError as e:
                logger.error("Invalid mirror record", doc_id=doc.id, error=str(e))
        return mirrors

    async def find_mirrors(self, shopify_id: Any) -> list[MirrorRecord]:
        """All mirror documents for a canonical id (normally at most one)."""
        target = normalize_shopify_id(shopify_id)
        return [
            self.mirror_from_document(doc)
            for doc in await self.store.list(MIRROR_COLLECTION)
            if normalize_shopify_id(doc.data.get("shopifyId")) == target
        ]

    async def get_mirror(self, shopify_id: Any) -> Optional[MirrorRecord]:
        mirrors = await self.find_mirrors(shopify_id)
        return mirrors[0] if mirrors else None

    async def find_mirror_by_inventory_item(self, inventory_item_id: Any) -> Optional[MirrorRecord]:
        """Locate the mirror whose snapshot holds a variant with this inventory item."""
        target = normalize_shopify_id(inventory_item_id)
        for mirror in await self.list_mirrors():
            if mirror.raw_product and any(
                v.inventory_item_id == target for v in mirror.raw_product.variants
            ):
                return mirror
        return None

    async def find_mirror_by_variant(self, shopify_variant_id: Any) -> Optional[MirrorRecord]:
        target = normalize_shopify_id(shopify_variant_id)
        for mirror in await self.list_mirrors():
            if mirror.raw_product and mirror.raw_product.find_variant(target):
                return mirror
        return None

    async def new_mirror_doc_id(self, handle: Optional[str], title: Optional[str], shopify_id: str) -> str:
        """Slug document id from handle, then title, then the canonical id."""
        base = slugify(handle or "") or slugify(title or "") or f"shopify-product-{shopify_id}"
        doc_id = base
        if await self.store.get(MIRROR_COLLECTION, doc_id) is not None:
            doc_id = f"{base}-{shopify_id}"
        return doc_id

    async def create_mirror(self, doc_id: str, data: dict[str, Any]) -> None:
        await self.store.set(MIRROR_COLLECTION, doc_id, data)

    async def update_mirror(self, doc_id: str, data: dict[str, Any]) -> None:
        await self.store.update(MIRROR_COLLECTION, doc_id, data)

    async def delete_mirror(self, doc_id: str) -> bool:
        return await self.store.delete(MIRROR_COLLECTION, doc_id)

    # Replica products

    @staticmethod
    def _replica(storefront: str, doc: StoredDocument) -> ReplicaProduct:
        return ReplicaProduct.model_validate({**doc.data, "id": doc.id, "storefront": storefront})

    async def list_replicas(self, storefront: str) -> list[ReplicaProduct]:
        return [self._replica(storefront, doc) for doc in await self.store.list(products_collection(storefront))]

    async def find_replicas(
        self,
        storefront: str,
        shopify_id: Any,
        mirror_doc_id: Optional[str] = None,
    ) -> list[ReplicaProduct]:
        """
        Replica products of one storefront referencing a canonical product.

        Matches `sourceShopifyId` (numeric or string form) and, when given,
        the `sourceShopifyItemDocId` back-reference. Each replica is
        returned once.
        """
        target = normalize_shopify_id(shopify_id)
        found = []
        for doc in await self.store.list(products_collection(storefront)):
            by_id = normalize_shopify_id(doc.data.get("sourceShopifyId")) == target
            by_doc = mirror_doc_id is not None and doc.data.get("sourceShopifyItemDocId") == mirror_doc_id
            if by_id or by_doc:
                found.append(self._replica(storefront, doc))
        return found

    async def update_replica(self, storefront: str, product_id: str, data: dict[str, Any]) -> None:
        await self.store.update(products_collection(storefront), product_id, data)

    async def delete_replica(self, storefront: str, product_id: str) -> int:
        """Delete a replica product and its variants. Returns variants deleted."""
        deleted_variants = 0
        for variant in await self.list_variants(storefront, product_id):
            if await self.store.delete(variants_collection(storefront, product_id), variant.id):
                deleted_variants += 1
        await self.store.delete(products_collection(storefront), product_id)
        return deleted_variants

    # Replica variants

    async def list_variants(self, storefront: str, product_id: str) -> list[ReplicaVariant]:
        return [
            ReplicaVariant.model_validate({**doc.data, "id": doc.id})
            for doc in await self.store.list(variants_collection(storefront, product_id))
        ]

    async def update_variant(
        self,
        storefront: str,
        product_id: str,
        variant_id: str,
        data: dict[str, Any],
    ) -> None:
        await self.store.update(variants_collection(storefront, product_id), variant_id, data)

    async def delete_variant(self, storefront: str, product_id: str, variant_id: str) -> bool:
        return await self.store.delete(variants_collection(storefront, product_id), variant_id)

    # Categories

    async def list_categories(self, storefront: str) -> list[Category]:
        return [
            Category.model_validate({**doc.data, "id": doc.id})
            for doc in await self.store.list(categories_collection(storefront))
        ]

    async def update_category(self, storefront: str, category_id: str, data: dict[str, Any]) -> None:
        await self.store.update(categories_collection(storefront), category_id, data)

    async def delete_category(self, storefront: str, category_id: str) -> bool:
        return await self.store.delete(categories_collection(storefront), category_id)

    # Carts

    async def list_carts(self) -> list[Cart]:
        return [
            Cart.model_validate({**doc.data, "id": doc.id})
            for doc in await self.store.list(CART_COLLECTION)
        ]

    async def update_cart_items(self, cart_id: str, items: list[dict[str, Any]]) -> None:
        await self.store.update(CART_COLLECTION, cart_id, {"items": items})
