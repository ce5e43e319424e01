"""
Base document store with common CRUD operations.
Implements the Repository pattern for data access abstraction.

Every operation is atomic for a single document; no operation spans
more than one document.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


class DocumentNotFoundError(LookupError):
    """Raised by `update` when the target document does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} not found")


@dataclass
class StoredDocument:
    """A document read back from the store."""

    id: str
    collection: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


def server_timestamp() -> str:
    """Timestamp assigned by the store on every write."""
    return datetime.now(timezone.utc).isoformat()


def doc_path(collection: str, doc_id: str) -> str:
    return f"{collection}/{doc_id}"


class DocumentStore(ABC):
    """
    Abstract async document store.

    Collections are addressed by slash-separated paths so sub-collections
    nest under their parent document, e.g.
    ``LUNERA/products/items/<productId>/variants``.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        """Get a single document by id."""

    @abstractmethod
    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """Create or replace a document; `merge` keeps fields not in `data`."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Shallow-merge fields into an existing document."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns whether it existed."""

    @abstractmethod
    async def list(self, collection: str) -> list[StoredDocument]:
        """Enumerate every document of a collection."""

    async def query(self, collection: str, field_name: str, value: Any) -> "list[StoredDocument]":
        """Equality query on a top-level field."""
        return [
            doc for doc in await self.list(collection)
            if doc.data.get(field_name) == value
        ]

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id."""
        from uuid import uuid4

        doc_id = uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def close(self) -> None:
        """Release resources held by the store."""
        return None
