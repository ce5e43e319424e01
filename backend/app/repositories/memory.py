"""
In-memory document store.

Used when the database is unavailable and as the store behind the test
suite. Reads and writes deep-copy so callers never share state with the
store.
"""
import copy
from collections import defaultdict
from typing import Any, Optional

from app.repositories.base import (
    DocumentNotFoundError,
    DocumentStore,
    StoredDocument,
    server_timestamp,
)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return StoredDocument(id=doc_id, collection=collection, data=copy.deepcopy(data))

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        existing = self._collections[collection].get(doc_id)
        now = server_timestamp()
        if existing is not None and merge:
            new_data = {**existing, **copy.deepcopy(data)}
        else:
            new_data = copy.deepcopy(data)
            new_data.setdefault("createdAt", existing.get("createdAt", now) if existing else now)
        new_data["updatedAt"] = now
        self._collections[collection][doc_id] = new_data

    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        existing = self._collections.get(collection, {}).get(doc_id)
        if existing is None:
            raise DocumentNotFoundError(collection, doc_id)
        existing.update(copy.deepcopy(data))
        existing["updatedAt"] = server_timestamp()

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None

    async def list(self, collection: str) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, collection=collection, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
        ]
