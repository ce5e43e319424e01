"""
SQL-backed document store on top of the SQLAlchemy async engine.
"""
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.document import Document
from app.repositories.base import (
    DocumentNotFoundError,
    DocumentStore,
    StoredDocument,
    doc_path,
    server_timestamp,
)


class SqlDocumentStore(DocumentStore):
    """
    Document store persisting each document as one row of `documents`.

    Each call opens its own session and transaction, so every write is
    atomic for exactly one document.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @staticmethod
    def _to_stored(row: Document) -> StoredDocument:
        return StoredDocument(id=row.doc_id, collection=row.collection, data=dict(row.data or {}))

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        async with self.session_factory() as session:
            row = await session.get(Document, doc_path(collection, doc_id))
            return self._to_stored(row) if row else None

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        now = server_timestamp()
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(Document, doc_path(collection, doc_id), with_for_update=True)
                if row is None:
                    session.add(
                        Document(
                            path=doc_path(collection, doc_id),
                            collection=collection,
                            doc_id=doc_id,
                            data={**data, "createdAt": data.get("createdAt", now), "updatedAt": now},
                        )
                    )
                    return

                if merge:
                    new_data = {**(row.data or {}), **data}
                else:
                    new_data = {"createdAt": (row.data or {}).get("createdAt", now), **data}
                new_data["updatedAt"] = now
                # Reassign so the JSON column is flagged dirty
                row.data = new_data

    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(Document, doc_path(collection, doc_id), with_for_update=True)
                if row is None:
                    raise DocumentNotFoundError(collection, doc_id)
                row.data = {**(row.data or {}), **data, "updatedAt": server_timestamp()}

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(Document).where(Document.path == doc_path(collection, doc_id))
                )
                return (result.rowcount or 0) > 0

    async def list(self, collection: str) -> list[StoredDocument]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.collection == collection)
                .order_by(Document.doc_id)
            )
            return [self._to_stored(row) for row in result.scalars().all()]
