"""
Repository package for data access layer.
"""
from app.repositories.base import DocumentNotFoundError, DocumentStore, StoredDocument
from app.repositories.catalog import CatalogRepository
from app.repositories.memory import InMemoryDocumentStore
from app.repositories.sql import SqlDocumentStore

__all__ = [
    "DocumentStore",
    "DocumentNotFoundError",
    "StoredDocument",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "CatalogRepository",
]
