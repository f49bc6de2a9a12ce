"""
Database Package

Provides SQLAlchemy async session management, the documents table model and
the pgvector-backed document store.
"""

from .session import async_engine, AsyncSessionLocal, init_db
from .models import Base, Document
from .document_store import DocumentStore, StoreFactory, open_document_store

__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "init_db",
    "Base",
    "Document",
    "DocumentStore",
    "StoreFactory",
    "open_document_store",
]
