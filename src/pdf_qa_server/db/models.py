"""
SQLAlchemy Models

Defines the database schema for document chunks and their embeddings
(vector storage with pgvector).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    Text,
    DateTime,
    Index,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from ..config import settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Document Model
# ---------------------------------------------------------------------

class Document(Base):
    """
    One chunk of an uploaded PDF together with its embedding.

    Rows are written once by the ingestion pipeline and never updated.
    """
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    page_num: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    # pgvector column sized to the configured embedding model
    embedding = Column(Vector(settings.embedding_dimension), nullable=False)

    __table_args__ = (
        Index("idx_documents_file_page", "file_name", "page_num"),
    )
