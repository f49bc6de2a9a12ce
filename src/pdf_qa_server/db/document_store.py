"""
Document Store

PostgreSQL + pgvector based persistence and similarity search for document
chunks.

Every row written satisfies two invariants: non-empty content, and an
embedding of exactly ``settings.embedding_dimension`` floats. Rows that fail
either check are rejected before touching the database.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..core.errors import StorageError, StoreUnavailableError
from ..models import DocumentRow, SimilarityMatch, StoredDocument
from .models import Document
from .session import AsyncSessionLocal


logger = logging.getLogger("pdfqa.store")

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError)


class DocumentStore:
    """
    PostgreSQL-backed document store using pgvector for similarity search.
    """

    def __init__(self, session: AsyncSession, dimension: Optional[int] = None) -> None:
        """
        Initialize with an async database session.

        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        dimension : Optional[int]
            Expected embedding length. Defaults to settings.embedding_dimension.
        """
        self._session = session
        self._dimension = dimension or settings.embedding_dimension

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _validate_row(self, row: DocumentRow) -> None:
        if not row.content or not row.content.strip():
            raise StorageError(
                f"Refusing to store empty content for {row.file_name} page {row.page_num}."
            )

        if len(row.embedding) != self._dimension:
            raise StorageError(
                f"Embedding dimension mismatch: expected {self._dimension}, "
                f"got {len(row.embedding)}."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def insert(self, row: DocumentRow) -> int:
        """
        Persist one chunk and return its id.

        Each insert is committed on its own, so earlier rows survive a later
        failure in the same pass.

        Raises
        ------
        StorageError
            If the row violates an invariant or the insert fails.
        StoreUnavailableError
            If the database cannot be reached.
        """
        self._validate_row(row)

        record = Document(
            file_name=row.file_name,
            page_num=row.page_num,
            content=row.content,
            embedding=row.embedding,
        )
        self._session.add(record)

        try:
            await self._session.flush()
            doc_id = record.id
            await self._session.commit()
        except _UNAVAILABLE_ERRORS as exc:
            await self._safe_rollback()
            raise StoreUnavailableError(
                f"Document store unavailable: {type(exc).__name__}"
            ) from exc
        except SQLAlchemyError as exc:
            await self._safe_rollback()
            raise StorageError(
                f"Failed to store {row.file_name} page {row.page_num}: {type(exc).__name__}"
            ) from exc

        return doc_id

    async def similarity_search(
        self,
        query_embedding: List[float],
        threshold: float,
        limit: int,
    ) -> List[SimilarityMatch]:
        """
        Search for similar chunks using cosine similarity.

        Parameters
        ----------
        query_embedding : List[float]
            Query vector.
        threshold : float
            Minimum similarity (0-1) a row must reach.
        limit : int
            Maximum number of results.

        Returns
        -------
        List[SimilarityMatch]
            Matches ordered by descending similarity.
        """
        if limit <= 0:
            return []

        # pgvector's <=> operator
        cosine_distance = Document.embedding.cosine_distance(query_embedding)

        stmt = (
            select(
                Document.id,
                Document.file_name,
                Document.page_num,
                Document.content,
                (1 - cosine_distance).label("similarity"),
            )
            .where((1 - cosine_distance) >= threshold)
            .order_by(cosine_distance)
            .limit(limit)
        )

        try:
            result = await self._session.execute(stmt)
            rows = result.all()
        except _UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError(
                f"Document store unavailable: {type(exc).__name__}"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Similarity search failed: {type(exc).__name__}") from exc

        return [
            SimilarityMatch(
                document=StoredDocument(
                    id=row.id,
                    file_name=row.file_name,
                    page_num=row.page_num,
                    content=row.content,
                ),
                similarity=min(1.0, max(0.0, float(row.similarity))),
            )
            for row in rows
        ]

    async def count(self, file_name: Optional[str] = None) -> int:
        """
        Return the number of stored chunks, optionally for one file.
        """
        stmt = select(func.count()).select_from(Document)
        if file_name is not None:
            stmt = stmt.where(Document.file_name == file_name)

        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def list_files(self) -> Dict[str, int]:
        """
        Return a mapping of file name to stored chunk count.
        """
        stmt = (
            select(Document.file_name, func.count().label("chunks"))
            .group_by(Document.file_name)
            .order_by(Document.file_name)
        )
        result = await self._session.execute(stmt)
        return {row.file_name: row.chunks for row in result.all()}

    async def _safe_rollback(self) -> None:
        try:
            await self._session.rollback()
        except _UNAVAILABLE_ERRORS + (SQLAlchemyError,) as exc:
            logger.warning("Rollback after failed insert also failed: %s", exc)


# ---------------------------------------------------------------------
# Session-scoped factory
# ---------------------------------------------------------------------

StoreFactory = Callable[[], AsyncContextManager[DocumentStore]]


@asynccontextmanager
async def open_document_store(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncIterator[DocumentStore]:
    """
    Yield a DocumentStore bound to a fresh session.

    Each ingestion pass or question opens its own session; sessions are never
    shared between concurrent requests.
    """
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        yield DocumentStore(session)
