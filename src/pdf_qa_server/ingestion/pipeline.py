"""
Ingestion Pipeline

Turns chunks of one document into persisted, embedded rows.

Chunks are processed strictly one after another: embed, then insert. A chunk
that cannot be embedded or stored is recorded in the pipeline's
FailedChunkQueue and the pass moves on; only a store that cannot be reached
at all aborts the pass.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import settings
from ..core.errors import PdfQaError, StorageError, StoreUnavailableError
from ..db.document_store import DocumentStore, StoreFactory, open_document_store
from ..embeddings.embedder import Embedder
from ..models import Chunk, DocumentRow, FailedChunk
from .extractor import strip_control_characters
from .failed_chunks import FailedChunkQueue

logger = logging.getLogger("pdfqa.ingestion")

# (chunk, number of earlier passes in which it failed)
PendingChunk = Tuple[Chunk, int]


class IngestionPipeline:
    """
    Embeds and stores chunks, tracking the ones that fail.

    One instance is shared by the application; each pass opens its own
    store session through ``store_factory``.
    """

    def __init__(
        self,
        embedder: Embedder,
        store_factory: StoreFactory = open_document_store,
        failed_chunks: Optional[FailedChunkQueue] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        """
        Parameters
        ----------
        embedder : Embedder
            Client used to embed chunk text.

        store_factory : StoreFactory
            Zero-argument callable returning an async context manager that
            yields a DocumentStore.

        failed_chunks : Optional[FailedChunkQueue]
            Queue for failed chunks. A fresh queue is created if omitted.

        max_attempts : Optional[int]
            Number of failed passes after which a chunk is discarded.
            Defaults to settings.failed_chunk_max_attempts.

        Raises
        ------
        ValueError
            If ``max_attempts`` is below 2.
        """
        self._embedder = embedder
        self._store_factory = store_factory
        self.failed_chunks = failed_chunks if failed_chunks is not None else FailedChunkQueue()
        self.max_attempts = max_attempts or settings.failed_chunk_max_attempts
        if self.max_attempts < 2:
            raise ValueError("max_attempts must be at least 2")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, file_name: str, chunks: Sequence[Chunk]) -> List[int]:
        """
        Embed and store every chunk of one document.

        Parameters
        ----------
        file_name : str
            Source document name, stored with each row.

        chunks : Sequence[Chunk]
            Chunks in document order.

        Returns
        -------
        List[int]
            Ids of the rows written in this pass, in chunk order.

        Raises
        ------
        StoreUnavailableError
            If the store cannot be reached. The current chunk and every
            chunk not yet attempted are queued as failed first.
        """
        if not chunks:
            return []

        logger.info("Ingesting %d chunks from %s", len(chunks), file_name)

        async with self._store_factory() as store:
            ids = await self._process(file_name, [(chunk, 0) for chunk in chunks], store)

        logger.info(
            "Ingested %s: %d stored, %d pending retry",
            file_name,
            len(ids),
            self.failed_chunks.count(file_name),
        )
        return ids

    async def retry_failed_chunks(self, file_name: Optional[str] = None) -> List[int]:
        """
        Re-run queued failed chunks.

        Chunks that fail again go back on the queue with their attempt count
        incremented, until ``max_attempts`` is reached.

        Parameters
        ----------
        file_name : Optional[str]
            Restrict the pass to one document's chunks.

        Returns
        -------
        List[int]
            Ids of rows written during this pass.
        """
        drained = self.failed_chunks.drain(file_name)
        if not drained:
            logger.debug("No failed chunks to retry")
            return []

        groups: Dict[str, List[PendingChunk]] = {}
        for entry in drained:
            groups.setdefault(entry.file_name, []).append((entry.chunk, entry.attempts))

        logger.info(
            "Retrying %d failed chunks across %d file(s)", len(drained), len(groups)
        )

        ids: List[int] = []
        names = list(groups)
        for index, name in enumerate(names):
            try:
                async with self._store_factory() as store:
                    ids.extend(await self._process(name, groups[name], store))
            except StoreUnavailableError:
                for later in names[index + 1:]:
                    self.failed_chunks.extend(
                        FailedChunk(file_name=later, chunk=chunk, attempts=attempts)
                        for chunk, attempts in groups[later]
                    )
                logger.error(
                    "Store unavailable during retry; %d chunks stored before abort",
                    len(ids),
                )
                raise

        logger.info(
            "Retry pass stored %d chunks, %d still pending",
            len(ids),
            self.failed_chunks.count(file_name),
        )
        return ids

    def pending_failures(self, file_name: Optional[str] = None) -> List[FailedChunk]:
        return self.failed_chunks.snapshot(file_name)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _process(
        self,
        file_name: str,
        pending: Sequence[PendingChunk],
        store: DocumentStore,
    ) -> List[int]:
        ids: List[int] = []

        for index, (chunk, attempts) in enumerate(pending):
            content = strip_control_characters(chunk.content)
            if not content.strip():
                logger.warning(
                    "Skipping chunk %d of %s: empty after sanitizing",
                    chunk.position,
                    file_name,
                )
                continue

            try:
                vector = await self._embedder.embed(content)
            except PdfQaError as exc:
                logger.warning(
                    "Embedding failed for chunk %d of %s: %s",
                    chunk.position,
                    file_name,
                    exc,
                )
                self._record_failure(file_name, chunk, attempts)
                continue

            if not vector:
                logger.warning(
                    "Empty embedding for chunk %d of %s", chunk.position, file_name
                )
                self._record_failure(file_name, chunk, attempts)
                continue

            row = DocumentRow(
                file_name=file_name,
                page_num=chunk.position,
                content=content,
                embedding=vector,
            )

            try:
                doc_id = await store.insert(row)
            except StoreUnavailableError:
                self._record_failure(file_name, chunk, attempts)
                self.failed_chunks.extend(
                    FailedChunk(file_name=file_name, chunk=untried, attempts=untried_attempts)
                    for untried, untried_attempts in pending[index + 1:]
                )
                logger.error(
                    "Store unavailable at chunk %d of %s; %d chunks queued for retry",
                    chunk.position,
                    file_name,
                    len(pending) - index,
                )
                raise
            except StorageError as exc:
                logger.warning(
                    "Storing chunk %d of %s failed: %s", chunk.position, file_name, exc
                )
                self._record_failure(file_name, chunk, attempts)
                continue

            logger.debug("Stored chunk %d of %s as id=%s", chunk.position, file_name, doc_id)
            ids.append(doc_id)

        return ids

    def _record_failure(self, file_name: str, chunk: Chunk, prior_attempts: int) -> None:
        attempts = prior_attempts + 1
        if attempts >= self.max_attempts:
            logger.error(
                "Discarding chunk %d of %s after %d failed attempts",
                chunk.position,
                file_name,
                attempts,
            )
            return

        self.failed_chunks.add(
            FailedChunk(file_name=file_name, chunk=chunk, attempts=attempts)
        )
