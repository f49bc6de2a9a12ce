from functools import lru_cache
from typing import AsyncGenerator

from ..answer.pipeline import AnswerPipeline
from ..db.document_store import DocumentStore, open_document_store
from ..embeddings.embedder import Embedder
from ..ingestion.failed_chunks import FailedChunkQueue
from ..ingestion.pipeline import IngestionPipeline
from ..llm.client import GenerationClient


@lru_cache
def get_embedder() -> Embedder:
    return Embedder()


@lru_cache
def get_generation_client() -> GenerationClient:
    return GenerationClient()


@lru_cache
def get_failed_chunk_queue() -> FailedChunkQueue:
    return FailedChunkQueue()


# Singletons: the failed-chunk queue must outlive a single request so a later
# retry call can see what earlier uploads left behind.
@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        embedder=get_embedder(),
        failed_chunks=get_failed_chunk_queue(),
    )


@lru_cache
def get_answer_pipeline() -> AnswerPipeline:
    return AnswerPipeline(
        embedder=get_embedder(),
        generator=get_generation_client(),
    )


async def get_document_store() -> AsyncGenerator[DocumentStore, None]:
    """
    Per-request DocumentStore bound to its own session.
    """
    async with open_document_store() as store:
        yield store
