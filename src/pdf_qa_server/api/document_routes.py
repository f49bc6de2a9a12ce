"""
Document Routes

This module exposes endpoints for:
- Uploading a PDF and ingesting its chunks
- Listing stored documents and their chunk counts
- Retrying chunks that failed during earlier uploads
- Inspecting the failed-chunk queue
"""

from fastapi import APIRouter, Depends, File, UploadFile
from typing import Annotated

from .models import (
    DocumentListResponse,
    FailedChunkModel,
    FailedChunksResponse,
    RetryResponse,
    UploadResponse,
    error_responses,
)
from .dependencies import get_document_store, get_ingestion_pipeline
from ..db.document_store import DocumentStore
from ..ingestion.pipeline import IngestionPipeline
from ..ingestion.upload import upload_document

router = APIRouter(prefix="/documents", tags=["documents"])


# ---------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------

@router.post(
    "",
    response_model=UploadResponse,
    responses=error_responses(400, 503),
    summary="Upload a PDF and store its chunks",
)
async def upload(
    file: Annotated[UploadFile, File(...)],
    pipeline: Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)],
) -> UploadResponse:
    """
    Extract, chunk, embed and store an uploaded PDF.

    Chunks that fail are retried once before responding; whatever still
    fails is reported in ``failed_chunks``.
    """
    data = await file.read()
    report = await upload_document(file.filename or "", data, pipeline)
    return UploadResponse.from_report(report)


# ---------------------------------------------------------------------
# Stored Documents
# ---------------------------------------------------------------------

@router.get(
    "",
    response_model=DocumentListResponse,
    responses=error_responses(500),
    summary="List stored documents with their chunk counts",
)
async def list_documents(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> DocumentListResponse:
    return DocumentListResponse(
        total_chunks=await store.count(),
        files=await store.list_files(),
    )


# ---------------------------------------------------------------------
# Failed Chunks
# ---------------------------------------------------------------------

@router.post(
    "/retry",
    response_model=RetryResponse,
    responses=error_responses(503),
    summary="Retry every queued failed chunk",
)
async def retry_failed(
    pipeline: Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)],
) -> RetryResponse:
    ids = await pipeline.retry_failed_chunks()

    return RetryResponse(
        document_ids=ids,
        processed_chunks=len(ids),
        remaining_failed=pipeline.failed_chunks.count(),
    )


@router.get(
    "/failed",
    response_model=FailedChunksResponse,
    summary="List chunks waiting for a retry pass",
)
async def failed_chunks(
    pipeline: Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)],
) -> FailedChunksResponse:
    pending = pipeline.pending_failures()

    return FailedChunksResponse(
        pending=len(pending),
        by_file=pipeline.failed_chunks.counts_by_file(),
        chunks=[FailedChunkModel.from_failed(entry) for entry in pending],
    )
