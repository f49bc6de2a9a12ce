"""
Upload Orchestration

Validates an uploaded file and drives it through extract -> chunk -> ingest,
followed by one immediate retry pass for any chunks of that file that failed.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import settings
from ..core.errors import ChunkingError, ExtractionError, StoreUnavailableError, ValidationError
from ..models import UploadReport
from .chunker import chunk_stats, chunk_text
from .extractor import extract_text
from .pipeline import IngestionPipeline

logger = logging.getLogger("pdfqa.upload")

BYTES_PER_MB = 1024 * 1024


def validate_pdf_file(file_name: Optional[str], size: int) -> float:
    """
    Check that an upload looks like a usable PDF.

    Parameters
    ----------
    file_name : Optional[str]
        Client-supplied file name.

    size : int
        Size of the upload in bytes.

    Returns
    -------
    float
        Size in megabytes.

    Raises
    ------
    ValidationError
        If the name is missing, does not end in ``.pdf``, or the file is empty.
    """
    if not file_name:
        raise ValidationError("No file was provided.")

    if not file_name.lower().endswith(".pdf"):
        raise ValidationError("Only PDF files are supported.")

    if size <= 0:
        raise ValidationError("The uploaded file is empty.")

    size_mb = size / BYTES_PER_MB
    if size_mb > settings.max_upload_warning_mb:
        logger.warning(
            "Large upload %s (%.1f MB); processing may take a while",
            file_name,
            size_mb,
        )

    return size_mb


async def upload_document(
    file_name: str,
    data: bytes,
    pipeline: IngestionPipeline,
    chunk_size: Optional[int] = None,
) -> UploadReport:
    """
    Ingest one uploaded PDF and report what happened.

    Only an unreachable store fails the upload; individual chunk failures are
    reflected in the report's counts. Every chunk of this upload is either
    stored or counted in ``failed_chunks``, whether it is still queued or was
    discarded after too many attempts.
    """
    size_mb = validate_pdf_file(file_name, len(data))

    text = extract_text(data)
    if not text.strip():
        raise ExtractionError("No text could be extracted from the PDF.")

    chunks = chunk_text(text, chunk_size)
    if not chunks:
        raise ChunkingError("The extracted text produced no chunks.")

    logger.info("Chunked %s: %s", file_name, chunk_stats(chunks))

    # A re-upload replaces whatever an earlier upload of this name left queued
    stale = pipeline.failed_chunks.drain(file_name)
    if stale:
        logger.warning(
            "Discarding %d queued chunks of %s superseded by this upload",
            len(stale),
            file_name,
        )

    ids = await pipeline.ingest(file_name, chunks)

    retried = pipeline.failed_chunks.count(file_name)
    if retried:
        logger.info("Retrying %d failed chunks of %s", retried, file_name)
        try:
            ids.extend(await pipeline.retry_failed_chunks(file_name))
        except StoreUnavailableError as exc:
            logger.error("Retry pass for %s aborted: %s", file_name, exc)

    report = UploadReport(
        file_name=file_name,
        document_ids=ids,
        original_chunks=len(chunks),
        processed_chunks=len(ids),
        failed_chunks=len(chunks) - len(ids),
        queued_chunks=pipeline.failed_chunks.count(file_name),
        retried_chunks=retried,
        size_warning=size_mb > settings.max_upload_warning_mb,
    )

    logger.info(
        "Upload of %s finished: %d/%d chunks stored, %d failed",
        file_name,
        report.processed_chunks,
        report.original_chunks,
        report.failed_chunks,
    )
    return report
