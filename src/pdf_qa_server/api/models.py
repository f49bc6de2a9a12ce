"""
API Models for the PDF Q&A Service

This module defines the Pydantic models used for request/response validation
across the document and chat endpoints.

Design Goals
------------
- Strong typing
- Safe defaults (no shared mutable state)
- Clear schema documentation
- Forward compatibility with testing and OpenAPI generation
"""

from __future__ import annotations

from typing import Any, Dict, List
from pydantic import BaseModel, Field, ConfigDict

from ..models import FailedChunk, SimilarityMatch, UploadReport


# ---------------------------------------------------------------------
# Error Model
# ---------------------------------------------------------------------

class ErrorResponse(BaseModel):
    """
    Body of every error response.
    """
    error: str = Field(..., description="Error kind, e.g. 'validation' or 'storage'.")
    detail: str

    model_config = ConfigDict(extra="forbid")


def error_responses(*statuses: int) -> Dict[int | str, Dict[str, Any]]:
    """
    OpenAPI ``responses=`` entries documenting ErrorResponse for ``statuses``.
    """
    return {status: {"model": ErrorResponse} for status in statuses}


# ---------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------

class AskRequest(BaseModel):
    """
    Question to answer from the uploaded documents.

    Blank questions are accepted here and rejected by the answer pipeline,
    so they surface as a 'validation' error rather than a schema error.
    """
    question: str

    model_config = ConfigDict(extra="forbid")


class SourceModel(BaseModel):
    """
    A document chunk used as context for an answer.
    """
    id: int
    file_name: str
    page_num: int
    content: str
    similarity: float = Field(..., ge=0.0, le=1.0)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_match(cls, match: SimilarityMatch) -> "SourceModel":
        doc = match.document
        return cls(
            id=doc.id,
            file_name=doc.file_name,
            page_num=doc.page_num,
            content=doc.content,
            similarity=match.similarity,
        )


class AskResponse(BaseModel):
    success: bool = True
    answer: str
    sources: List[SourceModel] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Document Models
# ---------------------------------------------------------------------

class UploadResponse(BaseModel):
    """
    Result of uploading and ingesting one PDF.
    """
    success: bool = True
    file_name: str
    document_ids: List[int] = Field(default_factory=list)
    original_chunks: int = Field(..., ge=0)
    processed_chunks: int = Field(..., ge=0)
    failed_chunks: int = Field(..., ge=0)
    queued_chunks: int = Field(default=0, ge=0)
    message: str

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_report(cls, report: UploadReport) -> "UploadResponse":
        message = (
            f"Processed {report.processed_chunks} of {report.original_chunks} chunks "
            f"from {report.file_name}."
        )
        if report.failed_chunks:
            message += (
                f" {report.failed_chunks} chunks failed,"
                f" {report.queued_chunks} of them queued for retry."
            )

        return cls(
            file_name=report.file_name,
            document_ids=report.document_ids,
            original_chunks=report.original_chunks,
            processed_chunks=report.processed_chunks,
            failed_chunks=report.failed_chunks,
            queued_chunks=report.queued_chunks,
            message=message,
        )


class RetryResponse(BaseModel):
    """
    Result of a retry pass over queued failed chunks.
    """
    success: bool = True
    document_ids: List[int] = Field(default_factory=list)
    processed_chunks: int = Field(..., ge=0)
    remaining_failed: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


class FailedChunkModel(BaseModel):
    file_name: str
    position: int = Field(..., ge=1)
    attempts: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_failed(cls, entry: FailedChunk) -> "FailedChunkModel":
        return cls(
            file_name=entry.file_name,
            position=entry.chunk.position,
            attempts=entry.attempts,
        )


class FailedChunksResponse(BaseModel):
    """
    Chunks currently waiting for a retry pass.
    """
    pending: int = Field(..., ge=0)
    by_file: Dict[str, int] = Field(default_factory=dict)
    chunks: List[FailedChunkModel] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class DocumentListResponse(BaseModel):
    """
    Stored chunk counts, overall and per file.
    """
    total_chunks: int = Field(..., ge=0)
    files: Dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
