"""
Domain Data Models

Canonical in-process data shapes shared by the ingestion and answer
pipelines:

- Chunk: a bounded segment of extracted text, tagged with its position
- DocumentRow: the insert payload for the document store
- StoredDocument / SimilarityMatch: what the store hands back on search
- FailedChunk: a chunk queued for a later retry pass
- Answer / UploadReport: pipeline results returned to callers
"""

from __future__ import annotations

from typing import List
from pydantic import BaseModel, Field, ConfigDict


class Chunk(BaseModel):
    """
    A contiguous unit of extracted document text.

    Created in memory by the chunker and consumed by the ingestion pipeline;
    persisted only alongside its embedding.
    """

    content: str = Field(
        ...,
        min_length=1,
        description="Chunk text with control characters stripped.",
    )

    position: int = Field(
        ...,
        ge=1,
        description="1-based sequence index within the source document.",
    )

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


class DocumentRow(BaseModel):
    """
    Payload for a single document store insert.
    """

    file_name: str = Field(..., min_length=1)
    page_num: int = Field(..., ge=1)
    content: str
    embedding: List[float]

    model_config = ConfigDict(extra="forbid")


class StoredDocument(BaseModel):
    """
    A persisted chunk as returned by the store (vector omitted).
    """

    id: int
    file_name: str
    page_num: int
    content: str

    model_config = ConfigDict(extra="forbid")


class SimilarityMatch(BaseModel):
    """
    A stored document plus its cosine similarity to a query vector.
    """

    document: StoredDocument
    similarity: float = Field(..., ge=0.0, le=1.0)

    model_config = ConfigDict(extra="forbid")

    def attribution(self) -> str:
        return f"Source: {self.document.file_name} (page: {self.document.page_num})"


class FailedChunk(BaseModel):
    """
    A chunk that could not be embedded or persisted.

    ``attempts`` counts the ingestion passes in which it failed.
    """

    file_name: str = Field(..., min_length=1)
    chunk: Chunk
    attempts: int = Field(default=1, ge=0)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


class Answer(BaseModel):
    """
    Result of the answer pipeline: generated text plus provenance.
    """

    answer: str
    sources: List[SimilarityMatch] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class UploadReport(BaseModel):
    """
    Outcome of uploading one document.
    """

    file_name: str
    document_ids: List[int] = Field(default_factory=list)
    original_chunks: int = Field(..., ge=0)
    processed_chunks: int = Field(..., ge=0)
    failed_chunks: int = Field(..., ge=0)
    queued_chunks: int = Field(default=0, ge=0)
    retried_chunks: int = Field(default=0, ge=0)
    size_warning: bool = False

    model_config = ConfigDict(extra="forbid")
