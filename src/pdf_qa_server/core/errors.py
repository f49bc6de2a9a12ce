"""
Error Taxonomy and Global Error Handling

This module defines the domain exceptions raised by the ingestion and answer
pipelines, and the application-wide exception handlers that turn them into
HTTP responses.

Design Goals
------------
- Every user-visible failure carries a human-readable message and a coarse
  classification (``kind``)
- Never leak internal exception details to clients
- Log full stack traces internally for debugging
- Keep the exception types framework-agnostic so the pipelines can be used
  outside FastAPI (scripts, tests)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("pdfqa.errors")


# ---------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------

class ErrorKind(str, Enum):
    VALIDATION = "validation"
    EXTRACTION = "extraction"
    CHUNKING = "chunking"
    STORAGE = "storage"
    SEARCH = "search"
    GENERATION_RATE_LIMITED = "generation-rate-limited"
    GENERATION_FAILED = "generation-failed"


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class PdfQaError(RuntimeError):
    """
    Base class for all domain errors.

    Attributes
    ----------
    kind : ErrorKind
        Coarse classification reported to callers.

    http_status : int
        Status code used when the error reaches the HTTP layer.

    message : str
        Human-readable description, safe to return to clients.
    """

    kind: ErrorKind = ErrorKind.GENERATION_FAILED
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PdfQaError):
    """Bad input. Never retried."""

    kind = ErrorKind.VALIDATION
    http_status = 400


class EmptyInputError(ValidationError):
    """Raised when text to embed is empty or whitespace-only."""


class ExtractionError(PdfQaError):
    """Raised when a document cannot be turned into text."""

    kind = ErrorKind.EXTRACTION
    http_status = 400


class ChunkingError(PdfQaError):
    """Raised when extracted text produced no chunks."""

    kind = ErrorKind.CHUNKING
    http_status = 400


class TransientServiceError(PdfQaError):
    """
    Upstream rate limiting or temporary unavailability (429/503 class).

    ``status_code`` is the upstream status, distinct from ``http_status``.
    """

    kind = ErrorKind.GENERATION_FAILED
    http_status = 503

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TransientServiceError):
    """Upstream answered 429 Too Many Requests."""

    def __init__(self, message: str, status_code: int = 429) -> None:
        super().__init__(message, status_code=status_code)


class UpstreamServiceError(PdfQaError):
    """Non-transient upstream failure. Never retried."""

    kind = ErrorKind.GENERATION_FAILED
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FormatError(PdfQaError):
    """Upstream call succeeded but returned a malformed response."""

    kind = ErrorKind.GENERATION_FAILED
    http_status = 502


class EmbeddingFormatError(FormatError):
    """Embedding response is missing the vector field."""


class GenerationFormatError(FormatError):
    """Generation response contains no candidate text."""


class StorageError(PdfQaError):
    """Persistence failure scoped to a single row or query."""

    kind = ErrorKind.STORAGE
    http_status = 500


class StoreUnavailableError(StorageError):
    """The document store cannot be reached at all."""

    http_status = 503


class ExhaustedRetriesError(PdfQaError):
    """
    Raised by the retry executor once every attempt failed retryably.

    The last underlying error is kept on ``last_error`` and chained as
    ``__cause__``.
    """

    kind = ErrorKind.GENERATION_RATE_LIMITED
    http_status = 429

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class SearchError(PdfQaError):
    """Question embedding or similarity search failed."""

    kind = ErrorKind.SEARCH
    http_status = 500


class GenerationRateLimitedError(PdfQaError):
    """Generation was still rate limited after all retries."""

    kind = ErrorKind.GENERATION_RATE_LIMITED
    http_status = 429


class GenerationFailedError(PdfQaError):
    """Generation failed for a reason other than rate limiting."""

    kind = ErrorKind.GENERATION_FAILED
    http_status = 502


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def pdf_qa_error_handler(
    request: Request,
    exc: PdfQaError,
) -> JSONResponse:
    """
    Convert a domain error into a ``{"error": kind, "detail": message}``
    response using the error's own status code.
    """
    logger.warning(
        "Request failed: %s %s -> %s (%s)",
        request.method,
        request.url.path,
        exc.kind.value,
        exc.message,
    )

    payload: Dict[str, Any] = {
        "error": exc.kind.value,
        "detail": exc.message,
    }

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    This handler should be registered with FastAPI as the final safety net
    for any exception not otherwise handled by route-level or framework-level
    handlers.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    - Ensures consistent error response format across the entire API.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
