"""
PDF Text Extraction

Turns raw PDF bytes into a cleaned text string using PyMuPDF.

An extraction that succeeds but yields only whitespace is returned as an
empty-but-valid result; rejecting unusable text is the caller's decision.
"""

from __future__ import annotations

import logging
import re

import fitz  # PyMuPDF

from ..core.errors import ExtractionError

logger = logging.getLogger("pdfqa.extractor")

# C0 and C1 control characters, minus tab and newline which carry the
# paragraph/line structure the chunker relies on.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
_NEWLINES = re.compile(r"\r\n?")

PAGE_SEPARATOR = "\n\n"


def strip_control_characters(text: str) -> str:
    """
    Remove C0/C1 control characters, keeping ``\\n`` and ``\\t``.

    Carriage returns are normalized to ``\\n`` first so Windows line endings
    survive as line breaks.
    """
    if not text:
        return ""
    return _CONTROL_CHARS.sub("", _NEWLINES.sub("\n", text))


def extract_text(data: bytes) -> str:
    """
    Extract the text of every page of a PDF, in page order.

    Parameters
    ----------
    data : bytes
        Raw PDF file content.

    Returns
    -------
    str
        Page texts joined by a blank line, control characters removed.
        May be empty or whitespace-only.

    Raises
    ------
    ExtractionError
        If ``data`` is empty or cannot be parsed as a PDF.
    """
    if not data:
        raise ExtractionError("Invalid PDF buffer: no data.")

    logger.debug("Parsing PDF: %d bytes", len(data))

    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            page_count = doc.page_count
            pages = [page.get_text() for page in doc]
    except Exception as exc:
        logger.error("PDF parsing failed: %s", exc)
        raise ExtractionError(
            f"Failed to parse PDF: {type(exc).__name__}"
        ) from exc

    raw_text = PAGE_SEPARATOR.join(pages)
    cleaned = strip_control_characters(raw_text)

    logger.debug(
        "PDF parsed: pages=%d, raw_length=%d, cleaned_length=%d",
        page_count,
        len(raw_text),
        len(cleaned),
    )

    if not cleaned.strip():
        logger.warning("Text extracted from PDF is empty")

    return cleaned
