"""
Text Chunking

Splits cleaned document text into bounded-size chunks that follow the
document's own structure.

Strategy tiers are tried in order; the first one that yields any units wins:

1. paragraphs (blank-line separated, internal whitespace collapsed)
2. lines (single-newline separated, trimmed)
3. the whole text as a single unit

The selected units are then greedily packed into chunks of at most
``max_chunk_size`` characters, joined with the tier's separator. A unit that
is longer than ``max_chunk_size`` on its own is hard-split into consecutive
slices of exactly that size.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence

from ..config import settings
from ..models import Chunk

logger = logging.getLogger("pdfqa.chunker")

_BLANK_LINE = re.compile(r"\n\s*\n")
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------
# Strategy Tiers
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class SplitStrategy:
    """A named splitting tier and the separator used when packing its units."""

    name: str
    split: Callable[[str], Optional[List[str]]]
    separator: str


def split_paragraphs(text: str) -> Optional[List[str]]:
    paragraphs = [
        _WHITESPACE.sub(" ", p.strip())
        for p in _BLANK_LINE.split(text)
        if p.strip()
    ]
    return paragraphs or None


def split_lines(text: str) -> Optional[List[str]]:
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return lines or None


def whole_text(text: str) -> Optional[List[str]]:
    trimmed = text.strip()
    return [trimmed] if trimmed else None


PARAGRAPHS = SplitStrategy("paragraphs", split_paragraphs, "\n\n")
LINES = SplitStrategy("lines", split_lines, "\n")
WHOLE_TEXT = SplitStrategy("whole_text", whole_text, "")

DEFAULT_STRATEGIES: Sequence[SplitStrategy] = (PARAGRAPHS, LINES, WHOLE_TEXT)


# ---------------------------------------------------------------------
# Packing
# ---------------------------------------------------------------------

def _hard_split(unit: str, size: int) -> Iterator[str]:
    for start in range(0, len(unit), size):
        piece = unit[start : start + size].strip()
        if piece:
            yield piece


def pack_units(units: Sequence[str], separator: str, max_chunk_size: int) -> List[str]:
    """
    Greedily pack ``units`` into strings no longer than ``max_chunk_size``.

    The running buffer is flushed whenever adding the next unit (plus the
    separator) would overflow it. Oversized units flush the buffer and are
    emitted as hard-split slices.
    """
    packed: List[str] = []
    buffer = ""

    for unit in units:
        if len(unit) > max_chunk_size:
            if buffer:
                packed.append(buffer)
                buffer = ""
            packed.extend(_hard_split(unit, max_chunk_size))
            continue

        if buffer and len(buffer) + len(separator) + len(unit) > max_chunk_size:
            packed.append(buffer)
            buffer = unit
        elif buffer:
            buffer = buffer + separator + unit
        else:
            buffer = unit

    if buffer.strip():
        packed.append(buffer)

    return packed


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def chunk_text(
    text: str,
    max_chunk_size: Optional[int] = None,
    strategies: Sequence[SplitStrategy] = DEFAULT_STRATEGIES,
) -> List[Chunk]:
    """
    Split ``text`` into ordered chunks.

    Parameters
    ----------
    text : str
        Cleaned document text.

    max_chunk_size : Optional[int]
        Maximum characters per chunk. Defaults to ``settings.chunk_size``.

    strategies : Sequence[SplitStrategy]
        Tiers to try in order.

    Returns
    -------
    List[Chunk]
        Chunks with positions 1..n in emission order. Empty for empty text.
    """
    size = max_chunk_size if max_chunk_size is not None else settings.chunk_size
    if size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {size}")

    if not text or not text.strip():
        logger.warning("Text to chunk is empty")
        return []

    for strategy in strategies:
        units = strategy.split(text)
        if not units:
            logger.debug("Chunking tier '%s' produced no units", strategy.name)
            continue

        pieces = pack_units(units, strategy.separator, size)
        chunks = [
            Chunk(content=piece, position=index)
            for index, piece in enumerate(pieces, start=1)
        ]

        logger.debug(
            "Chunked %d chars via '%s': %d units -> %d chunks",
            len(text),
            strategy.name,
            len(units),
            len(chunks),
        )
        return chunks

    logger.warning("Text could not be split by any chunking tier")
    return []


def chunk_stats(chunks: Sequence[Chunk]) -> dict:
    """
    Summary statistics for a chunk list, for logging and reports.
    """
    if not chunks:
        return {
            "chunk_count": 0,
            "min_chunk_size": 0,
            "max_chunk_size": 0,
            "avg_chunk_size": 0,
        }

    sizes = [len(c.content) for c in chunks]
    return {
        "chunk_count": len(chunks),
        "min_chunk_size": min(sizes),
        "max_chunk_size": max(sizes),
        "avg_chunk_size": sum(sizes) // len(sizes),
    }
