"""
Logging Setup

All modules log through named standard-library loggers under the ``pdfqa``
namespace (``pdfqa.embedder``, ``pdfqa.ingestion``, ...). This module applies
the process-wide level and format once, at application creation.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the service.

    Repeated calls only adjust the level of the ``pdfqa`` logger, so
    test-created apps do not stack handlers.
    """
    global _configured

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if not _configured:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
        _configured = True

    logging.getLogger("pdfqa").setLevel(numeric_level)
