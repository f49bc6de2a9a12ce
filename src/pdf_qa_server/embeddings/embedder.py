"""
Embedding Client

This module implements the embedding client used for both document chunks
(at ingestion time) and questions (at query time). It calls the Gemini
``embedContent`` REST endpoint and is responsible for:

- Rejecting empty input before any network call
- Mapping HTTP failures onto transient (429/503) vs fatal errors
- Retrying transient failures with backoff
- Strict response validation
- Applying one normalization convention to every vector it returns

The class is stateless and safe to reuse across requests.
"""

from __future__ import annotations

from typing import List, Optional
import logging

import httpx
import numpy as np

from ..config import settings
from ..core.errors import (
    EmbeddingFormatError,
    EmptyInputError,
    RateLimitError,
    TransientServiceError,
    UpstreamServiceError,
)
from ..core.retry import RetryPolicy, embedding_retry_policy, with_retry

logger = logging.getLogger("pdfqa.embedder")


def raise_for_upstream_status(response: httpx.Response, service: str) -> None:
    """
    Raise a typed error for a non-2xx Gemini response.

    429 -> RateLimitError, 503 -> TransientServiceError, anything else ->
    UpstreamServiceError.
    """
    if response.is_success:
        return

    status = response.status_code
    message = f"{service} request failed with HTTP {status}"

    if status == 429:
        raise RateLimitError(f"{message} (Too Many Requests)")
    if status == 503:
        raise TransientServiceError(f"{message} (Service Unavailable)", status_code=503)
    raise UpstreamServiceError(message, status_code=status)


def l2_normalize(vector: List[float]) -> List[float]:
    """
    Divide each component by the vector's Euclidean norm.

    A zero vector is returned unchanged.
    """
    arr = np.asarray(vector, dtype="float64")
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return [float(x) for x in arr]
    return (arr / norm).tolist()


class Embedder:
    """
    Asynchronous single-text embedding generator.

    This class performs no caching and assumes the caller handles
    higher-level caching or persistence.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        normalize: Optional[bool] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Parameters
        ----------
        api_key : Optional[str]
            Optional override for the Gemini API key. Defaults to settings.gemini_api_key.

        model : Optional[str]
            Optional override for embedding model. Defaults to settings.embedding_model.

        base_url : Optional[str]
            Base URL of the Gemini REST API.

        timeout : Optional[float]
            HTTP timeout for each request.

        normalize : Optional[bool]
            L2-normalize returned vectors. Defaults to settings.normalize_embeddings.

        retry_policy : Optional[RetryPolicy]
            Backoff policy for transient failures.

        transport : Optional[httpx.AsyncBaseTransport]
            Custom transport, used by tests.
        """
        self.api_key = api_key or settings.gemini_api_key.get_secret_value()
        self.model = model or settings.embedding_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.normalize = settings.normalize_embeddings if normalize is None else normalize
        self.retry_policy = retry_policy or embedding_retry_policy()
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:embedContent"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding vector for one text.

        Parameters
        ----------
        text : str
            Input text. Must contain non-whitespace characters.

        Returns
        -------
        List[float]
            The embedding, L2-normalized if configured.

        Raises
        ------
        EmptyInputError
            If ``text`` is empty or whitespace-only (no network call made).

        EmbeddingFormatError
            If the response does not contain a numeric vector.

        ExhaustedRetriesError
            If every attempt hit a 429/503-class failure.

        UpstreamServiceError
            For any other HTTP failure.
        """
        if not text or not text.strip():
            raise EmptyInputError("Text to embed is empty.")

        logger.debug("Embedding text: length=%d", len(text))

        data = await with_retry(
            lambda: self._request(text),
            self.retry_policy,
            name="embedContent",
        )

        values = self._extract_embedding(data)

        logger.debug("Embedding generated: dimension=%d", len(values))

        if self.normalize:
            return l2_normalize(values)
        return values

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, text: str) -> dict:
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        headers = {"x-goog-api-key": self.api_key}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.endpoint,
                    json=payload,
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.error(
                    "Embedding request failed (%s): %s",
                    type(exc).__name__,
                    str(exc),
                )
                raise UpstreamServiceError(
                    f"Embedding request failed: {type(exc).__name__}"
                ) from exc

        raise_for_upstream_status(response, "Embedding")

        try:
            return response.json()
        except ValueError as exc:
            raise EmbeddingFormatError("Embedding response is not valid JSON.") from exc

    @staticmethod
    def _extract_embedding(data: dict) -> List[float]:
        """
        Parse and validate embedding output format.

        Gemini returns:
            { "embedding": { "values": [...] } }

        Raises
        ------
        EmbeddingFormatError
            If the API returns unexpected structure.
        """
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, dict) or "values" not in embedding:
            raise EmbeddingFormatError("Embedding response missing 'embedding.values' field.")

        values = embedding["values"]
        if not isinstance(values, list) or not all(
            isinstance(x, (float, int)) and not isinstance(x, bool) for x in values
        ):
            raise EmbeddingFormatError("Invalid embedding vector: must be float list.")

        return [float(x) for x in values]
