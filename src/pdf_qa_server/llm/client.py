from typing import Optional
import logging

import httpx

from ..config import settings
from ..core.errors import GenerationFormatError, UpstreamServiceError
from ..embeddings.embedder import raise_for_upstream_status

logger = logging.getLogger("pdfqa.llm")


class GenerationClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.gemini_api_key.get_secret_value()
        self.model = model or settings.generation_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.temperature = (
            settings.generation_temperature if temperature is None else temperature
        )
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(self, prompt: str) -> str:
        """
        Returns the concatenated text of the first candidate, e.g. for:
        {
            "candidates": [
                {"content": {"parts": [{"text": "..."}]}}
            ]
        }

        Raises RateLimitError on 429 and TransientServiceError on 503 so the
        caller's retry policy can tell them apart from fatal failures.
        """
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    self.endpoint,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
            except httpx.HTTPError as exc:
                logger.error("Generation request failed (%s): %s", type(exc).__name__, exc)
                raise UpstreamServiceError(
                    f"Generation request failed: {type(exc).__name__}"
                ) from exc

        raise_for_upstream_status(resp, "Generation")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationFormatError("Generation response is not valid JSON.") from exc

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates or not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise GenerationFormatError("Generation response contains no candidates.")

        content = candidates[0].get("content")
        parts = (content.get("parts") or []) if isinstance(content, dict) else []
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        if not texts:
            raise GenerationFormatError("Generation response contains no text.")

        return "".join(texts)
