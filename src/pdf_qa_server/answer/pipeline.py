"""
Answer Pipeline

Answers a question from stored document chunks:

    embed question -> similarity search -> build prompt -> generate

Retrieval failures surface as ``SearchError``. Generation is retried only on
rate limiting; running out of retries surfaces as
``GenerationRateLimitedError`` and any other generation failure as
``GenerationFailedError``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from ..config import settings
from ..core.errors import (
    ExhaustedRetriesError,
    GenerationFailedError,
    GenerationRateLimitedError,
    PdfQaError,
    SearchError,
    ValidationError,
)
from ..core.retry import RetryPolicy, generation_retry_policy, with_retry
from ..db.document_store import StoreFactory, open_document_store
from ..embeddings.embedder import Embedder
from ..llm.client import GenerationClient
from ..models import Answer, SimilarityMatch
from .prompts import build_context, build_prompt

logger = logging.getLogger("pdfqa.answer")


class AnswerState(str, Enum):
    IDLE = "idle"
    EMBEDDING = "embedding"
    SEARCHING = "searching"
    PROMPT_BUILDING = "prompt-building"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AnswerPipeline:
    """
    Stateless question answering over the document store.

    Safe to share across concurrent requests; each question opens its own
    store session.
    """

    def __init__(
        self,
        embedder: Embedder,
        generator: GenerationClient,
        store_factory: StoreFactory = open_document_store,
        match_threshold: Optional[float] = None,
        match_count: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._embedder = embedder
        self._generator = generator
        self._store_factory = store_factory
        self.match_threshold = (
            settings.match_threshold if match_threshold is None else match_threshold
        )
        self.match_count = settings.match_count if match_count is None else match_count
        self.retry_policy = retry_policy or generation_retry_policy()

    async def ask(self, question: str) -> Answer:
        """
        Answer ``question`` using the most similar stored chunks.

        Parameters
        ----------
        question : str
            Natural-language question. Must not be blank.

        Returns
        -------
        Answer
            Generated text plus the matches used as context.

        Raises
        ------
        ValidationError
            If the question is blank. No network call is made.
        SearchError
            If embedding the question or searching the store fails.
        GenerationRateLimitedError
            If generation stayed rate limited through every retry.
        GenerationFailedError
            For any other generation failure.
        """
        if not question or not question.strip():
            raise ValidationError("No question was provided.")

        matches = await self._retrieve(question)

        self._transition(AnswerState.PROMPT_BUILDING)
        prompt = build_prompt(build_context(matches), question)

        answer = await self._generate(prompt)

        self._transition(AnswerState.SUCCEEDED)
        return Answer(answer=answer, sources=matches)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _retrieve(self, question: str) -> List[SimilarityMatch]:
        self._transition(AnswerState.EMBEDDING)
        try:
            vector = await self._embedder.embed(question)
        except PdfQaError as exc:
            self._fail(SearchError, exc)
            raise SearchError("Failed to embed the question.") from exc

        self._transition(AnswerState.SEARCHING)
        try:
            async with self._store_factory() as store:
                matches = await store.similarity_search(
                    vector,
                    threshold=self.match_threshold,
                    limit=self.match_count,
                )
        except PdfQaError as exc:
            self._fail(SearchError, exc)
            raise SearchError("Vector search failed.") from exc

        logger.info(
            "Found %d matches (threshold=%.2f, limit=%d)",
            len(matches),
            self.match_threshold,
            self.match_count,
        )
        return matches

    async def _generate(self, prompt: str) -> str:
        self._transition(AnswerState.GENERATING)
        try:
            return await with_retry(
                lambda: self._generator.generate(prompt),
                self.retry_policy,
                name="generateContent",
            )
        except ExhaustedRetriesError as exc:
            self._fail(GenerationRateLimitedError, exc)
            raise GenerationRateLimitedError(
                "The generation API rate limit was reached. Please try again later."
            ) from exc
        except PdfQaError as exc:
            self._fail(GenerationFailedError, exc)
            raise GenerationFailedError(
                "An error occurred while generating the answer."
            ) from exc

    @staticmethod
    def _transition(state: AnswerState) -> None:
        logger.debug("Answer pipeline -> %s", state.value)

    @staticmethod
    def _fail(error_type: type, cause: BaseException) -> None:
        logger.error(
            "Answer pipeline -> %s (%s): %s",
            AnswerState.FAILED.value,
            error_type.kind.value,
            cause,
        )
