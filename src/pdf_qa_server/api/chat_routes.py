"""
Chat Routes: Question Answering over Uploaded Documents

This module implements the question-answering endpoint. It:
- Accepts an AskRequest carrying a natural-language question
- Runs the answer pipeline (embed -> search -> prompt -> generate)
- Returns the generated answer together with the source chunks used

Failures are raised as domain errors and rendered by the application-wide
exception handler as ``{"error": kind, "detail": message}``.
"""

from fastapi import APIRouter, Depends
from typing import Annotated

from .models import AskRequest, AskResponse, SourceModel, error_responses
from .dependencies import get_answer_pipeline
from ..answer.pipeline import AnswerPipeline

router = APIRouter(prefix="/chat", tags=["chat"])


# ---------------------------------------------------------------------
# Chat Route
# ---------------------------------------------------------------------

@router.post(
    "",
    response_model=AskResponse,
    responses=error_responses(400, 429, 500, 502),
    summary="Answer a question from the uploaded documents",
)
async def ask(
    req: AskRequest,
    pipeline: Annotated[AnswerPipeline, Depends(get_answer_pipeline)],
) -> AskResponse:
    answer = await pipeline.ask(req.question)

    return AskResponse(
        answer=answer.answer,
        sources=[SourceModel.from_match(m) for m in answer.sources],
    )
