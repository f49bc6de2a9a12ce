"""
Prompt templates for grounded question answering.
"""

from __future__ import annotations

from typing import Sequence

from ..models import SimilarityMatch

# Used as the context when no stored chunk clears the similarity threshold
NO_RELEVANT_INFORMATION = "No relevant information was found."

# Exact phrase the model must answer with when the context does not cover the question
ANSWER_NOT_FOUND = "The provided information does not contain that content."

CONTEXT_SEPARATOR = "\n\n"

ANSWER_PROMPT_TEMPLATE = """Answer the question accurately based on the information below.

Information:
{context}

Question: {question}

Instructions:
1. Base your answer only on the information above.
2. Use only what is explicitly written in the information above.
3. Do not add knowledge or speculation that is not in the information above.
4. Keep the wording and phrasing of the original documents wherever possible.
5. If the information does not cover the question, answer "{not_found}"
6. Answer concisely and accurately.

Answer:"""


def format_match(match: SimilarityMatch) -> str:
    return f"{match.document.content}\n\n{match.attribution()}"


def build_context(matches: Sequence[SimilarityMatch]) -> str:
    """
    Render matches as prompt context, each followed by its source line.

    Returns ``NO_RELEVANT_INFORMATION`` when ``matches`` is empty.
    """
    if not matches:
        return NO_RELEVANT_INFORMATION
    return CONTEXT_SEPARATOR.join(format_match(m) for m in matches)


def build_prompt(context: str, question: str) -> str:
    return ANSWER_PROMPT_TEMPLATE.format(
        context=context,
        question=question,
        not_found=ANSWER_NOT_FOUND,
    )
