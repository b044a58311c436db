"""Prompt templates for grounded answer generation.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

from georag.config import settings

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from georag.retrieval.models import SearchResult

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in your uploaded documents to "
    "answer this question. Please make sure you have uploaded documents that "
    "contain information related to your query."
)

SYSTEM_PROMPT = """\
You are an expert assistant answering questions about the user's own documents.

Rules:
- Use ONLY the numbered context passages supplied in the user message.
- If the context does not contain the answer, say that the documents do not
  cover it. Do not guess and do not use outside knowledge.
- Keep the answer concise and factual.
"""


def build_context(results: list[SearchResult], max_chars: int = settings.max_context_chars) -> str:
    """Concatenate retrieved chunk texts, in the given order, into a bounded block.

    Passages are added until *max_chars* is reached; the passage crossing
    the limit is truncated and later passages are dropped.
    """
    blocks: list[str] = []
    used = 0
    for i, result in enumerate(results, 1):
        block = f"Context {i}: {result.full_text}"
        sep = 2 if blocks else 0
        remaining = max_chars - used - sep
        if remaining <= 0:
            break
        if len(block) > remaining:
            blocks.append(block[:remaining])
            break
        blocks.append(block)
        used += len(block) + sep
    return "\n\n".join(blocks)


def build_answer_prompt(
    question: str,
    results: list[SearchResult],
    max_context_chars: int = settings.max_context_chars,
) -> list[BaseMessage]:
    """Assemble the strict "answer only from context" prompt messages.

    Returns
    -------
    list[BaseMessage]
        A list of LangChain message objects ready for ``.invoke()``.
    """
    context = build_context(results, max_context_chars)
    user_msg = f"{context}\n\nQuestion: {question}\nAnswer:"
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=user_msg),
    ]
