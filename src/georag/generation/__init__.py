"""
Generation — the language-model collaborator used to answer questions.

Everything model-specific (provider, prompt wording, sampling settings)
lives here so the retrieval layer only deals with messages in, text out.
"""

from georag.generation.llm import ChatGenerator, get_llm
from georag.generation.prompts import NO_RESULTS_ANSWER, build_answer_prompt, build_context

__all__ = [
    "NO_RESULTS_ANSWER",
    "ChatGenerator",
    "build_answer_prompt",
    "build_context",
    "get_llm",
]
