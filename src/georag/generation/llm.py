"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to a vLLM / KServe
   service exposing ``/v1/chat/completions``; ``ChatOpenAI`` works unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from langchain_openai import ChatOpenAI

from georag.config import settings

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel
    from langchain_core.messages import BaseMessage

logger = logging.getLogger(__name__)


def get_llm(
    temperature: float = settings.llm_temperature,
    max_tokens: int = settings.llm_max_tokens,
) -> ChatOpenAI:
    """Return the configured chat model.

    Low temperature and a capped output length keep answers short and
    reproducible.  A dummy API key (``"EMPTY"``) is used against
    self-hosted endpoints because they do not require authentication.
    """
    kwargs: dict[str, Any] = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Self-hosted servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


class ChatGenerator:
    """``generate(messages) -> text`` over a LangChain chat model.

    Parameters
    ----------
    llm:
        Chat model to call.  Built lazily with :func:`get_llm` when omitted,
        so constructing the generator never needs credentials.
    model_name:
        Reported in response metadata.
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        *,
        model_name: str = settings.llm_model_name,
    ) -> None:
        self._llm = llm
        self.model_name = model_name

    async def generate(self, messages: list[BaseMessage]) -> str:
        if self._llm is None:
            self._llm = get_llm()
        response = await self._llm.ainvoke(messages)
        return str(response.content).strip()
