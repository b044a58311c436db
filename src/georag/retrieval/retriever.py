"""Semantic retriever — tenant-scoped search and grounded answer generation.

This module is the **primary public interface** for retrieval.  It wires
the embedder, the vector store and the generation collaborator together:

1. **Embed** the question.
2. **Search** the index, scoped to the caller's tenant.
3. **Short-circuit** with a fixed answer when nothing matched — the
   language model is never called without context.
4. **Generate** an answer from a bounded context block and return it with
   source attributions.

Usage::

    retriever = SemanticRetriever(store, embedder, generator)
    answer = await retriever.answer("What color is the sky?", tenant_id="alice")
    for source in answer.sources:
        print(source.filename, source.score)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from georag.config import settings
from georag.errors import GenerationError, GeoRAGError, ValidationError
from georag.generation.prompts import NO_RESULTS_ANSWER, build_answer_prompt
from georag.retrieval.models import Answer, MetadataFilter, Query, SearchResult

if TYPE_CHECKING:
    from georag.generation.llm import ChatGenerator
    from georag.ingestion.embedder import Embedder
    from georag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Retrieval orchestrator over any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Shared embedding service (same instance the ingestion side uses).
    generator:
        Generation collaborator; only required for :meth:`answer`.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    max_context_chars:
        Upper bound on the context block handed to the generator.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        generator: ChatGenerator | None = None,
        *,
        default_k: int = 5,
        score_threshold: float = 0.0,
        max_context_chars: int = settings.max_context_chars,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._generator = generator
        self.default_k = default_k
        self.score_threshold = score_threshold
        self.max_context_chars = max_context_chars

    # -- public API -----------------------------------------------------------

    async def search(
        self,
        query: str,
        tenant_id: str,
        *,
        k: int | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        """Embed *query* and return the tenant's nearest chunks, best first."""
        request = self._validate(query, tenant_id, k or self.default_k, filters)
        try:
            vector = await self._embedder.embed(request.text)
            results = await asyncio.to_thread(
                self._store.query, vector, request.top_k, request.tenant_id, request.filters
            )
        except GeoRAGError as exc:
            exc.with_context(tenant=tenant_id)
            raise

        return [r for r in results if r.score >= self.score_threshold]

    async def answer(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
        *,
        filters: list[MetadataFilter] | None = None,
    ) -> Answer:
        """Answer *query* from the tenant's documents only.

        Returns the fixed "no relevant information" answer with no sources,
        without calling the generator, when the search comes back empty.
        """
        results = await self.search(query, tenant_id, k=top_k, filters=filters)
        if not results:
            logger.info("No relevant chunks found for tenant %s", tenant_id)
            return Answer(text=NO_RESULTS_ANSWER, sources=[], grounded=False)

        if self._generator is None:
            raise GenerationError("No generation collaborator configured", tenant=tenant_id)

        logger.info("Generating answer from %d chunk(s) for tenant %s", len(results), tenant_id)
        messages = build_answer_prompt(query.strip(), results, self.max_context_chars)
        try:
            text = await self._generator.generate(messages)
        except Exception as exc:
            logger.exception("Answer generation failed")
            raise GenerationError(f"Answer generation failed: {exc}", tenant=tenant_id) from exc
        return Answer(text=text, sources=results)

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _validate(
        query: str, tenant_id: str, top_k: int, filters: list[MetadataFilter] | None
    ) -> Query:
        if not query or not query.strip():
            raise ValidationError("Query is required", stage="retrieval")
        if not tenant_id:
            raise ValidationError("tenantId is required", stage="retrieval")
        if top_k < 1:
            raise ValidationError("maxResults must be >= 1", stage="retrieval")
        return Query(text=query.strip(), tenant_id=tenant_id, top_k=top_k, filters=filters or [])
