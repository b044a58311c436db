"""Embedding service shared by the ingestion and retrieval pipelines."""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from typing import TYPE_CHECKING, Callable

from georag.config import settings
from georag.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_function(model_name: str = settings.embedding_model) -> Embeddings:
    """Return the configured sentence-transformer embedding function."""
    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(
        model_name=model_name,
        encode_kwargs={"normalize_embeddings": True},
    )


class Embedder:
    """Turn text into unit-length vectors of a fixed dimension.

    One model instance is created lazily on first use and shared by every
    caller.  At most ``concurrency`` embedding calls run at the same time;
    additional callers wait for a free slot.  Model failures are not
    retried.

    Parameters
    ----------
    model_name:
        HuggingFace model id.
    dimension:
        Expected vector length; anything else raises :class:`EmbeddingError`.
    concurrency:
        Maximum number of simultaneous embedding calls.
    model_factory:
        Zero-argument callable returning a LangChain ``Embeddings`` object.
        Defaults to :func:`get_embedding_function`.
    """

    def __init__(
        self,
        model_name: str = settings.embedding_model,
        *,
        dimension: int = settings.embedding_dimension,
        concurrency: int = settings.embedding_concurrency,
        model_factory: Callable[[], Embeddings] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.model_name = model_name
        self.dimension = dimension
        self.concurrency = concurrency
        self._model_factory = model_factory or (lambda: get_embedding_function(model_name))
        self._model: Embeddings | None = None
        self._model_lock = threading.Lock()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._counter_lock = threading.Lock()
        self._active = 0
        self.peak_active = 0

    @property
    def active(self) -> int:
        """Number of embedding calls currently holding a slot."""
        with self._counter_lock:
            return self._active

    # -- public API -----------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed *text*, waiting for a concurrency slot first.

        The slot is held until the model call has returned in its worker
        thread.  Cancelling the caller does not free it early, because the
        thread cannot be interrupted.
        """
        await self._semaphore.acquire()
        self._enter()
        work = asyncio.ensure_future(asyncio.to_thread(self._embed_sync, text))
        work.add_done_callback(self._release)
        return await asyncio.shield(work)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed every text, one call each, still capped by the shared semaphore.

        The first failure cancels the calls that have not started yet and is
        re-raised as is.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(self.embed(t)) for t in texts]
        except BaseExceptionGroup as failures:
            raise failures.exceptions[0]
        return [task.result() for task in tasks]

    # -- internals ------------------------------------------------------------

    def _get_model(self) -> Embeddings:
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    logger.info("Initializing embedding model %s", self.model_name)
                    self._model = self._model_factory()
                    logger.info("Embedding model %s loaded", self.model_name)
        return self._model

    def _embed_sync(self, text: str) -> list[float]:
        try:
            vector = self._get_model().embed_query(text)
        except Exception as exc:
            raise EmbeddingError(exc, len(text)) from exc
        return self._normalise(list(vector), len(text))

    def _normalise(self, vector: list[float], text_length: int) -> list[float]:
        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"expected dimension {self.dimension}, got {len(vector)}", text_length
            )
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0 or math.isnan(norm):
            raise EmbeddingError("model returned a zero or NaN vector", text_length)
        return [float(v) / norm for v in vector]

    def _enter(self) -> None:
        with self._counter_lock:
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)

    def _leave(self) -> None:
        with self._counter_lock:
            self._active -= 1

    def _release(self, work: asyncio.Future[list[float]]) -> None:
        self._leave()
        self._semaphore.release()
        # Nobody awaits the outcome once the caller was cancelled.
        if not work.cancelled():
            work.exception()
