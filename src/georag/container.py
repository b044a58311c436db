"""Composition root — builds the long-lived services exactly once per process.

The embedder (model handle + concurrency semaphore) is the only state
shared between concurrent ingestion and retrieval calls, so both
orchestrators receive the *same* instance from here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from georag.config import Settings, settings
from georag.generation.llm import ChatGenerator
from georag.ingestion.chunker import Chunker
from georag.ingestion.embedder import Embedder
from georag.ingestion.models import ChunkingConfig
from georag.ingestion.pipeline import IngestionPipeline
from georag.retrieval.base import VectorStoreBase
from georag.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Wired service graph handed to the serving layer."""

    store: VectorStoreBase
    embedder: Embedder
    chunker: Chunker
    generator: ChatGenerator
    ingestion: IngestionPipeline
    retriever: SemanticRetriever


def build_store(cfg: Settings = settings) -> VectorStoreBase:
    """Instantiate the configured vector-store backend."""
    common = {
        "dimension": cfg.embedding_dimension,
        "metric": cfg.similarity_metric,
        "region": cfg.index_region,
        "batch_size": cfg.upsert_batch_size,
        "overfetch_factor": cfg.query_overfetch_factor,
        "ready_timeout": cfg.index_ready_timeout_seconds,
        "poll_interval": cfg.index_ready_poll_seconds,
    }
    if cfg.vector_backend == "memory":
        from georag.retrieval.memory_store import InMemoryVectorStore

        return InMemoryVectorStore(cfg.index_name, **common)
    if cfg.vector_backend == "chroma":
        from georag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(cfg.index_name, host=cfg.chroma_host, port=cfg.chroma_port, **common)
    raise ValueError(f"Unsupported vector_backend={cfg.vector_backend!r}")


def build_services(
    cfg: Settings = settings,
    *,
    store: VectorStoreBase | None = None,
    embedder: Embedder | None = None,
    generator: ChatGenerator | None = None,
) -> Services:
    """Wire every service from *cfg*; explicit arguments replace the defaults."""
    if store is None:
        store = build_store(cfg)
    if embedder is None:
        embedder = Embedder(
            cfg.embedding_model,
            dimension=cfg.embedding_dimension,
            concurrency=cfg.embedding_concurrency,
        )
    if generator is None:
        generator = ChatGenerator(model_name=cfg.llm_model_name)
    chunker = Chunker(
        ChunkingConfig(
            strategy=cfg.chunk_strategy,
            target_size=cfg.chunk_size,
            overlap=cfg.chunk_overlap,
            separators=cfg.chunk_separators,
            min_words=cfg.chunk_min_words,
            max_punctuation_ratio=cfg.chunk_max_punctuation_ratio,
        )
    )
    logger.info(
        "Services built: backend=%s index=%s embedding=%s llm=%s",
        type(store).__name__,
        store.index_name,
        embedder.model_name,
        generator.model_name,
    )
    return Services(
        store=store,
        embedder=embedder,
        chunker=chunker,
        generator=generator,
        ingestion=IngestionPipeline(
            store,
            embedder,
            chunker,
            batch_size=cfg.upsert_batch_size,
            document_timeout=cfg.document_timeout_seconds,
        ),
        retriever=SemanticRetriever(
            store,
            embedder,
            generator,
            max_context_chars=cfg.max_context_chars,
        ),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services (FastAPI dependency; override in tests)."""
    return build_services()
