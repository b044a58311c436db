"""
Retrieval — vector search, tenant scoping, and grounded answers.

This module wraps the vector store behind a clean interface so that
callers never need to know which DB is backing retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — retrieval orchestrator (search + answer).
- :class:`VectorStoreBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`InMemoryVectorStore` — in-process backend for tests / local runs.
- :class:`IndexRecord`, :class:`RecordMetadata`, :class:`SearchResult`,
  :class:`Answer`, :class:`MetadataFilter` — data models.
"""

from georag.retrieval.base import VectorStoreBase
from georag.retrieval.memory_store import InMemoryVectorStore
from georag.retrieval.models import (
    Answer,
    IndexRecord,
    MetadataFilter,
    Query,
    RecordMetadata,
    SearchResult,
)
from georag.retrieval.retriever import SemanticRetriever

__all__ = [
    "Answer",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "IndexRecord",
    "MetadataFilter",
    "Query",
    "RecordMetadata",
    "SearchResult",
    "SemanticRetriever",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from georag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
