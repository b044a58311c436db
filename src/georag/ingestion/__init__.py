"""
Ingestion — chunking, embedding, and indexing documents into the vector store.

Public surface
--------------
- :class:`IngestionPipeline` — per-document clean → chunk → embed → upsert.
- :class:`Chunker` / :class:`ChunkingConfig` — pluggable text splitting.
- :class:`Embedder` — shared, concurrency-capped embedding service.
- :class:`Document`, :class:`Chunk`, :class:`DocumentResult` — data models.
"""

from georag.ingestion.chunker import Chunker, clean_text
from georag.ingestion.embedder import Embedder
from georag.ingestion.models import Chunk, ChunkingConfig, Document, DocumentResult
from georag.ingestion.pipeline import IngestionPipeline

__all__ = [
    "Chunk",
    "Chunker",
    "ChunkingConfig",
    "Document",
    "DocumentResult",
    "Embedder",
    "IngestionPipeline",
    "clean_text",
]
