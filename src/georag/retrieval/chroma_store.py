"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from georag.config import settings
from georag.retrieval.base import VectorStoreBase
from georag.retrieval.models import IndexRecord, MetadataFilter

logger = logging.getLogger(__name__)


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store with store-side tenant filtering.

    Parameters
    ----------
    index_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client (e.g. ``chromadb.EphemeralClient()`` in
        tests).  When given, *host* / *port* are ignored.
    **kwargs:
        Forwarded to :class:`VectorStoreBase`.
    """

    supports_native_filtering = True

    def __init__(
        self,
        index_name: str = settings.index_name,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(index_name, **kwargs)
        self._host = host
        self._port = port
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection: Any = None

    # -- VectorStoreBase overrides --------------------------------------------

    def _index_exists(self, name: str) -> bool:
        # chromadb < 0.6 returns Collection objects, newer versions return names.
        names = {getattr(c, "name", c) for c in self._client.list_collections()}
        return name in names

    def _create_index(self, name: str, dimension: int, metric: str, region: str) -> None:
        self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": metric, "dimension": dimension, "region": region},
        )

    def _index_ready(self, name: str) -> bool:
        collection = self._client.get_collection(name)
        collection.count()
        if name == self.index_name:
            self._collection = collection
        return True

    def _upsert(self, records: list[IndexRecord]) -> None:
        self._get_collection().upsert(
            ids=[r.chunk_id for r in records],
            embeddings=[r.vector for r in records],
            documents=[r.metadata.text for r in records],
            metadatas=[r.metadata.to_wire() for r in records],
        )

    def _search(
        self, vector: list[float], k: int, filters: list[MetadataFilter]
    ) -> list[dict[str, Any]]:
        results = self._get_collection().query(
            query_embeddings=[vector],
            n_results=k,
            where=_build_chroma_where(filters),
            include=["metadatas", "distances"],
        )

        ids = results.get("ids", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        # Cosine space: distance = 1 - cosine similarity.
        return [
            {"id": doc_id, "score": 1.0 - dist, "metadata": dict(meta or {})}
            for doc_id, meta, dist in zip(ids, metas, distances)
        ]

    def _list_ids(self, filters: list[MetadataFilter]) -> list[str]:
        found = self._get_collection().get(where=_build_chroma_where(filters), include=[])
        return list(found.get("ids") or [])

    def _delete(self, ids: list[str]) -> None:
        self._get_collection().delete(ids=ids)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    # -- internals ------------------------------------------------------------

    def _get_collection(self) -> Any:
        if self._collection is None:
            self._collection = self._client.get_collection(self.index_name)
        return self._collection
