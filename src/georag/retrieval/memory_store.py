"""In-process vector store for local development and tests."""

from __future__ import annotations

import math
from threading import Lock
from typing import Any

from georag.config import settings
from georag.retrieval.base import VectorStoreBase
from georag.retrieval.models import IndexRecord, MetadataFilter


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(VectorStoreBase):
    """Brute-force cosine search over a dict of records.

    Parameters
    ----------
    index_name:
        Name of the index records are written to.
    native_filtering:
        When ``False`` the store behaves like a backend without predicate
        support, exercising the client-side over-fetch path.
    **kwargs:
        Forwarded to :class:`VectorStoreBase`.
    """

    def __init__(
        self,
        index_name: str = settings.index_name,
        *,
        native_filtering: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(index_name, **kwargs)
        self.supports_native_filtering = native_filtering
        self._lock = Lock()
        self._indexes: dict[str, dict[str, tuple[list[float], dict[str, Any]]]] = {}
        self.created: list[str] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._indexes.get(self.index_name, {}))

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Return the stored metadata for *record_id*, if any."""
        with self._lock:
            entry = self._indexes.get(self.index_name, {}).get(record_id)
        return dict(entry[1]) if entry else None

    # -- VectorStoreBase overrides --------------------------------------------

    def _index_exists(self, name: str) -> bool:
        with self._lock:
            return name in self._indexes

    def _create_index(self, name: str, dimension: int, metric: str, region: str) -> None:
        with self._lock:
            self._indexes.setdefault(name, {})
            self.created.append(name)

    def _index_ready(self, name: str) -> bool:
        with self._lock:
            return name in self._indexes

    def _upsert(self, records: list[IndexRecord]) -> None:
        with self._lock:
            if self.index_name not in self._indexes:
                raise KeyError(f"index {self.index_name!r} does not exist")
            index = self._indexes[self.index_name]
            for record in records:
                index[record.chunk_id] = (list(record.vector), record.metadata.to_wire())

    def _search(
        self, vector: list[float], k: int, filters: list[MetadataFilter]
    ) -> list[dict[str, Any]]:
        with self._lock:
            if self.index_name not in self._indexes:
                raise KeyError(f"index {self.index_name!r} does not exist")
            entries = list(self._indexes[self.index_name].items())

        hits = [
            {"id": record_id, "score": cosine_similarity(vector, values), "metadata": dict(meta)}
            for record_id, (values, meta) in entries
            if all(f.matches(meta) for f in filters)
        ]
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:k]

    def _list_ids(self, filters: list[MetadataFilter]) -> list[str]:
        with self._lock:
            if self.index_name not in self._indexes:
                raise KeyError(f"index {self.index_name!r} does not exist")
            return [
                record_id
                for record_id, (_, meta) in self._indexes[self.index_name].items()
                if all(f.matches(meta) for f in filters)
            ]

    def _delete(self, ids: list[str]) -> None:
        with self._lock:
            index = self._indexes.get(self.index_name, {})
            for record_id in ids:
                index.pop(record_id, None)

    def health_check(self) -> bool:
        return True
