"""Abstract base class for vector-store backends.

Adding a new backend (Pinecone, Weaviate, Qdrant …) only requires
subclassing :class:`VectorStoreBase` and implementing the primitive
``_``-prefixed hooks.  Index bootstrap, batch-size enforcement, tenant
scoping and result ordering live here, so every backend behaves the same.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from datetime import datetime
from threading import Lock
from typing import Any

from georag.config import settings
from georag.errors import IndexCreationFailure, QueryFailure, StoreError, UpsertBatchFailure
from georag.retrieval.models import IndexRecord, MetadataFilter, SearchResult

logger = logging.getLogger(__name__)


def _uploaded_ts(metadata: dict[str, Any]) -> float:
    try:
        return datetime.fromisoformat(metadata.get("uploadedAt") or "").timestamp()
    except ValueError:
        return 0.0


def rank_matches(matches: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order by descending score; ties go to the most recently uploaded record."""
    return sorted(
        matches,
        key=lambda m: (m["score"], _uploaded_ts(m.get("metadata") or {})),
        reverse=True,
    )


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store client.

    Parameters
    ----------
    index_name:
        Logical name of the collection / index.
    dimension:
        Vector length every upserted record must have.
    metric:
        Similarity metric the index is created with.
    region:
        Deployment region recorded on index creation.
    batch_size:
        Maximum number of records accepted by one :meth:`upsert` call.
    overfetch_factor:
        Multiplier applied to ``top_k`` when tenant filtering has to happen
        client-side.
    """

    #: Whether :meth:`_search` can apply metadata filters store-side.
    supports_native_filtering: bool = True

    def __init__(
        self,
        index_name: str = settings.index_name,
        *,
        dimension: int = settings.embedding_dimension,
        metric: str = settings.similarity_metric,
        region: str = settings.index_region,
        batch_size: int = settings.upsert_batch_size,
        overfetch_factor: int = settings.query_overfetch_factor,
        ready_timeout: float = settings.index_ready_timeout_seconds,
        poll_interval: float = settings.index_ready_poll_seconds,
    ) -> None:
        self.index_name = index_name
        self.dimension = dimension
        self.metric = metric
        self.region = region
        self.batch_size = batch_size
        self.overfetch_factor = overfetch_factor
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval
        self._index_lock = Lock()
        self._index_futures: dict[str, Future[None]] = {}

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def _index_exists(self, name: str) -> bool: ...

    @abstractmethod
    def _create_index(self, name: str, dimension: int, metric: str, region: str) -> None: ...

    @abstractmethod
    def _index_ready(self, name: str) -> bool: ...

    @abstractmethod
    def _upsert(self, records: list[IndexRecord]) -> None: ...

    @abstractmethod
    def _search(
        self, vector: list[float], k: int, filters: list[MetadataFilter]
    ) -> list[dict[str, Any]]:
        """Return up to *k* matches as ``{"id", "score", "metadata"}`` dicts.

        *filters* is empty on the client-side filtering path.  ``score`` is
        a similarity (higher = more similar).
        """
        ...

    @abstractmethod
    def _list_ids(self, filters: list[MetadataFilter]) -> list[str]:
        """Return the ids of every record matching all *filters*."""
        ...

    @abstractmethod
    def _delete(self, ids: list[str]) -> None: ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- public API -----------------------------------------------------------

    def ensure_index(
        self,
        name: str | None = None,
        dimension: int | None = None,
        metric: str | None = None,
        region: str | None = None,
    ) -> None:
        """Create the index if absent and block until it is queryable.

        Concurrent callers for the same index share one creation attempt.
        After a failure the next call tries again.
        """
        name = name or self.index_name
        with self._index_lock:
            pending = self._index_futures.get(name)
            owner = pending is None
            if owner:
                pending = self._index_futures[name] = Future()

        if not owner:
            pending.result()
            return

        try:
            self._bootstrap_index(
                name,
                dimension or self.dimension,
                metric or self.metric,
                region or self.region,
            )
        except Exception as exc:
            with self._index_lock:
                self._index_futures.pop(name, None)
            pending.set_exception(exc)
            raise
        pending.set_result(None)

    def upsert(self, records: list[IndexRecord]) -> int:
        """Insert or overwrite *records* (keyed by chunk id); return the count written."""
        if len(records) > self.batch_size:
            raise ValueError(
                f"upsert accepts at most {self.batch_size} records, got {len(records)}"
            )
        for record in records:
            if len(record.vector) != self.dimension:
                raise ValueError(
                    f"record {record.chunk_id!r} has dimension {len(record.vector)}, "
                    f"expected {self.dimension}"
                )
        if not records:
            return 0
        try:
            self._upsert(records)
        except Exception as exc:
            raise UpsertBatchFailure(f"Upsert of {len(records)} records failed: {exc}") from exc
        return len(records)

    def query(
        self,
        vector: list[float],
        top_k: int,
        tenant_id: str,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchResult]:
        """Return up to *top_k* nearest records belonging to *tenant_id*.

        Without native filtering the store is asked for
        ``top_k * overfetch_factor`` unfiltered matches which are then
        filtered and truncated here, so fewer than *top_k* results may come
        back when the tenant owns a small share of the index.
        """
        scoped = [MetadataFilter.equals("tenantId", tenant_id), *(filters or [])]
        try:
            if self.supports_native_filtering:
                raw = self._search(vector, top_k, scoped)
            else:
                raw = self._search(vector, top_k * self.overfetch_factor, [])
        except Exception as exc:
            raise QueryFailure(f"Similarity search failed: {exc}", index=self.index_name) from exc

        matches = [m for m in raw if all(f.matches(m.get("metadata") or {}) for f in scoped)]
        ranked = rank_matches(matches)[:top_k]
        logger.info(
            "Query on %r returned %d/%d match(es) for tenant %s",
            self.index_name,
            len(ranked),
            len(raw),
            tenant_id,
        )
        return [
            SearchResult.from_match(m["id"], m["score"], m.get("metadata") or {}, settings.preview_chars)
            for m in ranked
        ]

    def record_ids(self, tenant_id: str, filters: list[MetadataFilter] | None = None) -> list[str]:
        """Return the ids of the tenant's records that match *filters*."""
        scoped = [MetadataFilter.equals("tenantId", tenant_id), *(filters or [])]
        try:
            return self._list_ids(scoped)
        except Exception as exc:
            raise QueryFailure(f"Listing records failed: {exc}", index=self.index_name) from exc

    def delete(self, ids: list[str]) -> int:
        """Delete records by chunk id; return the number of ids removed."""
        if not ids:
            return 0
        try:
            self._delete(ids)
        except Exception as exc:
            raise StoreError(
                f"Delete of {len(ids)} records failed: {exc}", stage="delete", index=self.index_name
            ) from exc
        return len(ids)

    # -- internals ------------------------------------------------------------

    def _bootstrap_index(self, name: str, dimension: int, metric: str, region: str) -> None:
        logger.info("Checking if index %r exists…", name)
        try:
            if self._index_exists(name):
                logger.info("Index %r already exists", name)
            else:
                logger.info(
                    "Creating index %r (dim=%d, metric=%s, region=%s)", name, dimension, metric, region
                )
                self._create_index(name, dimension, metric, region)
        except Exception as exc:
            raise IndexCreationFailure(f"Could not create index {name!r}: {exc}", index=name) from exc

        deadline = time.monotonic() + self.ready_timeout
        while not self._poll_ready(name):
            if time.monotonic() >= deadline:
                raise IndexCreationFailure(
                    f"Index {name!r} not ready after {self.ready_timeout:.0f}s", index=name
                )
            time.sleep(self.poll_interval)
        logger.info("Index %r is ready", name)

    def _poll_ready(self, name: str) -> bool:
        try:
            return self._index_ready(name)
        except Exception:
            logger.debug("Index %r not queryable yet", name, exc_info=True)
            return False
