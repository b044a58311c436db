"""Domain models for index records, search results, and answers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Tenant scoping is not expressed with these filters; the store client
    always adds it on its own.

    Attributes
    ----------
    field:
        The wire metadata key to filter on (e.g. ``"filename"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate this filter against a wire metadata dict (client-side path)."""
        actual = metadata.get(self.field)
        if self.operator == "eq":
            return actual == self.value
        if self.operator == "ne":
            return actual != self.value
        if self.operator == "in":
            return actual in (self.value or [])
        if self.operator == "nin":
            return actual not in (self.value or [])
        raise ValueError(f"Unsupported filter operator: {self.operator!r}")


class RecordMetadata(BaseModel):
    """Explicit metadata schema stored next to every vector.

    Anything outside the schema goes into ``extra`` as a JSON string so that
    the store only ever sees flat scalar values.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    tenant_id: str
    filename: str
    text: str
    chunk_index: int
    chunk_id: str
    uploaded_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    chunk_size: int
    chunk_overlap: int
    extra: str | None = None

    @classmethod
    def with_overflow(cls, overflow: dict[str, Any] | None = None, **fields: Any) -> RecordMetadata:
        """Build metadata, serialising *overflow* into the ``extra`` field."""
        extra = json.dumps(overflow, sort_keys=True, default=str) if overflow else None
        return cls(extra=extra, **fields)

    def overflow(self) -> dict[str, Any]:
        return json.loads(self.extra) if self.extra else {}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, metadata: dict[str, Any]) -> RecordMetadata:
        return cls.model_validate(metadata)


class IndexRecord(BaseModel):
    """One vector plus metadata, keyed by chunk id (upsert key)."""

    chunk_id: str
    vector: list[float]
    metadata: RecordMetadata


class Query(BaseModel):
    """A retrieval request scoped to one tenant."""

    text: str
    tenant_id: str
    top_k: int = Field(default=5, ge=1)
    filters: list[MetadataFilter] = Field(default_factory=list)


class SearchResult(BaseModel):
    """A retrieved chunk with its similarity score and source attribution."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    chunk_id: str
    score: float
    preview: str
    full_text: str
    filename: str
    tenant_id: str
    chunk_index: int | None = None
    uploaded_at: str | None = None

    @classmethod
    def from_match(
        cls, match_id: str, score: float, metadata: dict[str, Any], preview_chars: int = 300
    ) -> SearchResult:
        text = metadata.get("text") or ""
        return cls(
            chunk_id=metadata.get("chunkId") or match_id,
            score=score,
            preview=text[:preview_chars] or "No text available",
            full_text=text,
            filename=metadata.get("filename") or "unknown",
            tenant_id=metadata.get("tenantId") or "",
            chunk_index=metadata.get("chunkIndex"),
            uploaded_at=metadata.get("uploadedAt"),
        )

    def __str__(self) -> str:  # noqa: D105
        return f"[{self.filename}§{self.chunk_index}] {self.full_text[:120]}…"


class Answer(BaseModel):
    """Generated answer paired with the chunks it was grounded on."""

    text: str
    sources: list[SearchResult] = Field(default_factory=list)
    grounded: bool = True
