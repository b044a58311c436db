"""Text chunking strategies.

One :class:`Chunker` serves every strategy; the strategy is picked from
:class:`~georag.ingestion.models.ChunkingConfig`:

* ``fixed`` — exact character windows with stride ``target_size - overlap``.
* ``recursive`` — ``RecursiveCharacterTextSplitter`` over the configured
  separators; overlap is snapped to separator boundaries.
* ``semantic`` — ``recursive`` followed by quality filtering.
"""

from __future__ import annotations

import logging
import re
import string
from typing import Callable

from langchain_text_splitters import RecursiveCharacterTextSplitter

from georag.errors import ChunkingError
from georag.ingestion.models import Chunk, ChunkingConfig

logger = logging.getLogger(__name__)

_PUNCTUATION = frozenset(string.punctuation)
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


# ── splitting strategies ──────────────────────────────────────────────


def _split_fixed(text: str, config: ChunkingConfig) -> list[str]:
    size, overlap = config.target_size, config.overlap
    pieces: list[str] = []
    cursor = 0
    while cursor < len(text):
        end = min(len(text), cursor + size)
        pieces.append(text[cursor:end])
        if end >= len(text):
            break
        cursor = end - overlap
    return pieces


def _split_recursive(text: str, config: ChunkingConfig) -> list[str]:
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=config.target_size,
        chunk_overlap=config.overlap,
        length_function=len,
        separators=config.separators,
        keep_separator="end",
        strip_whitespace=False,
    )
    return [piece for piece in splitter.split_text(text) if piece.strip()]


_STRATEGIES: dict[str, Callable[[str, ChunkingConfig], list[str]]] = {
    "fixed": _split_fixed,
    "recursive": _split_recursive,
    "semantic": _split_recursive,
}


# ── quality scoring ───────────────────────────────────────────────────


def punctuation_ratio(text: str) -> float:
    """Share of non-whitespace characters that are punctuation."""
    visible = [ch for ch in text if not ch.isspace()]
    if not visible:
        return 1.0
    return sum(ch in _PUNCTUATION for ch in visible) / len(visible)


def quality_score(text: str, config: ChunkingConfig, *, is_last: bool = False) -> float:
    """Score a chunk in ``[0, 1]`` from word count, punctuation density and word completeness.

    A chunk ends on a complete word when its last character is whitespace
    or punctuation, or when it is the final chunk of the document.
    """
    words = len(text.split())
    word_part = min(1.0, words / config.min_words) if config.min_words else 1.0
    punct_part = max(0.0, 1.0 - punctuation_ratio(text) / config.max_punctuation_ratio)
    last = text[-1:] or " "
    complete = is_last or last.isspace() or last in _PUNCTUATION
    return round(0.5 * word_part + 0.3 * punct_part + (0.2 if complete else 0.0), 4)


def _passes_quality(text: str, config: ChunkingConfig) -> bool:
    return (
        len(text.split()) >= config.min_words
        and punctuation_ratio(text) <= config.max_punctuation_ratio
    )


# ── public API ────────────────────────────────────────────────────────


class Chunker:
    """Split normalised text into ordered :class:`Chunk` objects.

    Parameters
    ----------
    config:
        Default configuration; :meth:`chunk` accepts a per-call override.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(
        self,
        text: str,
        config: ChunkingConfig | None = None,
        *,
        document_id: str = "document",
        tenant_id: str = "",
    ) -> list[Chunk]:
        """Split *text* into chunks.

        Returns an empty list for empty or whitespace-only input.  Raises
        :class:`~georag.errors.ChunkingError` if the underlying splitter
        fails.
        """
        config = config or self.config
        if not text or not text.strip():
            return []

        try:
            pieces = _STRATEGIES[config.strategy](text, config)
        except Exception as exc:
            raise ChunkingError(
                f"{config.strategy} splitting failed: {exc}", document_id=document_id
            ) from exc

        scored = [
            (piece, quality_score(piece, config, is_last=i == len(pieces) - 1))
            for i, piece in enumerate(pieces)
        ]

        if config.strategy == "semantic" and scored:
            kept = [(p, s) for p, s in scored if _passes_quality(p, config)]
            if not kept:
                # Never leave the document empty: keep the best-scoring chunk.
                kept = [max(scored, key=lambda item: item[1])]
            dropped = len(scored) - len(kept)
            if dropped:
                logger.info("Dropped %d low-quality chunk(s) from %s", dropped, document_id)
            scored = kept

        return [
            Chunk(
                id=f"{document_id}-{index:04d}",
                document_id=document_id,
                tenant_id=tenant_id,
                text=piece,
                index=index,
                char_count=len(piece),
                word_count=len(piece.split()),
                quality_score=score,
            )
            for index, (piece, score) in enumerate(scored)
        ]


def chunk_text(text: str, config: ChunkingConfig | None = None) -> list[Chunk]:
    """Module-level shortcut for ``Chunker().chunk(text, config)``."""
    return Chunker().chunk(text, config)
