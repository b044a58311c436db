"""Unit tests for the chunker module."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError as PydanticValidationError

from georag.errors import ChunkingError
from georag.ingestion.chunker import Chunker, chunk_text, clean_text, punctuation_ratio, quality_score
from georag.ingestion.models import ChunkingConfig


def _shared_overlap(prev: str, nxt: str) -> str:
    """Longest prefix of *nxt* that is also a suffix of *prev*."""
    for k in range(min(len(prev), len(nxt)), 0, -1):
        if prev.endswith(nxt[:k]):
            return nxt[:k]
    return ""


# ── fixed strategy ─────────────────────────────────────────────────────


class TestFixedStrategy:
    @pytest.mark.parametrize("length,size", [(1, 10), (10, 10), (11, 10), (999, 100), (1234, 7)])
    def test_count_and_reconstruction(self, length: int, size: int) -> None:
        text = "".join(chr(ord("a") + i % 26) for i in range(length))
        chunks = chunk_text(text, ChunkingConfig(strategy="fixed", target_size=size, overlap=0))
        assert len(chunks) == math.ceil(length / size)
        assert "".join(c.text for c in chunks) == text

    def test_overlap_uses_stride(self) -> None:
        text = "abcdefghijklmnopqrstuvwxyz"
        chunks = chunk_text(text, ChunkingConfig(strategy="fixed", target_size=10, overlap=4))
        assert [c.text for c in chunks] == ["abcdefghij", "ghijklmnop", "mnopqrstuv", "stuvwxyz"]

    def test_fixed_keeps_low_quality_chunks(self) -> None:
        text = "!!!!!!!!!! a b c d e f g"
        chunks = chunk_text(
            text, ChunkingConfig(strategy="fixed", target_size=10, overlap=0, min_words=3)
        )
        assert "".join(c.text for c in chunks) == text


# ── recursive strategy ─────────────────────────────────────────────────


class TestRecursiveStrategy:
    def test_sentence_boundary_scenario(self) -> None:
        chunks = chunk_text(
            "The sky is blue. Grass is green.",
            ChunkingConfig(strategy="recursive", target_size=20, overlap=0),
        )
        assert [c.text for c in chunks] == ["The sky is blue. ", "Grass is green."]

    def test_short_input_yields_single_chunk(self) -> None:
        chunks = chunk_text("Short text.", ChunkingConfig(target_size=256, overlap=32))
        assert len(chunks) == 1
        assert chunks[0].text == "Short text."

    def test_splits_long_text_within_target_size(self) -> None:
        text = clean_text("word " * 500)
        chunks = chunk_text(text, ChunkingConfig(target_size=256, overlap=32))
        assert len(chunks) > 1
        assert all(c.char_count <= 256 for c in chunks)

    def test_overlap_snaps_to_separator(self) -> None:
        text = "".join(f"word{i:03d} " for i in range(60)).strip()
        config = ChunkingConfig(target_size=80, overlap=20)
        chunks = chunk_text(text, config)
        assert len(chunks) > 2
        for prev, nxt in zip(chunks, chunks[1:]):
            shared = _shared_overlap(prev.text, nxt.text)
            assert 0 < len(shared) <= config.overlap
            assert shared.startswith("word")
            assert prev.text[-len(shared) - 1] == " "

    def test_falls_back_to_character_split(self) -> None:
        text = "x" * 95
        chunks = chunk_text(text, ChunkingConfig(target_size=30, overlap=0))
        assert all(c.char_count <= 30 for c in chunks)
        assert "".join(c.text for c in chunks) == text


# ── semantic strategy ──────────────────────────────────────────────────


class TestSemanticStrategy:
    def test_drops_chunks_below_min_words(self) -> None:
        text = (
            "Rivers carry sediment toward the delta every single spring. "
            "Ok. "
            "Glaciers carve deep valleys into the ancient mountain ranges."
        )
        config = ChunkingConfig(
            strategy="semantic",
            target_size=62,
            overlap=0,
            separators=[". ", " ", ""],
            min_words=4,
        )
        chunks = chunk_text(text, config)
        assert len(chunks) == 2
        assert all(c.word_count >= 4 for c in chunks)
        assert not any(c.text.strip() == "Ok." for c in chunks)

    def test_keeps_best_chunk_when_all_fail(self) -> None:
        config = ChunkingConfig(strategy="semantic", target_size=50, overlap=0, min_words=20)
        chunks = chunk_text("Only a handful of words here.", config)
        assert len(chunks) == 1
        assert chunks[0].index == 0

    def test_drops_punctuation_heavy_chunks(self) -> None:
        text = "Meaningful prose describing coastal erosion patterns. " + "?!;:,. " * 10
        config = ChunkingConfig(
            strategy="semantic",
            target_size=60,
            overlap=0,
            min_words=1,
            max_punctuation_ratio=0.3,
        )
        chunks = chunk_text(text.strip(), config)
        assert chunks
        assert all(punctuation_ratio(c.text) <= 0.3 for c in chunks)

    def test_indices_are_contiguous_after_filtering(self) -> None:
        text = "alpha beta gamma delta. x. epsilon zeta eta theta. y. iota kappa lambda mu."
        config = ChunkingConfig(
            strategy="semantic", target_size=30, overlap=0, separators=[". ", " ", ""], min_words=5
        )
        chunks = chunk_text(text, config)
        assert len(chunks) == 2
        assert [c.index for c in chunks] == list(range(len(chunks)))


# ── shared behaviour ───────────────────────────────────────────────────


class TestChunker:
    def test_empty_input_returns_empty_list(self) -> None:
        assert chunk_text("") == []
        assert chunk_text("   \n\t ") == []

    def test_chunk_ids_and_ownership(self) -> None:
        chunker = Chunker(ChunkingConfig(target_size=20, overlap=0))
        chunks = chunker.chunk("The sky is blue. Grass is green.", document_id="doc1", tenant_id="t1")
        assert [c.id for c in chunks] == ["doc1-0000", "doc1-0001"]
        assert all(c.document_id == "doc1" and c.tenant_id == "t1" for c in chunks)
        assert chunks[0].word_count == 4
        assert chunks[0].char_count == len(chunks[0].text)

    def test_chunks_are_immutable(self) -> None:
        chunk = chunk_text("Hello world.")[0]
        with pytest.raises(PydanticValidationError):
            chunk.text = "changed"  # type: ignore[misc]

    def test_overlap_must_be_smaller_than_target(self) -> None:
        with pytest.raises(ValueError, match="overlap"):
            ChunkingConfig(target_size=100, overlap=100)

    def test_per_call_config_overrides_default(self) -> None:
        chunker = Chunker(ChunkingConfig(target_size=500, overlap=0))
        override = ChunkingConfig(strategy="fixed", target_size=5, overlap=0)
        assert len(chunker.chunk("abcdefghij", override)) == 2

    def test_splitter_failure_becomes_chunking_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from georag.ingestion import chunker as chunker_module

        def _boom(text: str, config: ChunkingConfig) -> list[str]:
            raise RuntimeError("splitter exploded")

        monkeypatch.setitem(chunker_module._STRATEGIES, "recursive", _boom)
        with pytest.raises(ChunkingError, match="splitter exploded"):
            Chunker().chunk("some text", document_id="d")


class TestQualityScore:
    def test_complete_wordy_chunk_scores_higher(self) -> None:
        config = ChunkingConfig(min_words=5)
        good = quality_score("A reasonably long sentence with many words. ", config)
        bad = quality_score("!!??;;..", config)
        assert 0.0 <= bad < good <= 1.0

    def test_last_chunk_counts_as_complete(self) -> None:
        config = ChunkingConfig(min_words=1)
        assert quality_score("abc", config, is_last=True) > quality_score("abc", config)

    def test_clean_text_collapses_whitespace(self) -> None:
        assert clean_text("  Hello \n\n  world\t! ") == "Hello world !"
