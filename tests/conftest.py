"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING

import pytest
from langchain_core.embeddings import Embeddings

from georag.ingestion.embedder import Embedder
from georag.retrieval.memory_store import InMemoryVectorStore

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

DIM = 1024


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class BagOfWordsEmbeddings(Embeddings):
    """Deterministic hashed bag-of-words embeddings (no model download)."""

    def __init__(self, size: int = DIM) -> None:
        self.size = size
        self.calls = 0

    def embed_query(self, text: str) -> list[float]:
        self.calls += 1
        vector = [0.0] * self.size
        vector[0] = 0.01
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            slot = int(hashlib.md5(token.encode()).hexdigest(), 16) % (self.size - 1) + 1
            vector[slot] += 1.0
        return vector

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]


class FakeGenerator:
    """Echoes the first context passage back and records every call."""

    model_name = "fake-llm"

    def __init__(self) -> None:
        self.calls: list[list[BaseMessage]] = []

    async def generate(self, messages: list[BaseMessage]) -> str:
        self.calls.append(messages)
        prompt = str(messages[-1].content)
        first = prompt.split("\n\n")[0].removeprefix("Context 1: ")
        return f"According to your documents: {first.strip()}"


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def bow_model() -> BagOfWordsEmbeddings:
    return BagOfWordsEmbeddings()


@pytest.fixture()
def embedder(bow_model: BagOfWordsEmbeddings) -> Embedder:
    return Embedder("fake-bow", dimension=DIM, concurrency=3, model_factory=lambda: bow_model)


@pytest.fixture()
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore("test-index", dimension=DIM, batch_size=100, poll_interval=0.01)


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()
