"""Unit tests for the serving layer."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from georag.config import Settings
from georag.container import build_services, get_services
from georag.retrieval.memory_store import InMemoryVectorStore
from georag.serving.app import app
from conftest import DIM, FakeGenerator

SKY = "The sky is blue. Grass is green."


class BrokenIndexStore(InMemoryVectorStore):
    def _create_index(self, name: str, dimension: int, metric: str, region: str) -> None:
        raise ConnectionError("quota exceeded")


def _client(store, embedder, generator) -> Iterator[TestClient]:
    cfg = Settings(vector_backend="memory", embedding_dimension=DIM)
    services = build_services(cfg, store=store, embedder=embedder, generator=generator)
    app.dependency_overrides[get_services] = lambda: services
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(store, embedder, generator) -> Iterator[TestClient]:
    yield from _client(store, embedder, generator)


def _upload(client: TestClient, tenant_id: str = "alice", **files: str):
    return client.post(
        "/api/upload",
        json={
            "tenantId": tenant_id,
            "documents": [{"filename": name, "text": text} for name, text in files.items()],
        },
    )


# ── health ─────────────────────────────────────────────────────────────


def test_health_endpoint() -> None:
    """GET /health should return 200 with status ok."""
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readiness_checks_store(client: TestClient) -> None:
    response = client.get("/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── upload ─────────────────────────────────────────────────────────────


def test_upload_reports_per_document_results(client: TestClient) -> None:
    response = _upload(client, **{"sky.txt": SKY, "empty.txt": "  "})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["totalFiles"] == 2
    ok, failed = body["results"]
    assert ok == {"filename": "sky.txt", "chunksCreated": 1, "vectorsUploaded": 1, "status": "success"}
    assert failed["status"] == "failed"
    assert failed["stage"] == "validation"


def test_upload_all_successful(client: TestClient) -> None:
    body = _upload(client, **{"sky.txt": SKY}).json()
    assert body["success"] is True


def test_upload_requires_documents(client: TestClient) -> None:
    response = client.post("/api/upload", json={"tenantId": "alice", "documents": []})
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"


def test_multipart_upload(client: TestClient) -> None:
    response = client.post(
        "/api/upload/files",
        data={"tenantId": "alice"},
        files=[
            ("files", ("sky.txt", SKY.encode(), "text/plain")),
            ("files", ("broken.pdf", b"not really a pdf", "application/pdf")),
            ("files", ("notes.md", b"# Notes\n\nRivers flow downhill.", "text/markdown")),
        ],
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["filename"] for r in results] == ["sky.txt", "broken.pdf", "notes.md"]
    assert [r["status"] for r in results] == ["success", "failed", "success"]
    assert results[1]["stage"] == "validation"


def test_index_failure_returns_503(embedder, generator) -> None:
    store = BrokenIndexStore("test-index", dimension=DIM, poll_interval=0.01)
    for client in _client(store, embedder, generator):
        response = _upload(client, **{"sky.txt": SKY})

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Index unavailable"
        assert body["stage"] == "index"
        assert "quota exceeded" in body["message"]


# ── query ──────────────────────────────────────────────────────────────


def test_upload_then_query(client: TestClient, generator: FakeGenerator) -> None:
    _upload(client, **{"sky.txt": SKY})

    response = client.post(
        "/api/query", json={"query": "What color is the sky?", "tenantId": "alice"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "blue" in body["answer"]
    assert body["sources"][0]["filename"] == "sky.txt"
    assert body["sources"][0]["preview"].startswith("The sky is blue.")
    assert body["metadata"]["tenantId"] == "alice"
    assert body["metadata"]["chunksFound"] == 1
    assert body["metadata"]["model"] == "fake-llm"
    assert body["metadata"]["embeddingModel"] == "fake-bow"
    assert body["metadata"]["maxSimilarity"] == body["sources"][0]["similarity"]
    assert len(generator.calls) == 1


def test_query_without_documents_returns_fallback(client: TestClient, generator: FakeGenerator) -> None:
    _upload(client, tenant_id="bob", **{"sky.txt": SKY})

    body = client.post("/api/query", json={"query": "What color is the sky?", "tenantId": "alice"}).json()

    assert body["success"] is True
    assert body["answer"].startswith("I couldn't find any relevant information")
    assert body["sources"] == []
    assert body["metadata"]["chunksFound"] == 0
    assert generator.calls == []


def test_query_can_omit_sources(client: TestClient) -> None:
    _upload(client, **{"sky.txt": SKY})

    body = client.post(
        "/api/query",
        json={"query": "sky", "tenantId": "alice", "includeMetadata": False},
    ).json()

    assert body["sources"] == []
    assert body["metadata"]["chunksFound"] == 1


def test_empty_query_is_a_structured_400(client: TestClient) -> None:
    response = client.post("/api/query", json={"query": "  ", "tenantId": "alice"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert "Query is required" in body["message"]


def test_missing_tenant_is_a_structured_422(client: TestClient) -> None:
    response = client.post("/api/query", json={"query": "sky"})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "tenantId" in body["message"]
