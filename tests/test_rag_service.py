"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from note_rag.core.dependencies import ServiceContainer
from note_rag.models.document import Document
from note_rag.rag_service import create_app
from note_rag.services.chunking import fragment_id
from tests.conftest import make_settings


@pytest.fixture
def client(build_service, document_store):
    settings = make_settings()
    services = ServiceContainer(settings)
    services.retrieval = build_service(settings=settings)
    services.vector_db = services.retrieval.vector_db
    document_store.documents[1] = Document(
        id=1, title="Go", content="# T\n\npara one\n\n```go\ncode\n```")
    return TestClient(create_app(services))


class TestRagRoutes:
    """Test the retrieval endpoints."""

    def test_index_then_search(self, client, fragment_store):
        response = client.post("/api/rag/index/1")
        assert response.status_code == 200
        assert len(response.json()["results"]) == 3
        assert len(fragment_store.rows) == 3

        response = client.get("/api/rag/search", params={"q": "para one"})
        assert response.status_code == 200
        hits = response.json()["list"]
        assert hits[0]["frag_id"] == fragment_id("para one")
        assert hits[0]["link"] == "/?id=1"

    def test_search_requires_question(self, client):
        assert client.get("/api/rag/search").status_code == 400
        assert client.get("/api/rag/search", params={"q": "x", "top_k": 0}).status_code == 422

    def test_index_missing_document(self, client):
        assert client.post("/api/rag/index/99").status_code == 404
        assert client.post("/api/rag/index/0").status_code == 400

    def test_qa(self, client):
        client.post("/api/rag/index/1")
        response = client.post("/api/rag/qa", json={"question": "para one"})
        assert response.status_code == 200
        body = response.json()
        assert body["answer"].startswith("para one")
        assert body["fragments"][0] == fragment_id("para one")

    def test_qa_requires_question(self, client):
        assert client.post("/api/rag/qa", json={"question": ""}).status_code == 400

    def test_delete_document_vectors(self, client, fragment_store, vector_index):
        client.post("/api/rag/index/1")
        response = client.delete("/api/rag/documents/1")
        assert response.status_code == 200
        assert response.json()["fragments_deleted"] == 3
        assert fragment_store.rows == {}
        assert vector_index.vectors == {}

    def test_purge(self, client, document_store, fragment_store):
        client.post("/api/rag/index/1")
        response = client.post("/api/admin/purge")
        assert response.status_code == 200
        assert response.json()["documents_deleted"] == 1
        assert document_store.documents == {}
        assert fragment_store.rows == {}
        assert client.get("/api/rag/search", params={"q": "para one"}).json()["list"] == []


class TestOperationalRoutes:
    """Test health, readiness and metrics."""

    def test_health_reports_each_dependency(self, client):
        body = client.get("/health").json()
        assert body["service"] == "note-rag"
        assert body["status"] == "unhealthy"
        assert body["services"]["postgres"]["status"] == "unhealthy"
        assert body["services"]["vector_index"]["status"] == "healthy"
        assert body["services"]["redis"]["status"] == "not_configured"
        assert body["services"]["embedding"]["status"] == "fallback"

    def test_not_ready_without_database(self, client):
        assert client.get("/ready").json()["ready"] is False

    def test_metrics(self, client):
        client.get("/api/rag/search", params={"q": "anything"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "rag_search_requests_total" in response.text
