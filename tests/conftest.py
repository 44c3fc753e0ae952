"""
Shared fixtures for the note_rag test suite.

External services are simulated in process:
- the vector index through an httpx.MockTransport handler
- relational stores through in-memory implementations of the store interfaces
"""

import json
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest

from note_rag.core.config import Settings
from note_rag.core.exceptions import DatabaseError
from note_rag.models.document import Document, Fragment, QARecord
from note_rag.services.chunking import ChunkingService
from note_rag.services.database import DocumentStore
from note_rag.services.embedding import EmbeddingService
from note_rag.services.fragment_store import FragmentStore, QARecordStore
from note_rag.services.llm import LLMService
from note_rag.services.retrieval import RetrievalService
from note_rag.services.vector_db import VectorDBService

INDEX_URL = "http://index.test"
API_KEY = "test-key"


class InMemoryFragmentStore(FragmentStore):
    """Fragment store keeping rows in a dict keyed by frag_id."""

    def __init__(self, fail_contents: Tuple[str, ...] = ()) -> None:
        self.rows: Dict[str, Fragment] = {}
        self.fail_contents = set(fail_contents)
        self.fail_delete = False
        self._next_id = 1

    async def upsert(self, fragment: Fragment) -> Fragment:
        if fragment.content in self.fail_contents:
            raise DatabaseError(f"write failed for {fragment.frag_id}")
        stored = fragment.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self.rows[fragment.frag_id] = stored
        return stored

    async def list_vector_ids_for_document(self, document_id: int) -> Set[str]:
        return {f.vector_id for f in self.rows.values() if f.document_id == document_id}

    async def delete_for_document(self, document_id: int) -> int:
        if self.fail_delete:
            raise DatabaseError("delete failed")
        doomed = [k for k, f in self.rows.items() if f.document_id == document_id]
        for key in doomed:
            del self.rows[key]
        return len(doomed)

    async def delete_all(self) -> int:
        count = len(self.rows)
        self.rows.clear()
        return count

    def for_document(self, document_id: int) -> List[Fragment]:
        return [f for f in self.rows.values() if f.document_id == document_id]


class InMemoryDocumentStore(DocumentStore):
    """Document store over a dict, newest id first."""

    def __init__(self, documents: Optional[List[Document]] = None) -> None:
        self.documents = {d.id: d for d in documents or []}
        self.fail_delete_ids: Set[int] = set()
        self.fail_list = False

    async def list_documents(self, page: int, size: int) -> Tuple[List[Document], int]:
        if self.fail_list:
            raise DatabaseError("list failed")
        live = sorted(
            (d for d in self.documents.values() if not d.is_deleted),
            key=lambda d: d.id,
            reverse=True,
        )
        start = (page - 1) * size
        return live[start:start + size], len(live)

    async def get_document(self, document_id: int) -> Optional[Document]:
        document = self.documents.get(document_id)
        if document is None or document.is_deleted:
            return None
        return document

    async def hard_delete_document(self, document_id: int) -> bool:
        if document_id in self.fail_delete_ids:
            raise DatabaseError(f"cannot delete {document_id}")
        return self.documents.pop(document_id, None) is not None


class InMemoryQARecordStore(QARecordStore):
    def __init__(self) -> None:
        self.records: List[QARecord] = []

    async def append(self, record: QARecord) -> QARecord:
        self.records.append(record)
        return record


class FakeVectorIndex:
    """Minimal Pinecone data plane: upsert, dot-product query, delete."""

    def __init__(self) -> None:
        self.vectors: Dict[str, List[float]] = {}
        self.metadata: Dict[str, dict] = {}
        self.requests: List[Tuple[str, dict]] = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.headers.get("Api-Key") == API_KEY
        body = json.loads(request.content or b"{}")
        path = request.url.path
        self.requests.append((path, body))
        if self.fail:
            return httpx.Response(503, json={"message": "unavailable"})

        if path == "/vectors/upsert":
            for item in body["vectors"]:
                self.vectors[item["id"]] = item["values"]
                self.metadata[item["id"]] = item.get("metadata", {})
            return httpx.Response(200, json={"upsertedCount": len(body["vectors"])})

        if path == "/query":
            query = body["vector"]
            scored = sorted(
                (
                    (sum(a * b for a, b in zip(values, query)), vector_id)
                    for vector_id, values in self.vectors.items()
                ),
                reverse=True,
            )[: body["topK"]]
            matches = [
                {"id": vector_id, "score": score, "metadata": self.metadata[vector_id]}
                for score, vector_id in scored
            ]
            return httpx.Response(200, json={"matches": matches, "namespace": ""})

        if path == "/vectors/delete":
            if body.get("deleteAll"):
                self.vectors.clear()
                self.metadata.clear()
            for vector_id in body.get("ids", []):
                self.vectors.pop(vector_id, None)
                self.metadata.pop(vector_id, None)
            return httpx.Response(200, json={})

        if path == "/describe_index_stats":
            return httpx.Response(200, json={"dimension": 64, "totalVectorCount": len(self.vectors)})

        return httpx.Response(404)

    def paths(self) -> List[str]:
        return [path for path, _ in self.requests]


def make_settings(**overrides) -> Settings:
    values = {
        "pinecone_host": INDEX_URL,
        "pinecone_api_key": API_KEY,
        "embedding_dimensions": 64,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def index_client(vector_index: FakeVectorIndex) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(vector_index), base_url=INDEX_URL)


@pytest.fixture
def fragment_store() -> InMemoryFragmentStore:
    return InMemoryFragmentStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def qa_store() -> InMemoryQARecordStore:
    return InMemoryQARecordStore()


@pytest.fixture
def build_service(index_client, fragment_store, document_store, qa_store):
    """Factory for a RetrievalService wired to the in-process fakes."""

    def build(
        settings: Optional[Settings] = None,
        llm_client: Optional[httpx.AsyncClient] = None,
        embedding_client: Optional[httpx.AsyncClient] = None,
        cache_service=None,
        store: Optional[FragmentStore] = None,
    ) -> RetrievalService:
        settings = settings or make_settings()
        return RetrievalService(
            settings=settings,
            chunking_service=ChunkingService(settings),
            embedding_service=EmbeddingService(settings, client=embedding_client),
            vector_db=VectorDBService(settings, client=index_client),
            fragment_store=store or fragment_store,
            llm_service=LLMService(settings, client=llm_client),
            cache_service=cache_service,
            qa_store=qa_store,
            document_store=document_store,
        )

    return build
