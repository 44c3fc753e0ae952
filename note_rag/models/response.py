"""Result models returned by the retrieval service and the API."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """Fragment surfaced by a similarity search."""

    document_id: int
    title: str
    frag_id: str
    score: float
    link: str


class Answer(BaseModel):
    """Synthesized answer with the evidence it was built from."""

    answer: str
    fragments: List[str] = Field(
        default_factory=list, description="Fragment ids used as context, in rank order")
    contexts: List[str] = Field(default_factory=list)
    degraded: bool = Field(
        default=False, description="True when the answer is the raw context fallback")


class FragmentResult(BaseModel):
    """Outcome of persisting one fragment during indexing."""

    frag_id: str
    is_code: bool = False
    status: Literal["stored", "skipped"]
    reason: Optional[str] = None


class IndexReport(BaseModel):
    """Batch report for a single indexing pass."""

    document_id: int
    results: List[FragmentResult] = Field(default_factory=list)
    vectors_published: int = 0
    vectors_missing: int = 0
    embedding_error: Optional[str] = None
    vector_error: Optional[str] = None

    @property
    def stored(self) -> List[str]:
        return [r.frag_id for r in self.results if r.status == "stored"]

    @property
    def skipped(self) -> List[FragmentResult]:
        return [r for r in self.results if r.status == "skipped"]


class DeletionReport(BaseModel):
    """Result of removing fragments and their vectors."""

    document_id: Optional[int] = None
    vector_ids: List[str] = Field(default_factory=list)
    vectors_deleted: bool = False
    fragments_deleted: int = 0
    vector_error: Optional[str] = None


class PurgeReport(BaseModel):
    """Result of removing every document, fragment and vector."""

    documents_deleted: int = 0
    documents_failed: List[int] = Field(default_factory=list)
    pages_failed: int = 0
    fragments: DeletionReport = Field(default_factory=DeletionReport)


class SearchResponse(BaseModel):
    """Search endpoint response."""

    list: List[SearchHit]


class QARequest(BaseModel):
    """Question answering request."""

    question: str


class QAResponse(BaseModel):
    """Question answering response."""

    answer: str
    fragments: List[str] = Field(default_factory=list)
