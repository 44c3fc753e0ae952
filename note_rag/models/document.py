"""Document and fragment models for the RAG system."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Document(BaseModel):
    """Note owned by the document store, read-only to the RAG core."""

    id: int
    title: str
    content: str = ""
    updated_at: Optional[datetime] = None
    is_deleted: bool = False

    class Config:
        """Pydantic config."""

        from_attributes = True


class FragmentCandidate(BaseModel):
    """Chunk produced by the fragmenter, before it has an identity."""

    content: str
    is_code: bool = False


class Fragment(BaseModel):
    """Persisted fragment row linking a chunk to its document and vector."""

    id: Optional[int] = None
    document_id: int
    frag_id: str = Field(..., min_length=1, max_length=64)
    content: str
    is_code: bool = False
    vector_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class QARecord(BaseModel):
    """Append-only audit entry for a synthesized answer."""

    id: Optional[int] = None
    question: str
    answer: str
    fragments: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
