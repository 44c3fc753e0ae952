"""Typed payloads exchanged with the vector index."""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class FragmentMetadata(BaseModel):
    """Metadata stored next to each fragment vector."""

    document_id: int
    title: Optional[str] = None
    frag_id: str
    content: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the wire, omitting absent content."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]], fallback_id: str) -> "FragmentMetadata":
        """
        Parse metadata returned by the index.

        Values written by other clients may be floats or strings, so the
        document id is coerced and missing keys fall back to neutral values.

        Args:
            payload: Raw metadata dictionary, possibly None.
            fallback_id: Match id used when no fragment id was stored.

        Returns:
            Parsed metadata.
        """
        payload = payload or {}
        document_id = payload.get("document_id")
        try:
            document_id = int(float(document_id))
        except (TypeError, ValueError):
            document_id = 0

        title = payload.get("title")
        content = payload.get("content")
        frag_id = payload.get("frag_id")
        return cls(
            document_id=document_id,
            title=title if isinstance(title, str) else None,
            frag_id=frag_id if isinstance(frag_id, str) and frag_id else fallback_id,
            content=content if isinstance(content, str) else None,
        )


class VectorMatch(BaseModel):
    """Scored result of a similarity query."""

    id: str
    score: float
    metadata: FragmentMetadata
