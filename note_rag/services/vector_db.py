"""Vector index service speaking the Pinecone data-plane REST protocol."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from note_rag.core.config import Settings
from note_rag.core.exceptions import VectorIndexError
from note_rag.models.vector import FragmentMetadata, VectorMatch

logger = logging.getLogger(__name__)


class VectorDBService:
    """Service for interacting with the external vector index.

    Without host and API key every operation is a silent no-op and queries
    return no matches, so the rest of the pipeline keeps working offline.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        """
        Initialize the vector index service.

        Args:
            settings: Application settings.
            client: Optional HTTP client, mainly for tests.
        """
        self.host = (settings.pinecone_host or "").rstrip("/")
        self.index_name = settings.pinecone_index
        self.configured = bool(self.host and settings.pinecone_api_key)
        self.headers = {"Api-Key": settings.pinecone_api_key or ""}
        self.client: Optional[httpx.AsyncClient] = None
        self._owns_client = client is None

        if self.configured:
            self.client = client or httpx.AsyncClient(
                base_url=self.host,
                timeout=settings.vector_index_timeout_seconds,
            )
        else:
            logger.warning("Vector index not configured, vector operations are disabled")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self.client and self._owns_client:
            await self.client.aclose()

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self.client.post(endpoint, json=body, headers=self.headers)
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            raise VectorIndexError(
                f"Vector index request to {endpoint} failed: {str(e)}") from e

    async def upsert(
        self,
        index_name: str,
        vectors: Dict[str, List[float]],
        metadata: Dict[str, FragmentMetadata],
    ) -> None:
        """
        Upsert fragment vectors into the index.

        Args:
            index_name: Target index name.
            vectors: Vectors keyed by fragment id.
            metadata: Metadata keyed by fragment id.

        Raises:
            VectorIndexError: If the request fails.
        """
        if not self.configured or not vectors:
            return

        items = []
        for vector_id, values in vectors.items():
            item = {"id": vector_id, "values": values}
            if vector_id in metadata:
                item["metadata"] = metadata[vector_id].to_payload()
            items.append(item)

        await self._post("/vectors/upsert", {"vectors": items})
        logger.info(f"Upserted {len(items)} vectors into index {index_name}")

    async def query(self, vector: List[float], top_k: int) -> List[VectorMatch]:
        """
        Query the index for the nearest fragments.

        Args:
            vector: Query vector.
            top_k: Number of matches to request.

        Returns:
            Matches as ranked by the index, scores untouched.

        Raises:
            VectorIndexError: If the request fails or the body is malformed.
        """
        if not self.configured or not vector:
            return []

        response = await self._post(
            "/query", {"topK": top_k, "vector": vector, "includeMetadata": True})
        try:
            data = response.json()
        except ValueError as e:
            raise VectorIndexError(f"Invalid query response: {str(e)}") from e

        if data is None:
            return []
        if not isinstance(data, dict):
            raise VectorIndexError(f"Invalid query response: expected object, got {type(data).__name__}")
        raw_matches = data.get("matches") or []
        if not isinstance(raw_matches, list):
            raise VectorIndexError("Invalid query response: matches is not a list")

        matches = []
        for raw in raw_matches:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed match: {raw!r}")
                continue
            match_id = str(raw.get("id", ""))
            try:
                score = float(raw.get("score") or 0.0)
            except (TypeError, ValueError) as e:
                raise VectorIndexError(f"Invalid score for match {match_id}: {str(e)}") from e
            metadata = raw.get("metadata")
            matches.append(
                VectorMatch(
                    id=match_id,
                    score=score,
                    metadata=FragmentMetadata.from_payload(
                        metadata if isinstance(metadata, dict) else None, match_id),
                )
            )
        return matches

    async def delete_by_ids(self, ids: List[str]) -> None:
        """
        Delete vectors by id.

        Args:
            ids: Vector ids to delete.
        """
        if not self.configured or not ids:
            return
        await self._post("/vectors/delete", {"ids": list(ids)})
        logger.info(f"Deleted {len(ids)} vectors")

    async def delete_all(self) -> None:
        """Delete every vector in the index."""
        if not self.configured:
            return
        await self._post("/vectors/delete", {"deleteAll": True})
        logger.info(f"Deleted all vectors from index {self.index_name}")

    async def describe(self) -> Dict[str, Any]:
        """
        Fetch index statistics.

        Returns:
            Raw statistics dictionary.
        """
        if not self.configured:
            raise VectorIndexError("Vector index not configured")
        response = await self._post("/describe_index_stats", {})
        try:
            return response.json()
        except ValueError as e:
            raise VectorIndexError(f"Invalid stats response: {str(e)}") from e
