"""Embedding generation service with a deterministic offline fallback."""

import hashlib
import logging
import math
from typing import Any, List, Optional

import httpx

from note_rag.core.config import Settings
from note_rag.core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = (1 << 31) - 1


def deterministic_embedding(text: str, dimensions: int) -> List[float]:
    """
    Derive a pseudo-random unit vector from text.

    The first four bytes of the SHA-1 digest seed a linear congruential
    generator whose outputs are mapped into [-1, 1]. Same text, same vector.
    It carries no semantic meaning.

    Args:
        text: Text to embed.
        dimensions: Vector length.

    Returns:
        L2-normalized vector, or all zeros if the raw norm is zero.
    """
    digest = hashlib.sha1(text.encode("utf-8")).digest()
    x = int.from_bytes(digest[:4], "big")

    vector = []
    for _ in range(dimensions):
        x = (LCG_MULTIPLIER * x + LCG_INCREMENT) & 0xFFFFFFFF & LCG_MODULUS
        vector.append(2.0 * x / LCG_MODULUS - 1.0)

    norm = math.sqrt(sum(v * v for v in vector))
    if norm > 0:
        vector = [v / norm for v in vector]
    return vector


def extract_embeddings(payload: Any) -> List[List[float]]:
    """
    Extract vectors from an embedding service response.

    Accepts ``{"embeddings": [[...], ...]}`` or a bare list of vectors.

    Raises:
        EmbeddingError: If the payload holds no vector list.
    """
    if isinstance(payload, dict):
        payload = payload.get("embeddings")
    if not isinstance(payload, list) or not all(isinstance(v, list) for v in payload):
        raise EmbeddingError("Embedding response does not contain a list of vectors")
    return [[float(x) for x in vector] for vector in payload]


class EmbeddingService:
    """Service for generating embeddings, remotely or locally."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        """
        Initialize the embedding service.

        Args:
            settings: Application settings.
            client: Optional HTTP client, mainly for tests.
        """
        self.url = settings.embedding_url
        self.dimensions = settings.embedding_dimensions
        self.configured = bool(self.url)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.embedding_timeout_seconds)

        if not self.configured:
            logger.warning(
                f"No embedding URL configured, using deterministic {self.dimensions}-dim fallback vectors")

    @property
    def cache_namespace(self) -> str:
        """Key prefix that changes whenever the vector space changes."""
        if self.configured:
            return "remote:" + hashlib.sha1(self.url.encode("utf-8")).hexdigest()[:12]
        return f"local:{self.dimensions}"

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed.

        Returns:
            One vector per input, in input order. The remote service is
            trusted to keep count and order; a short response is returned
            as is.

        Raises:
            EmbeddingError: If the remote call fails.
        """
        if not texts:
            return []

        if not self.configured:
            return [deterministic_embedding(text, self.dimensions) for text in texts]

        try:
            response = await self.client.post(self.url, json={"inputs": texts})
            response.raise_for_status()
            embeddings = extract_embeddings(response.json())
        except EmbeddingError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Failed to generate embeddings: {str(e)}") from e

        if len(embeddings) != len(texts):
            logger.warning(
                f"Embedding service returned {len(embeddings)} vectors for {len(texts)} texts")
        return embeddings

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: Text string to embed.

        Returns:
            Embedding vector.

        Raises:
            EmbeddingError: If no vector comes back.
        """
        embeddings = await self.generate_embeddings([text])
        if not embeddings:
            raise EmbeddingError("Embedding service returned no vector")
        return embeddings[0]
