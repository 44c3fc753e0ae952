"""Text completion service for answer synthesis."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from note_rag.core.config import Settings
from note_rag.core.exceptions import LLMError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Answer the question using the user's personal notes. "
    "Quote the original fragments where possible."
)


def build_messages(question: str, contexts: List[str]) -> List[Dict[str, str]]:
    """
    Build the chat prompt for a question and its retrieved context.

    Args:
        question: User question.
        contexts: Retrieved fragment texts in rank order.

    Returns:
        Chat messages: system instruction, then the user turn.
    """
    context = "\n".join(contexts)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Question: {question}\nContext: {context}"},
    ]


def extract_answer(payload: Any) -> str:
    """
    Extract the answer text from a completion response.

    Supports chat responses (``choices[0].message.content``) and plain
    completions (``choices[0].text``). Anything else yields an empty string.
    """
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    if isinstance(first.get("text"), str):
        return first["text"]
    return ""


class LLMService:
    """Service for calling the external text completion endpoint."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        """
        Initialize the LLM service.

        Args:
            settings: Application settings.
            client: Optional HTTP client, mainly for tests.
        """
        self.url = settings.llm_url
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.configured = bool(self.url)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.llm_timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def complete(self, question: str, contexts: List[str]) -> str:
        """
        Generate an answer from the question and retrieved context.

        Args:
            question: User question.
            contexts: Retrieved context snippets.

        Returns:
            Generated answer text.

        Raises:
            LLMError: If the service is unconfigured or the call fails.
        """
        if not self.configured:
            raise LLMError("Text completion endpoint not configured")

        payload = {
            "model": self.model,
            "messages": build_messages(question, contexts),
            "max_tokens": self.max_tokens,
        }
        try:
            response = await self.client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Failed to generate response: {str(e)}") from e

        return extract_answer(data)
