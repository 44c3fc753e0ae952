"""Dependency injection for services."""

import logging
from typing import Optional

from note_rag.core.config import Settings
from note_rag.services.cache import CacheService
from note_rag.services.chunking import ChunkingService
from note_rag.services.database import DatabaseService, PostgresDocumentStore
from note_rag.services.embedding import EmbeddingService
from note_rag.services.fragment_store import PostgresFragmentStore, PostgresQARecordStore
from note_rag.services.llm import LLMService
from note_rag.services.retrieval import RetrievalService
from note_rag.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Container for service instances."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """
        Initialize service container.

        Args:
            settings: Application settings, read from the environment if omitted.
        """
        self.settings = settings or Settings()
        self.database = DatabaseService(self.settings)
        self.document_store = PostgresDocumentStore(self.database)
        self.fragment_store = PostgresFragmentStore(self.database)
        self.qa_store = PostgresQARecordStore(self.database)
        self.chunking_service = ChunkingService(self.settings)
        self.embedding_service = EmbeddingService(self.settings)
        self.vector_db = VectorDBService(self.settings)
        self.llm_service = LLMService(self.settings)
        self.cache_service = CacheService(self.settings)
        self.retrieval = RetrievalService(
            settings=self.settings,
            chunking_service=self.chunking_service,
            embedding_service=self.embedding_service,
            vector_db=self.vector_db,
            fragment_store=self.fragment_store,
            llm_service=self.llm_service,
            cache_service=self.cache_service,
            qa_store=self.qa_store,
            document_store=self.document_store,
        )

    async def initialize(self) -> None:
        """Initialize all services."""
        await self.database.connect()
        await self.fragment_store.ensure_schema()
        await self.cache_service.connect()
        logger.info(
            f"Services ready: embedding={'remote' if self.embedding_service.configured else 'fallback'}, "
            f"vector_index={'on' if self.vector_db.configured else 'off'}, "
            f"llm={'remote' if self.llm_service.configured else 'fallback'}"
        )

    async def shutdown(self) -> None:
        """Shutdown all services."""
        await self.cache_service.disconnect()
        await self.llm_service.close()
        await self.vector_db.close()
        await self.embedding_service.close()
        await self.database.disconnect()
