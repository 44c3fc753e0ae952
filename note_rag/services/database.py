"""Database service for PostgreSQL operations."""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import asyncpg

from note_rag.core.config import Settings
from note_rag.core.exceptions import DatabaseError
from note_rag.models.document import Document


class DatabaseService:
    """Owns the PostgreSQL connection pool."""

    def __init__(self, settings: Settings) -> None:
        """Initialize database service."""
        self.url = settings.postgres_url
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.url,
                min_size=2,
                max_size=10,
            )
        except Exception as e:
            raise DatabaseError(
                f"Failed to connect to database: {str(e)}") from e

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self.pool:
            await self.pool.close()

    def acquire(self):
        """
        Acquire a pooled connection.

        Raises:
            DatabaseError: If the pool has not been created.
        """
        if not self.pool:
            raise DatabaseError("Database not connected")
        return self.pool.acquire()


class DocumentStore(ABC):
    """Read and hard-delete access to the note store."""

    @abstractmethod
    async def list_documents(self, page: int, size: int) -> Tuple[List[Document], int]:
        """Return one page of live documents, newest first, and the total count."""

    @abstractmethod
    async def get_document(self, document_id: int) -> Optional[Document]:
        """Return a live document or None."""

    @abstractmethod
    async def hard_delete_document(self, document_id: int) -> bool:
        """Remove a document row. Returns False if nothing was deleted."""


class PostgresDocumentStore(DocumentStore):
    """Document store backed by the ``notes`` table."""

    def __init__(self, database: DatabaseService) -> None:
        self.database = database

    @staticmethod
    def _to_document(row) -> Document:
        return Document(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            updated_at=row["updated_at"],
            is_deleted=bool(row["is_deleted"]),
        )

    async def list_documents(self, page: int, size: int) -> Tuple[List[Document], int]:
        """
        List live documents.

        Args:
            page: Page number, 1-indexed.
            size: Page size.

        Returns:
            Tuple of (documents, total live documents).
        """
        page = max(page, 1)
        try:
            async with self.database.acquire() as conn:
                total = await conn.fetchval(
                    "SELECT COUNT(*) FROM notes WHERE is_deleted = 0")
                rows = await conn.fetch(
                    """
                    SELECT id, title, content, updated_at, is_deleted
                    FROM notes
                    WHERE is_deleted = 0
                    ORDER BY updated_at DESC
                    LIMIT $1 OFFSET $2
                    """,
                    size,
                    (page - 1) * size,
                )
                return [self._to_document(row) for row in rows], total
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to fetch documents: {str(e)}") from e

    async def get_document(self, document_id: int) -> Optional[Document]:
        """
        Get a single live document by ID.

        Args:
            document_id: Document ID.

        Returns:
            Document or None if not found.
        """
        try:
            async with self.database.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, title, content, updated_at, is_deleted
                    FROM notes
                    WHERE id = $1 AND is_deleted = 0
                    """,
                    document_id,
                )
                return self._to_document(row) if row else None
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to fetch document: {str(e)}") from e

    async def hard_delete_document(self, document_id: int) -> bool:
        """
        Permanently delete a document.

        Args:
            document_id: Document ID.

        Returns:
            True if deleted, False if not found.
        """
        try:
            async with self.database.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM notes WHERE id = $1",
                    document_id,
                )
                return result == "DELETE 1"
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to delete document: {str(e)}") from e
