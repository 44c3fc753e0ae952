"""Fragment and QA record persistence."""

import json
from abc import ABC, abstractmethod
from typing import Set

from note_rag.core.exceptions import DatabaseError
from note_rag.models.document import Fragment, QARecord
from note_rag.services.database import DatabaseService

SCHEMA = """
CREATE TABLE IF NOT EXISTS fragments (
    id BIGSERIAL PRIMARY KEY,
    document_id BIGINT NOT NULL,
    frag_id VARCHAR(64) NOT NULL UNIQUE,
    content TEXT NOT NULL,
    is_code BOOLEAN NOT NULL DEFAULT FALSE,
    vector_id VARCHAR(128) NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_fragments_document_id ON fragments (document_id);
CREATE TABLE IF NOT EXISTS qa_records (
    id BIGSERIAL PRIMARY KEY,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    fragments TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class FragmentStore(ABC):
    """One row per fragment identity, linked to its document and vector."""

    @abstractmethod
    async def upsert(self, fragment: Fragment) -> Fragment:
        """Replace any row with the same frag_id by this fragment."""

    @abstractmethod
    async def list_vector_ids_for_document(self, document_id: int) -> Set[str]:
        """Vector ids of every fragment of a document."""

    @abstractmethod
    async def delete_for_document(self, document_id: int) -> int:
        """Delete a document's fragments, returning the row count."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every fragment, returning the row count."""


class QARecordStore(ABC):
    """Append-only audit trail of answered questions."""

    @abstractmethod
    async def append(self, record: QARecord) -> QARecord:
        """Insert a record."""


def _deleted_count(status: str) -> int:
    # asyncpg returns command tags such as "DELETE 3"
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostgresFragmentStore(FragmentStore):
    """Fragment store backed by the ``fragments`` table."""

    def __init__(self, database: DatabaseService) -> None:
        self.database = database

    async def ensure_schema(self) -> None:
        """Create tables and indexes if missing."""
        try:
            async with self.database.acquire() as conn:
                await conn.execute(SCHEMA)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to create schema: {str(e)}") from e

    async def upsert(self, fragment: Fragment) -> Fragment:
        """
        Store a fragment, replacing any row with the same identity.

        Args:
            fragment: Fragment to store.

        Returns:
            Stored fragment with id and timestamps.
        """
        try:
            async with self.database.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "DELETE FROM fragments WHERE frag_id = $1", fragment.frag_id)
                    row = await conn.fetchrow(
                        """
                        INSERT INTO fragments (document_id, frag_id, content, is_code, vector_id)
                        VALUES ($1, $2, $3, $4, $5)
                        RETURNING id, document_id, frag_id, content, is_code, vector_id,
                                  created_at, updated_at
                        """,
                        fragment.document_id,
                        fragment.frag_id,
                        fragment.content,
                        fragment.is_code,
                        fragment.vector_id,
                    )
                    return Fragment(**dict(row))
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                f"Failed to store fragment {fragment.frag_id}: {str(e)}") from e

    async def list_vector_ids_for_document(self, document_id: int) -> Set[str]:
        """
        List vector ids belonging to a document.

        Args:
            document_id: Document ID.

        Returns:
            Set of non-empty vector ids.
        """
        try:
            async with self.database.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT vector_id FROM fragments WHERE document_id = $1",
                    document_id,
                )
                return {row["vector_id"] for row in rows if row["vector_id"]}
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to list fragments: {str(e)}") from e

    async def delete_for_document(self, document_id: int) -> int:
        try:
            async with self.database.acquire() as conn:
                status = await conn.execute(
                    "DELETE FROM fragments WHERE document_id = $1", document_id)
                return _deleted_count(status)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to delete fragments: {str(e)}") from e

    async def delete_all(self) -> int:
        try:
            async with self.database.acquire() as conn:
                status = await conn.execute("DELETE FROM fragments")
                return _deleted_count(status)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to purge fragments: {str(e)}") from e


class PostgresQARecordStore(QARecordStore):
    """QA audit store backed by the ``qa_records`` table."""

    def __init__(self, database: DatabaseService) -> None:
        self.database = database

    async def append(self, record: QARecord) -> QARecord:
        try:
            async with self.database.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO qa_records (question, answer, fragments)
                    VALUES ($1, $2, $3)
                    RETURNING id, created_at
                    """,
                    record.question,
                    record.answer,
                    json.dumps(record.fragments),
                )
                return record.model_copy(
                    update={"id": row["id"], "created_at": row["created_at"]})
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to store QA record: {str(e)}") from e
