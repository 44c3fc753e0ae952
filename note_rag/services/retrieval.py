"""Retrieval orchestration: indexing, deletion, search and answers."""

import asyncio
import hashlib
import logging
import time
from typing import List, Optional

from note_rag.core.config import Settings
from note_rag.core.exceptions import (
    CacheError,
    DatabaseError,
    DocumentNotFoundError,
    EmbeddingError,
    InvalidInputError,
    LLMError,
    VectorIndexError,
)
from note_rag.models.document import Document, Fragment, FragmentCandidate, QARecord
from note_rag.models.response import (
    Answer,
    DeletionReport,
    FragmentResult,
    IndexReport,
    PurgeReport,
    SearchHit,
)
from note_rag.models.vector import FragmentMetadata, VectorMatch
from note_rag.monitoring.metrics import (
    answer_requests_total,
    degraded_responses_total,
    documents_indexed_total,
    fragments_skipped_total,
    fragments_stored_total,
    index_duration_seconds,
    query_latency_seconds,
    search_requests_total,
    vectors_published_total,
)
from note_rag.services.cache import CacheService
from note_rag.services.chunking import ChunkingService, fragment_id
from note_rag.services.database import DocumentStore
from note_rag.services.embedding import EmbeddingService
from note_rag.services.fragment_store import FragmentStore, QARecordStore
from note_rag.services.llm import LLMService
from note_rag.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class RetrievalService:
    """Keeps fragments, vectors and documents in step and answers questions."""

    def __init__(
        self,
        settings: Settings,
        chunking_service: ChunkingService,
        embedding_service: EmbeddingService,
        vector_db: VectorDBService,
        fragment_store: FragmentStore,
        llm_service: LLMService,
        cache_service: Optional[CacheService] = None,
        qa_store: Optional[QARecordStore] = None,
        document_store: Optional[DocumentStore] = None,
    ) -> None:
        """
        Initialize the retrieval service.

        Args:
            settings: Application settings.
            chunking_service: Fragmenter.
            embedding_service: Embedding provider.
            vector_db: Vector index client.
            fragment_store: Fragment persistence.
            llm_service: Text completion client.
            cache_service: Optional question embedding cache.
            qa_store: Optional QA audit store.
            document_store: Document store, needed for reindex by id and purge.
        """
        self.chunking_service = chunking_service
        self.embedding_service = embedding_service
        self.vector_db = vector_db
        self.fragment_store = fragment_store
        self.llm_service = llm_service
        self.cache_service = cache_service
        self.qa_store = qa_store
        self.document_store = document_store

        self.index_name = settings.pinecone_index
        self.similarity_threshold = settings.similarity_threshold
        self.top_k = settings.top_k
        self.answer_context_k = settings.answer_context_k
        self.index_concurrency = settings.index_concurrency
        self.purge_page_size = settings.purge_page_size

    # Indexing

    async def index_document(self, document: Document) -> IndexReport:
        """
        Split, persist, embed and publish every fragment of a document.

        Fragment rows are written concurrently; a failed write is reported
        and skipped. When embedding fails the rows stay in place and nothing
        is published until the document is indexed again.

        Args:
            document: Document to index.

        Returns:
            Per-fragment batch report.

        Raises:
            InvalidInputError: If the document id is not positive.
        """
        if document.id <= 0:
            raise InvalidInputError(f"Invalid document id: {document.id}")

        start_time = time.time()
        documents_indexed_total.inc()
        report = IndexReport(document_id=document.id)

        candidates = {}
        for candidate in self.chunking_service.split(document.content):
            candidates.setdefault(fragment_id(candidate.content), candidate)

        if not candidates:
            logger.info(f"Document {document.id} has no content to index")
            return report

        semaphore = asyncio.Semaphore(self.index_concurrency)

        async def store(frag_id: str, candidate: FragmentCandidate) -> FragmentResult:
            fragment = Fragment(
                document_id=document.id,
                frag_id=frag_id,
                content=candidate.content,
                is_code=candidate.is_code,
                vector_id=frag_id,
            )
            async with semaphore:
                try:
                    await self.fragment_store.upsert(fragment)
                except DatabaseError as e:
                    logger.warning(f"Skipping fragment {frag_id} of document {document.id}: {str(e)}")
                    return FragmentResult(
                        frag_id=frag_id, is_code=candidate.is_code, status="skipped", reason=str(e))
            return FragmentResult(frag_id=frag_id, is_code=candidate.is_code, status="stored")

        report.results = list(
            await asyncio.gather(*(store(fid, c) for fid, c in candidates.items())))
        fragments_stored_total.inc(len(report.stored))
        fragments_skipped_total.inc(len(report.skipped))

        stored = [(fid, candidates[fid].content) for fid in report.stored]
        if not stored:
            logger.warning(f"No fragments of document {document.id} could be stored")
            return report

        try:
            embeddings = await self.embedding_service.generate_embeddings(
                [content for _, content in stored])
        except EmbeddingError as e:
            logger.warning(f"Embedding failed for document {document.id}, vectors not published: {str(e)}")
            degraded_responses_total.labels(reason="embedding").inc()
            report.embedding_error = str(e)
            return report

        vectors = {}
        metadata = {}
        for (frag_id, content), vector in zip(stored, embeddings):
            vectors[frag_id] = vector
            metadata[frag_id] = FragmentMetadata(
                document_id=document.id,
                title=document.title,
                frag_id=frag_id,
                content=content,
            )
        report.vectors_missing = max(len(stored) - len(vectors), 0)

        try:
            await self.vector_db.upsert(self.index_name, vectors, metadata)
            if self.vector_db.configured:
                report.vectors_published = len(vectors)
                vectors_published_total.inc(len(vectors))
        except VectorIndexError as e:
            logger.warning(f"Vector upsert failed for document {document.id}: {str(e)}")
            degraded_responses_total.labels(reason="vector_index").inc()
            report.vector_error = str(e)

        processing_time = time.time() - start_time
        index_duration_seconds.observe(processing_time)
        logger.info(
            f"Indexed document {document.id}: {len(report.stored)} stored, "
            f"{len(report.skipped)} skipped, {report.vectors_published} vectors "
            f"in {processing_time:.2f}s"
        )
        return report

    async def index_document_by_id(self, document_id: int) -> IndexReport:
        """
        Reindex a document fetched from the document store.

        Raises:
            DocumentNotFoundError: If the document is missing or deleted.
        """
        if document_id <= 0:
            raise InvalidInputError(f"Invalid document id: {document_id}")
        document = await self._require_document_store().get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return await self.index_document(document)

    # Deletion

    async def delete_document_vectors(self, document_id: int) -> DeletionReport:
        """
        Remove a document's vectors and fragment rows.

        The index deletion and the row deletion are independent: an
        unreachable index is reported but the rows are still removed.

        Args:
            document_id: Document ID.

        Returns:
            Deletion report.

        Raises:
            DatabaseError: If the fragment rows cannot be listed or deleted.
        """
        if document_id <= 0:
            raise InvalidInputError(f"Invalid document id: {document_id}")

        report = DeletionReport(document_id=document_id)
        report.vector_ids = sorted(
            await self.fragment_store.list_vector_ids_for_document(document_id))

        if report.vector_ids:
            try:
                await self.vector_db.delete_by_ids(report.vector_ids)
                report.vectors_deleted = self.vector_db.configured
            except VectorIndexError as e:
                logger.warning(f"Failed to delete vectors of document {document_id}: {str(e)}")
                report.vector_error = str(e)

        report.fragments_deleted = await self.fragment_store.delete_for_document(document_id)
        logger.info(
            f"Removed {report.fragments_deleted} fragments of document {document_id}")
        return report

    async def purge_all_fragments(self) -> DeletionReport:
        """
        Remove every vector and every fragment row.

        Raises:
            DatabaseError: If the fragment rows cannot be deleted.
        """
        report = DeletionReport()
        try:
            await self.vector_db.delete_all()
            report.vectors_deleted = self.vector_db.configured
        except VectorIndexError as e:
            logger.warning(f"Failed to purge vector index: {str(e)}")
            report.vector_error = str(e)

        report.fragments_deleted = await self.fragment_store.delete_all()
        logger.info(f"Purged {report.fragments_deleted} fragments")
        return report

    async def purge_all_documents(self) -> PurgeReport:
        """
        Hard-delete every document, then every fragment and vector.

        Documents are walked page by page. Failed deletions stay in the
        store and are skipped over; a page that cannot be listed ends the
        walk without cancelling the fragment purge.

        Returns:
            Purge report.
        """
        store = self._require_document_store()
        report = PurgeReport()
        page = 1
        while True:
            try:
                documents, _ = await store.list_documents(page, self.purge_page_size)
            except DatabaseError as e:
                logger.error(f"Failed to list documents page {page}: {str(e)}")
                report.pages_failed += 1
                break
            if not documents:
                break

            deleted = 0
            for document in documents:
                if document.id in report.documents_failed:
                    continue
                try:
                    if await store.hard_delete_document(document.id):
                        deleted += 1
                except DatabaseError as e:
                    logger.warning(f"Failed to delete document {document.id}: {str(e)}")
                    report.documents_failed.append(document.id)
            report.documents_deleted += deleted

            # Deleted rows shift later documents forward; only step past a
            # page when nothing on it could be removed.
            if deleted == 0:
                page += 1

        report.fragments = await self.purge_all_fragments()
        return report

    # Queries

    async def search(self, question: str, top_k: Optional[int] = None) -> List[SearchHit]:
        """
        Find fragments similar to a question.

        Args:
            question: Free-text question.
            top_k: Matches to request from the index, defaults to settings.

        Returns:
            Hits scoring at or above the similarity threshold, in index
            order. Empty when nothing qualifies or a dependency is down.

        Raises:
            InvalidInputError: If the question is blank or top_k < 1.
        """
        question = self._validate_question(question)
        top_k = self.top_k if top_k is None else top_k
        if top_k < 1:
            raise InvalidInputError("top_k must be at least 1")

        start_time = time.time()
        search_requests_total.inc()
        matches = await self._retrieve(question, top_k)

        hits = [
            SearchHit(
                document_id=match.metadata.document_id,
                title=match.metadata.title or "",
                frag_id=match.metadata.frag_id,
                score=match.score,
                link=f"/?id={match.metadata.document_id}",
            )
            for match in matches
            if match.score >= self.similarity_threshold
        ]
        query_latency_seconds.observe(time.time() - start_time)
        return hits

    async def answer(self, question: str) -> Answer:
        """
        Answer a question from the closest fragments.

        The top matches become context regardless of score. Without a
        completion backend, or when it fails, the answer is the context
        snippets joined by blank lines.

        Args:
            question: Free-text question.

        Returns:
            Answer with the fragment ids used as evidence.

        Raises:
            InvalidInputError: If the question is blank.
        """
        question = self._validate_question(question)
        start_time = time.time()
        answer_requests_total.inc()

        matches = await self._retrieve(question, self.answer_context_k)
        contexts = []
        fragments = []
        for match in matches:
            if match.metadata.content is not None:
                contexts.append(match.metadata.content)
            elif match.metadata.title is not None:
                contexts.append(match.metadata.title)
            else:
                continue
            fragments.append(match.metadata.frag_id)

        result = Answer(
            answer="\n\n".join(contexts), fragments=fragments, contexts=contexts, degraded=True)
        if self.llm_service.configured:
            try:
                result.answer = await self.llm_service.complete(question, contexts)
                result.degraded = False
            except LLMError as e:
                logger.warning(f"Answer synthesis failed, returning raw context: {str(e)}")
                degraded_responses_total.labels(reason="llm").inc()

        if self.qa_store is not None:
            try:
                await self.qa_store.append(
                    QARecord(question=question, answer=result.answer, fragments=fragments))
            except DatabaseError as e:
                logger.warning(f"Failed to record QA: {str(e)}")

        query_latency_seconds.observe(time.time() - start_time)
        return result

    async def _retrieve(self, question: str, top_k: int) -> List[VectorMatch]:
        try:
            vector = await self._embed_question(question)
        except EmbeddingError as e:
            logger.warning(f"Question embedding failed: {str(e)}")
            degraded_responses_total.labels(reason="embedding").inc()
            return []

        try:
            return await self.vector_db.query(vector, top_k)
        except VectorIndexError as e:
            logger.warning(f"Vector query failed: {str(e)}")
            degraded_responses_total.labels(reason="vector_index").inc()
            return []

    async def _embed_question(self, question: str) -> List[float]:
        # Local fallback vectors are cheaper to recompute than to fetch.
        if self.cache_service is None or not self.embedding_service.configured:
            return await self.embedding_service.generate_embedding(question)

        digest = hashlib.sha1(question.encode("utf-8")).hexdigest()
        key = f"embedding:{self.embedding_service.cache_namespace}:{digest}"
        cached = await self.cache_service.get_vector(key)
        if cached:
            return cached

        vector = await self.embedding_service.generate_embedding(question)
        try:
            await self.cache_service.set_vector(key, vector)
        except CacheError as e:
            logger.warning(str(e))
        return vector

    @staticmethod
    def _validate_question(question: Optional[str]) -> str:
        if question is None or not question.strip():
            raise InvalidInputError("Question must not be empty")
        return question

    def _require_document_store(self) -> DocumentStore:
        if self.document_store is None:
            raise RuntimeError("Document store not configured")
        return self.document_store
