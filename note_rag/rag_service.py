"""RAG Service: indexing, search and question answering over notes."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from note_rag.api.health import check_all_dependencies, check_readiness
from note_rag.core.dependencies import ServiceContainer
from note_rag.core.exceptions import DatabaseError, DocumentNotFoundError, InvalidInputError
from note_rag.models.response import (
    DeletionReport,
    IndexReport,
    PurgeReport,
    QARequest,
    QAResponse,
    SearchResponse,
)

logger = logging.getLogger(__name__)


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application around a service container.

    Args:
        services: Prebuilt container; one is created from the environment if omitted.

    Returns:
        Configured application.
    """
    services = services or ServiceContainer()
    logging.basicConfig(level=services.settings.log_level)
    retrieval = services.retrieval

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        await services.initialize()
        logger.info(f"{services.settings.service_name} started")
        yield
        await services.shutdown()
        logger.info(f"{services.settings.service_name} stopped")

    app = FastAPI(title="Note RAG Service", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:8080"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/rag/search", response_model=SearchResponse)
    async def search(
        q: str = Query(""),
        top_k: Optional[int] = Query(None, ge=1, le=100),
    ) -> SearchResponse:
        """
        Similarity search over note fragments.

        Args:
            q: Question text.
            top_k: Matches to request from the index.

        Returns:
            Fragments above the similarity threshold.
        """
        try:
            hits = await retrieval.search(q, top_k)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return SearchResponse(list=hits)

    @app.post("/api/rag/qa", response_model=QAResponse)
    async def qa(request: QARequest) -> QAResponse:
        """
        Answer a question from the user's notes.

        Args:
            request: Question request.

        Returns:
            Answer text and the fragments used.
        """
        try:
            result = await retrieval.answer(request.question)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return QAResponse(answer=result.answer, fragments=result.fragments)

    @app.post("/api/rag/index/{document_id}", response_model=IndexReport)
    async def index_document(document_id: int) -> IndexReport:
        """
        Reindex a document after it was created, updated or restored.

        Args:
            document_id: Document ID.

        Returns:
            Indexing report.
        """
        try:
            return await retrieval.index_document_by_id(document_id)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DatabaseError as e:
            logger.error(f"Failed to index document {document_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.delete("/api/rag/documents/{document_id}", response_model=DeletionReport)
    async def delete_document_vectors(document_id: int) -> DeletionReport:
        """
        Remove a document's fragments and vectors.

        Args:
            document_id: Document ID.

        Returns:
            Deletion report.
        """
        try:
            return await retrieval.delete_document_vectors(document_id)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except DatabaseError as e:
            logger.error(f"Failed to delete fragments of document {document_id}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/api/admin/purge", response_model=PurgeReport)
    async def purge() -> PurgeReport:
        """Delete every document, fragment and vector."""
        try:
            return await retrieval.purge_all_documents()
        except DatabaseError as e:
            logger.error(f"Purge failed: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/health")
    async def health() -> dict:
        """
        Health check endpoint with dependency verification.

        Returns:
            Health status with service dependencies.
        """
        result = await check_all_dependencies(services)
        return {"service": services.settings.service_name, **result}

    @app.get("/ready")
    async def readiness() -> dict:
        """
        Readiness check endpoint.

        Returns:
            Readiness status.
        """
        result = await check_readiness(services)
        return {"service": services.settings.service_name, **result}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
