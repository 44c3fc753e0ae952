"""Health check utilities."""

from typing import Any, Dict

from note_rag.core.dependencies import ServiceContainer
from note_rag.services.health import check_postgres, check_redis, check_vector_index

# Optional dependencies degrade instead of failing, so only an explicit
# "unhealthy" counts against the service.
FAILED = "unhealthy"


async def check_all_dependencies(services: ServiceContainer) -> Dict[str, Any]:
    """
    Check all service dependencies.

    Args:
        services: Service container.

    Returns:
        Dictionary with overall status and individual service statuses.
    """
    statuses = {
        "postgres": await check_postgres(services.database),
        "redis": await check_redis(services.cache_service),
        "vector_index": await check_vector_index(services.vector_db),
        "embedding": {"status": "remote" if services.embedding_service.configured else "fallback"},
        "llm": {"status": "remote" if services.llm_service.configured else "fallback"},
    }
    overall_status = "healthy"
    if any(status.get("status") == FAILED for status in statuses.values()):
        overall_status = "unhealthy"
    return {"status": overall_status, "services": statuses}


async def check_readiness(services: ServiceContainer) -> Dict[str, Any]:
    """
    Check service readiness.

    Only the relational store is required; everything else has a fallback.

    Args:
        services: Service container.

    Returns:
        Readiness status dictionary.
    """
    postgres_status = await check_postgres(services.database)
    ready = postgres_status.get("status") == "healthy"
    return {"ready": ready, "postgres": ready}
