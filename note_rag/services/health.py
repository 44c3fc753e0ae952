"""Health check service for dependency verification."""

import time
from typing import Any, Dict

from note_rag.services.cache import CacheService
from note_rag.services.database import DatabaseService
from note_rag.services.vector_db import VectorDBService


async def check_vector_index(vector_db: VectorDBService) -> Dict[str, Any]:
    """
    Check vector index connectivity.

    Args:
        vector_db: VectorDBService instance.

    Returns:
        Health status dictionary.
    """
    if not vector_db.configured:
        return {"status": "not_configured"}
    try:
        start_time = time.time()
        stats = await vector_db.describe()
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "vectors": stats.get("totalVectorCount"),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "latency_ms": 0,
        }


async def check_redis(cache_service: CacheService) -> Dict[str, Any]:
    """
    Check Redis connectivity and health.

    Args:
        cache_service: CacheService instance.

    Returns:
        Health status dictionary.
    """
    if not cache_service.enabled:
        return {"status": "not_configured"}
    try:
        start_time = time.time()
        await cache_service.ping()
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "latency_ms": 0,
        }


async def check_postgres(database: DatabaseService) -> Dict[str, Any]:
    """
    Check PostgreSQL connectivity.

    Args:
        database: DatabaseService instance.

    Returns:
        Health status dictionary.
    """
    try:
        start_time = time.time()
        async with database.acquire() as conn:
            await conn.fetchval("SELECT 1")
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "latency_ms": 0,
        }
