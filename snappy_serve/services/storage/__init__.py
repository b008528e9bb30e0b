"""
Storage Factory

Usage:
    from snappy_serve.services.storage import open_store

    store = await open_store(settings)   # MemoryStore or FallbackStore(SqlStore)

Backend Switching:
    - STORAGE_BACKEND=memory → MemoryStore
    - STORAGE_BACKEND=sql → SqlStore wrapped in FallbackStore
    - STORAGE_REQUIRED=true → an unreachable database aborts startup
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from snappy_serve.core.config import Settings, StorageBackend
from snappy_serve.core.errors import StartupError
from snappy_serve.services.storage.base import BaseStore, OrderFilter
from snappy_serve.services.storage.fallback import FallbackStore
from snappy_serve.services.storage.memory import MemoryStore
from snappy_serve.services.storage.sql import SqlStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> BaseStore:
    """Create (but do not connect) the configured store."""
    if settings.storage_backend == StorageBackend.SQL:
        logger.info("Storage: Using SqlStore with in-memory fallback")
        return FallbackStore(SqlStore(
            settings.database_url,
            connect_timeout=settings.storage_connect_timeout,
            echo=settings.debug,
        ))
    logger.info("Storage: Using MemoryStore")
    return MemoryStore()


async def open_store(settings: Settings) -> BaseStore:
    """
    Build and connect the configured store.

    Raises:
        StartupError: The SQL store is required but did not connect in time
    """
    store = build_store(settings)
    try:
        await store.connect()
    except (asyncio.TimeoutError, SQLAlchemyError, OSError) as e:
        reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
        if settings.storage_required:
            logger.error(f"Storage did not connect within {settings.storage_connect_timeout}s: {reason}")
            raise StartupError(f"Storage unavailable at startup: {reason}") from e
        logger.warning(f"Storage connection failed ({reason}); running on in-memory store")
        await store.close()
        return MemoryStore()
    return store


__all__ = [
    "build_store",
    "open_store",
    "BaseStore",
    "OrderFilter",
    "MemoryStore",
    "SqlStore",
    "FallbackStore",
]
