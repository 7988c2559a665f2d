"""
Order storage layer.

The engine depends only on the OrderRepository / OrderStatusWriter
abstractions; DuckDB backs them locally and in tests.
"""

from functools import lru_cache

from orderwatch.config import get_settings
from orderwatch.connectors.change_feed import InMemoryChangeFeed

from .base import OrderRepository, OrderStatusWriter, RepositoryError
from .duckdb_storage import DuckDBOrderRepository


@lru_cache
def get_change_feed() -> InMemoryChangeFeed:
    """Process-wide change feed used by the application edge."""
    return InMemoryChangeFeed()


@lru_cache
def get_repository() -> DuckDBOrderRepository:
    """
    Get cached repository instance (singleton).

    Only the application edge (routers, app lifespan) uses this; engine
    components receive their repository through an EngineContext.

    Returns:
        DuckDBOrderRepository wired to the process change feed
    """
    settings = get_settings()
    return DuckDBOrderRepository(
        db_path=settings.db_path,
        change_feed=get_change_feed(),
        threads=settings.db_threads,
    )


__all__ = [
    "OrderRepository",
    "OrderStatusWriter",
    "RepositoryError",
    "DuckDBOrderRepository",
    "get_change_feed",
    "get_repository",
]
