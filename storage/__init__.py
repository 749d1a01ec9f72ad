"""
Storage package for database, repositories and Redis snapshot cache.
"""

from .connection import (
    DatabaseManager,
    db_manager,
    get_db_session,
    init_db,
    close_db
)
from .redis_client import (
    RedisManager,
    SnapshotCache,
    redis_manager,
    snapshot_cache,
    init_redis,
    close_redis
)
from .repositories import (
    AppConfigRepository,
    PriceHistoryRepository,
    ProductRepository
)

__all__ = [
    "DatabaseManager",
    "db_manager",
    "get_db_session",
    "init_db",
    "close_db",
    "RedisManager",
    "SnapshotCache",
    "redis_manager",
    "snapshot_cache",
    "init_redis",
    "close_redis",
    "AppConfigRepository",
    "PriceHistoryRepository",
    "ProductRepository"
]
