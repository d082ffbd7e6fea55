"""
Storage Layer for the Bridge Indexer

Provides:
- Repository / EntityStore abstraction (InMemory for dev, Postgres for prod)
- Environment-based configuration and driver selection
"""

from .store import (
    EntityStore,
    EntityStoreError,
    InMemoryEntityStore,
    PostgresEntityStore,
    Repository,
    StoreConnectionError,
)
from .config import (
    DatabaseConfig,
    StoreDriver,
    get_database_config,
    get_database_url,
    get_store_driver,
)

__all__ = [
    "EntityStore",
    "EntityStoreError",
    "InMemoryEntityStore",
    "PostgresEntityStore",
    "Repository",
    "StoreConnectionError",
    "DatabaseConfig",
    "StoreDriver",
    "get_database_config",
    "get_database_url",
    "get_store_driver",
]
