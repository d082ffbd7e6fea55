"""
Store and Engine Wiring

Builds the EntityStore and ReconciliationEngine the API and CLI share.
Mode is determined by environment variables:
- ENTITYSTORE_DRIVER: Explicit driver selection (memory, psycopg2)
- DATABASE_URL or DATABASE_HOST: Database connection (auto-selects psycopg2)
- Neither set: Use in-memory (default for development)

A configured database that cannot be reached is an error. There is no
silent fallback to memory: the indexer would otherwise report an empty
bridge as if it were real state.
"""

from threading import Lock
from typing import Optional

import psycopg2

from .core import ReconciliationEngine
from .db.config import DatabaseConfig, StoreDriver, get_database_config, get_store_driver
from .db.store import EntityStore, InMemoryEntityStore, PostgresEntityStore, StoreConnectionError
from .observability import get_logger, get_metrics


logger = get_logger(__name__)

_lock = Lock()
_entity_store: Optional[EntityStore] = None
_engine: Optional[ReconciliationEngine] = None


def create_entity_store() -> EntityStore:
    """
    Create the appropriate EntityStore based on configuration.

    Returns:
        InMemoryEntityStore for development/testing
        PostgresEntityStore when a database is configured

    Raises:
        StoreConnectionError: If PostgreSQL is selected but unreachable
    """
    driver = get_store_driver()

    if driver == StoreDriver.MEMORY:
        logger.info("Using in-memory entity store (no persistence)")
        return InMemoryEntityStore()

    config = get_database_config()
    if config is None:
        logger.warning(
            "psycopg2 driver selected without DATABASE_URL/DATABASE_HOST, using defaults"
        )
        config = DatabaseConfig.from_env()

    return create_postgres_store(config)


def create_postgres_store(config: DatabaseConfig, ensure_schema: bool = True) -> PostgresEntityStore:
    """Create a PostgresEntityStore and check connectivity."""

    def connection_factory():
        return psycopg2.connect(config.to_dsn())

    try:
        test_conn = connection_factory()
        test_conn.close()
    except psycopg2.Error as e:
        raise StoreConnectionError(
            f"Could not connect to PostgreSQL at {config.to_url(include_password=False)}: {e}"
        ) from e

    store = PostgresEntityStore(
        connection_factory,
        statement_timeout_ms=config.statement_timeout_ms,
    )
    if ensure_schema:
        store.ensure_schema()

    logger.info(
        "PostgreSQL entity store ready",
        host=config.host,
        port=config.port,
        database=config.database,
    )
    return store


def get_entity_store() -> EntityStore:
    """Get the shared entity store, creating it on first use."""
    global _entity_store
    with _lock:
        if _entity_store is None:
            _entity_store = create_entity_store()
        return _entity_store


def get_engine() -> ReconciliationEngine:
    """Get the shared engine bound to the shared store."""
    global _engine
    store = get_entity_store()
    with _lock:
        if _engine is None:
            _engine = ReconciliationEngine(store, metrics=get_metrics())
        return _engine


def reset() -> None:
    """Close and forget the shared store and engine."""
    global _entity_store, _engine
    with _lock:
        if _entity_store is not None:
            _entity_store.close()
        _entity_store = None
        _engine = None
