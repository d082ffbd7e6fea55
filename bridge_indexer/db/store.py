"""
Entity Store Abstraction

This module defines the EntityStore interface and provides two implementations:
- InMemoryEntityStore: For development and testing
- PostgresEntityStore: For production with durability

The store exposes one Repository per entity collection:

    store.messages.load(message_id)
    store.messages.save(message)

Repositories are the only way the engine touches state. Each load/save is
individually atomic; there is no cross-collection transaction. Code that
needs all-or-nothing behaviour across several writes (validator list
reconciliation) must decide everything before the first save.

Every repository also offers the read-side queries the API and sync
tooling need: filter by status, page by origin block, max block number.
"""

import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, Generator, Generic, Optional, TypeVar

from psycopg2 import sql
from psycopg2.extras import Json

from ..schemas import (
    ENTITY_TYPES,
    Account,
    AccountMessage,
    BridgeMessage,
    CandidateValidator,
    CandidateValidatorMessage,
    CandidatesValidatorsProposal,
    Collection,
    Entity,
    Limit,
    LimitMessage,
    LimitProposal,
    Message,
    ValidatorsListMessage,
)


E = TypeVar("E", bound=Entity)

DEFAULT_PAGE_SIZE = 100


# ============================================================
# EXCEPTIONS
# ============================================================

class EntityStoreError(Exception):
    """Base exception for entity store errors."""
    pass


class StoreConnectionError(EntityStoreError):
    """Raised when the backing database cannot be reached."""
    pass


# ============================================================
# ABSTRACT BASE CLASSES
# ============================================================

class Repository(ABC, Generic[E]):
    """
    Load/save access to one entity collection.

    save() is an upsert keyed by entity.id. Implementations must not let
    callers mutate stored state through returned objects.
    """

    def __init__(self, entity_type: type[E]):
        self.entity_type = entity_type
        self.collection: Collection = entity_type.collection

    def _check_type(self, entity: Entity) -> None:
        if not isinstance(entity, self.entity_type):
            raise EntityStoreError(
                f"Cannot save {type(entity).__name__} into {self.collection.value}; "
                f"expected {self.entity_type.__name__}"
            )

    @abstractmethod
    def load(self, entity_id: str) -> Optional[E]:
        """Return the entity with this id, or None."""
        pass

    @abstractmethod
    def save(self, entity: E) -> None:
        """Create or replace the entity with entity.id."""
        pass

    @abstractmethod
    def list(
        self,
        status: Optional[str] = None,
        since_block: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[E]:
        """
        List entities ordered by (block_number, id).

        Args:
            status: Only entities with this status (collections with a status)
            since_block: Only entities with block_number >= since_block
            limit: Maximum number of results
            offset: Pagination offset
        """
        pass

    @abstractmethod
    def count(self, status: Optional[str] = None) -> int:
        pass

    @abstractmethod
    def max_block_number(self) -> Optional[int]:
        """Highest origin block in the collection, None if empty."""
        pass


class EntityStore(ABC):
    """
    Abstract base class for entity storage.

    Holds one repository per collection in ENTITY_TYPES.
    """

    def __init__(self):
        self._repositories: dict[Collection, Repository] = {
            collection: self._make_repository(entity_type)
            for collection, entity_type in ENTITY_TYPES.items()
        }

    @abstractmethod
    def _make_repository(self, entity_type: type[E]) -> Repository[E]:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entity from every collection."""
        pass

    def close(self) -> None:
        """Release resources held by the store."""
        pass

    def repository(self, collection: Collection) -> Repository:
        return self._repositories[Collection(collection)]

    def sync_status(self) -> dict[str, Optional[int]]:
        """Max origin block number per collection."""
        return {
            collection.value: repo.max_block_number()
            for collection, repo in self._repositories.items()
        }

    @property
    def messages(self) -> Repository[Message]:
        return self._repositories[Collection.MESSAGES]

    @property
    def bridge_messages(self) -> Repository[BridgeMessage]:
        return self._repositories[Collection.BRIDGE_MESSAGES]

    @property
    def account_messages(self) -> Repository[AccountMessage]:
        return self._repositories[Collection.ACCOUNT_MESSAGES]

    @property
    def accounts(self) -> Repository[Account]:
        return self._repositories[Collection.ACCOUNTS]

    @property
    def limit_proposals(self) -> Repository[LimitProposal]:
        return self._repositories[Collection.LIMIT_PROPOSALS]

    @property
    def limit_messages(self) -> Repository[LimitMessage]:
        return self._repositories[Collection.LIMIT_MESSAGES]

    @property
    def limits(self) -> Repository[Limit]:
        return self._repositories[Collection.LIMITS]

    @property
    def candidate_validators(self) -> Repository[CandidateValidator]:
        return self._repositories[Collection.CANDIDATE_VALIDATORS]

    @property
    def candidate_validator_messages(self) -> Repository[CandidateValidatorMessage]:
        return self._repositories[Collection.CANDIDATE_VALIDATOR_MESSAGES]

    @property
    def candidates_validators_proposals(self) -> Repository[CandidatesValidatorsProposal]:
        return self._repositories[Collection.CANDIDATES_VALIDATORS_PROPOSALS]

    @property
    def validators_list_messages(self) -> Repository[ValidatorsListMessage]:
        return self._repositories[Collection.VALIDATORS_LIST_MESSAGES]


# ============================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================

class InMemoryRepository(Repository[E]):
    """Dict-backed repository. Stores and returns deep copies."""

    def __init__(self, entity_type: type[E]):
        super().__init__(entity_type)
        self._rows: dict[str, E] = {}

    def load(self, entity_id: str) -> Optional[E]:
        entity = self._rows.get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    def save(self, entity: E) -> None:
        self._check_type(entity)
        self._rows[entity.id] = entity.model_copy(deep=True)

    def list(
        self,
        status: Optional[str] = None,
        since_block: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[E]:
        rows = list(self._rows.values())
        if status is not None:
            rows = [r for r in rows if r.status_value == status]
        if since_block is not None:
            rows = [r for r in rows if r.block_number >= since_block]
        rows.sort(key=lambda r: (r.block_number, r.id))
        return [r.model_copy(deep=True) for r in rows[offset:offset + limit]]

    def count(self, status: Optional[str] = None) -> int:
        if status is None:
            return len(self._rows)
        return sum(1 for r in self._rows.values() if r.status_value == status)

    def max_block_number(self) -> Optional[int]:
        if not self._rows:
            return None
        return max(r.block_number for r in self._rows.values())

    def clear(self) -> None:
        self._rows.clear()


class InMemoryEntityStore(EntityStore):
    """
    In-memory implementation of EntityStore.

    Suitable for:
    - Development
    - Testing (this is the fake the engine tests run against)
    - One-shot replays that only print a summary

    NOT suitable for:
    - Production (no durability)
    """

    def _make_repository(self, entity_type: type[E]) -> Repository[E]:
        return InMemoryRepository(entity_type)

    def clear(self) -> None:
        for repo in self._repositories.values():
            repo.clear()


# ============================================================
# POSTGRESQL IMPLEMENTATION
# ============================================================

SCHEMA_TEMPLATE = """
    CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        block_number NUMERIC(78, 0) NOT NULL,
        status TEXT,
        body JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE INDEX IF NOT EXISTS {block_index} ON {table} (block_number, id);
    CREATE INDEX IF NOT EXISTS {status_index} ON {table} (status);
"""


class PostgresRepository(Repository[E]):
    """
    One table per collection:

        id            TEXT PRIMARY KEY
        block_number  NUMERIC(78, 0)   -- fits any uint256
        status        TEXT             -- NULL for collections without status
        body          JSONB            -- the full entity

    Integers go through JSON unchanged, so amounts and limits stay exact.
    """

    def __init__(
        self,
        entity_type: type[E],
        connection_scope: Callable[[], Any],
    ):
        super().__init__(entity_type)
        self._connection_scope = connection_scope
        self._table = sql.Identifier(self.collection.value)

    def load(self, entity_id: str) -> Optional[E]:
        query = sql.SQL("SELECT body FROM {table} WHERE id = %s").format(table=self._table)
        with self._connection_scope() as cursor:
            cursor.execute(query, (entity_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_entity(row[0])

    def save(self, entity: E) -> None:
        self._check_type(entity)
        query = sql.SQL("""
            INSERT INTO {table} (id, block_number, status, body, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (id) DO UPDATE SET
                block_number = EXCLUDED.block_number,
                status = EXCLUDED.status,
                body = EXCLUDED.body,
                updated_at = NOW()
        """).format(table=self._table)
        with self._connection_scope() as cursor:
            cursor.execute(query, (
                entity.id,
                entity.block_number,
                entity.status_value,
                Json(entity.model_dump(mode="json")),
            ))

    def list(
        self,
        status: Optional[str] = None,
        since_block: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[E]:
        clauses = []
        params: list[Any] = []
        if status is not None:
            clauses.append(sql.SQL("status = %s"))
            params.append(status)
        if since_block is not None:
            clauses.append(sql.SQL("block_number >= %s"))
            params.append(since_block)

        where = sql.SQL("")
        if clauses:
            where = sql.SQL("WHERE ") + sql.SQL(" AND ").join(clauses)

        query = sql.SQL("""
            SELECT body FROM {table}
            {where}
            ORDER BY block_number, id
            LIMIT %s OFFSET %s
        """).format(table=self._table, where=where)
        params.extend([limit, offset])

        with self._connection_scope() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [self._row_to_entity(row[0]) for row in rows]

    def count(self, status: Optional[str] = None) -> int:
        with self._connection_scope() as cursor:
            if status is None:
                cursor.execute(
                    sql.SQL("SELECT COUNT(*) FROM {table}").format(table=self._table)
                )
            else:
                cursor.execute(
                    sql.SQL("SELECT COUNT(*) FROM {table} WHERE status = %s").format(
                        table=self._table
                    ),
                    (status,),
                )
            return cursor.fetchone()[0]

    def max_block_number(self) -> Optional[int]:
        with self._connection_scope() as cursor:
            cursor.execute(
                sql.SQL("SELECT MAX(block_number) FROM {table}").format(table=self._table)
            )
            value = cursor.fetchone()[0]
        if value is None:
            return None
        return int(value) if isinstance(value, Decimal) else value

    def _row_to_entity(self, body: Any) -> E:
        # psycopg2 decodes JSONB to dict; plain JSON columns come back as str
        if isinstance(body, str):
            body = json.loads(body)
        return self.entity_type.model_validate(body)


class PostgresEntityStore(EntityStore):
    """
    PostgreSQL implementation of EntityStore.

    Each repository call opens a connection from the factory, runs in its
    own transaction, and closes it. Statements are bounded by a timeout so
    a stuck database surfaces as EntityStoreError instead of a hang.

    Requirements:
    - PostgreSQL 12+
    - Tables created with ensure_schema() (or `python -m tools.manage init-schema`)
    - psycopg2 for connection

    Usage:
        store = PostgresEntityStore(lambda: psycopg2.connect(dsn))
        store.ensure_schema()
        store.messages.save(message)
    """

    STATEMENT_TIMEOUT_MS = 10000  # 10 seconds

    def __init__(
        self,
        connection_factory: Callable[[], Any],
        statement_timeout_ms: int = STATEMENT_TIMEOUT_MS,
    ):
        """
        Initialize PostgreSQL entity store.

        Args:
            connection_factory: Callable that returns a psycopg2 connection.
            statement_timeout_ms: Max statement execution time (ms). Default 10000.
        """
        self._connection_factory = connection_factory
        self._statement_timeout_ms = statement_timeout_ms
        super().__init__()

    def _make_repository(self, entity_type: type[E]) -> Repository[E]:
        return PostgresRepository(entity_type, self._cursor)

    @contextmanager
    def _cursor(self) -> Generator[Any, None, None]:
        """
        Connection + transaction scope for one repository call.

        Commits on success, rolls back on error, always closes.
        """
        try:
            conn = self._connection_factory()
        except Exception as e:
            raise StoreConnectionError(f"Could not connect to PostgreSQL: {e}") from e

        conn.autocommit = False
        cursor = conn.cursor()
        try:
            cursor.execute(
                f"SET LOCAL statement_timeout = '{int(self._statement_timeout_ms)}ms'"
            )
            yield cursor
            conn.commit()
        except EntityStoreError:
            conn.rollback()
            raise
        except Exception as e:
            conn.rollback()
            raise EntityStoreError(f"Entity store operation failed: {e}") from e
        finally:
            try:
                cursor.close()
            finally:
                conn.close()

    def ensure_schema(self) -> None:
        """Create collection tables and indexes if they don't exist."""
        with self._cursor() as cursor:
            for collection in ENTITY_TYPES:
                name = collection.value
                cursor.execute(sql.SQL(SCHEMA_TEMPLATE).format(
                    table=sql.Identifier(name),
                    block_index=sql.Identifier(f"{name}_block_idx"),
                    status_index=sql.Identifier(f"{name}_status_idx"),
                ))

    def clear(self) -> None:
        """Truncate every collection table (rebuilds and tests only)."""
        tables = sql.SQL(", ").join(
            sql.Identifier(collection.value) for collection in ENTITY_TYPES
        )
        with self._cursor() as cursor:
            cursor.execute(sql.SQL("TRUNCATE {tables}").format(tables=tables))
