"""
Lifely — Entity Store.

One generic, versioned key-value engine backing every collection (chats,
journal, habits, alarms, settings). Each collection is declared once by a
CollectionSchema; the engine stores records as JSON in one SQLite table per
collection, plus an optional sort column for the secondary index.

SQLite is synchronous, so every operation runs in a worker thread via
asyncio.to_thread. Operations are serialized through a single FIFO lock:
each one is a single transaction, so a record is never observed
half-written, and operations on the same key complete in submission order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

# A migration step rewrites one stored record (as a dict) to the next version.
MigrationStep = Callable[[dict], dict]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """Base class for Entity Store failures."""


class StorageUnavailable(StorageError):
    """The store cannot be opened, or is not open."""


class StorageIOError(StorageError):
    """A read or write failed after the store was opened."""


class DuplicateKeyError(StorageError):
    """add() was called with a key that already exists."""


# ---------------------------------------------------------------------------
# Schema descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CollectionSchema:
    """Declares one collection: its record model, key and optional index.

    `migrations` maps a target version to the step that upgrades a record
    from version - 1. Steps must cover every version above 1 up to `version`.
    """

    name: str
    model: type[BaseModel]
    key_field: str = "id"
    index_field: str | None = None
    version: int = 1
    migrations: dict[int, MigrationStep] = field(default_factory=dict)

    @property
    def table(self) -> str:
        return f"coll_{self.name}"

    def key_of(self, record: BaseModel) -> str:
        return str(getattr(record, self.key_field))

    def sort_value(self, record: BaseModel) -> str | None:
        if self.index_field is None:
            return None
        return _sortable(getattr(record, self.index_field))


def _sortable(value: Any) -> str | None:
    """Render an index value so that SQLite text ordering matches value ordering."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return str(value)


# ---------------------------------------------------------------------------
# EntityStore
# ---------------------------------------------------------------------------


class EntityStore:
    """SQLite-backed storage for every Lifely collection.

    Construct once at process start, `await open()`, pass to the services,
    and `await close()` on shutdown. Never re-opened implicitly.
    """

    def __init__(
        self,
        db_path: str | None = None,
        schemas: Iterable[CollectionSchema] | None = None,
    ) -> None:
        if db_path is None:
            from lifely.config import settings
            db_path = settings.DATABASE_PATH
        if schemas is None:
            from lifely.data.schema import COLLECTIONS
            schemas = COLLECTIONS

        self._db_path = db_path
        self._schemas: dict[str, CollectionSchema] = {s.name: s for s in schemas}
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def collections(self) -> list[str]:
        return list(self._schemas)

    def schema(self, collection: str) -> CollectionSchema:
        try:
            return self._schemas[collection]
        except KeyError:
            raise KeyError(f"Unknown collection: {collection!r}") from None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> EntityStore:
        """Open the database and bring every collection up to date. Idempotent."""
        async with self._lock:
            if self._conn is not None:
                return self
            try:
                conn = await asyncio.to_thread(self._connect)
            except (OSError, sqlite3.Error) as exc:
                logger.error("Cannot open store at %s: %s", self._db_path, exc)
                raise StorageUnavailable(f"Cannot open store at {self._db_path}: {exc}") from exc
            try:
                await asyncio.to_thread(self._init_db, conn)
            except (sqlite3.Error, PydanticValidationError, ValueError) as exc:
                conn.close()
                logger.error("Store initialization failed at %s: %s", self._db_path, exc)
                raise StorageUnavailable(f"Store initialization failed: {exc}") from exc
            self._conn = conn
        logger.info("Entity store opened at %s (%d collections)", self._db_path, len(self._schemas))
        return self

    async def close(self) -> None:
        async with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)
        logger.info("Entity store closed")

    async def __aenter__(self) -> EntityStore:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _connect(self) -> sqlite3.Connection:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self._db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Create missing collections and migrate outdated ones.

        Existing collections keep their data; a collection whose stored
        version is older than its schema has every record rewritten.
        """
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS _collections (
                    name    TEXT PRIMARY KEY,
                    version INTEGER NOT NULL
                )
            """)
            versions = {
                row["name"]: row["version"]
                for row in conn.execute("SELECT name, version FROM _collections").fetchall()
            }
            for schema in self._schemas.values():
                stored = versions.get(schema.name)
                if stored is None:
                    self._create_collection(conn, schema)
                elif stored < schema.version:
                    self._migrate_collection(conn, schema, stored)
                elif stored > schema.version:
                    raise ValueError(
                        f"Collection {schema.name!r} is at version {stored}, "
                        f"newer than this build ({schema.version})"
                    )
        logger.debug("Collections initialized: %s", ", ".join(self._schemas))

    @staticmethod
    def _create_collection(conn: sqlite3.Connection, schema: CollectionSchema) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS "{schema.table}" (
                key      TEXT PRIMARY KEY,
                sort_key TEXT,
                data     TEXT NOT NULL
            )
        """)
        if schema.index_field is not None:
            conn.execute(
                f'CREATE INDEX IF NOT EXISTS "ix_{schema.table}_sort" '
                f'ON "{schema.table}" (sort_key)'
            )
        conn.execute(
            "INSERT OR REPLACE INTO _collections (name, version) VALUES (?, ?)",
            (schema.name, schema.version),
        )
        logger.info("Collection created: %s (v%d)", schema.name, schema.version)

    @staticmethod
    def _migrate_collection(
        conn: sqlite3.Connection, schema: CollectionSchema, stored: int,
    ) -> None:
        missing = [v for v in range(stored + 1, schema.version + 1) if v not in schema.migrations]
        if missing:
            raise ValueError(
                f"Collection {schema.name!r} has no migration step for version(s) {missing}"
            )
        rows = conn.execute(f'SELECT key, data FROM "{schema.table}" ORDER BY rowid').fetchall()
        for row in rows:
            data = json.loads(row["data"])
            for target in range(stored + 1, schema.version + 1):
                data = schema.migrations[target](data)
            record = schema.model.model_validate(data)
            conn.execute(
                f'UPDATE "{schema.table}" SET data = ?, sort_key = ? WHERE key = ?',
                (record.model_dump_json(), schema.sort_value(record), row["key"]),
            )
        conn.execute(
            "UPDATE _collections SET version = ? WHERE name = ?",
            (schema.version, schema.name),
        )
        logger.info(
            "Collection migrated: %s v%d -> v%d (%d records)",
            schema.name, stored, schema.version, len(rows),
        )

    # ------------------------------------------------------------------
    # Operation plumbing
    # ------------------------------------------------------------------

    async def _run(self, op: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a synchronous operation against the open connection, serialized."""
        async with self._lock:
            conn = self._conn
            if conn is None:
                raise StorageUnavailable("Entity store is not open")
            try:
                return await asyncio.to_thread(fn, conn, *args)
            except StorageError:
                raise
            except (sqlite3.Error, PydanticValidationError, json.JSONDecodeError) as exc:
                logger.error("Store %s failed: %s", op, exc)
                raise StorageIOError(f"Store {op} failed: {exc}") from exc

    def _check_record(self, schema: CollectionSchema, record: BaseModel) -> None:
        if not isinstance(record, schema.model):
            raise TypeError(
                f"Collection {schema.name!r} stores {schema.model.__name__}, "
                f"got {type(record).__name__}"
            )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get(self, collection: str, key: str) -> Any | None:
        """Fetch one record, or None when the key is absent."""
        schema = self.schema(collection)

        def _get(conn: sqlite3.Connection) -> BaseModel | None:
            row = conn.execute(
                f'SELECT data FROM "{schema.table}" WHERE key = ?', (key,)
            ).fetchone()
            if row is None:
                return None
            return schema.model.model_validate_json(row["data"])

        return await self._run(f"get({collection})", _get)

    async def get_all(self, collection: str) -> list[Any]:
        """All records in insertion order. Callers impose their own sort."""
        schema = self.schema(collection)

        def _get_all(conn: sqlite3.Connection) -> list[BaseModel]:
            rows = conn.execute(f'SELECT data FROM "{schema.table}" ORDER BY rowid').fetchall()
            return [schema.model.model_validate_json(r["data"]) for r in rows]

        return await self._run(f"get_all({collection})", _get_all)

    async def get_all_by_index(self, collection: str, descending: bool = False) -> list[Any]:
        """All records ordered by the collection's secondary index."""
        schema = self.schema(collection)
        if schema.index_field is None:
            raise ValueError(f"Collection {collection!r} has no secondary index")
        direction = "DESC" if descending else "ASC"

        def _get_sorted(conn: sqlite3.Connection) -> list[BaseModel]:
            rows = conn.execute(
                f'SELECT data FROM "{schema.table}" ORDER BY sort_key {direction}, rowid {direction}'
            ).fetchall()
            return [schema.model.model_validate_json(r["data"]) for r in rows]

        return await self._run(f"get_all_by_index({collection})", _get_sorted)

    async def put(self, collection: str, record: BaseModel) -> None:
        """Insert or fully overwrite the record with the same key."""
        schema = self.schema(collection)
        self._check_record(schema, record)
        key = schema.key_of(record)
        payload = (key, schema.sort_value(record), record.model_dump_json())

        def _put(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute(
                    f"""
                    INSERT INTO "{schema.table}" (key, sort_key, data) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        sort_key = excluded.sort_key,
                        data     = excluded.data
                    """,
                    payload,
                )

        await self._run(f"put({collection})", _put)
        logger.debug("put %s/%s", collection, key)

    async def add(self, collection: str, record: BaseModel) -> None:
        """Insert a new record. Raises DuplicateKeyError if the key exists."""
        schema = self.schema(collection)
        self._check_record(schema, record)
        key = schema.key_of(record)
        payload = (key, schema.sort_value(record), record.model_dump_json())

        def _add(conn: sqlite3.Connection) -> None:
            try:
                with conn:
                    conn.execute(
                        f'INSERT INTO "{schema.table}" (key, sort_key, data) VALUES (?, ?, ?)',
                        payload,
                    )
            except sqlite3.IntegrityError as exc:
                raise DuplicateKeyError(
                    f"Key {key!r} already exists in {collection!r}"
                ) from exc

        await self._run(f"add({collection})", _add)
        logger.debug("add %s/%s", collection, key)

    async def delete(self, collection: str, key: str) -> bool:
        """Remove a record. Deleting an absent key is not an error.

        Returns True if a record was removed.
        """
        schema = self.schema(collection)

        def _delete(conn: sqlite3.Connection) -> bool:
            with conn:
                cursor = conn.execute(f'DELETE FROM "{schema.table}" WHERE key = ?', (key,))
            return cursor.rowcount > 0

        deleted = await self._run(f"delete({collection})", _delete)
        if deleted:
            logger.debug("delete %s/%s", collection, key)
        return deleted

    async def clear(self, collection: str) -> None:
        """Remove every record in one collection, leaving the others untouched."""
        schema = self.schema(collection)

        def _clear(conn: sqlite3.Connection) -> int:
            with conn:
                cursor = conn.execute(f'DELETE FROM "{schema.table}"')
            return cursor.rowcount

        removed = await self._run(f"clear({collection})", _clear)
        logger.info("Collection %s cleared (%d records)", collection, removed)
