"""SQLite storage backend."""
import asyncio
import json
import sqlite3
import struct
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from enum import Enum
from logging import Logger
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import aiosqlite

# Register datetime adapters/converters to avoid the Python 3.12 default-adapter deprecation
sqlite3.register_adapter(datetime, lambda dt: dt.isoformat())
sqlite3.register_converter("datetime", lambda b: datetime.fromisoformat(b.decode()))

from scitrera_app_framework import Variables
from pydantic import BaseModel

from ...config import MIRROR_SQLITE_STORAGE_PATH, DEFAULT_MIRROR_SQLITE_STORAGE_PATH
from ...errors import StorageError
from ...models import (
    Behavior, BehaviorStatus, Entity, EntityStatus, EntityType, Fact, FactStatus, MemoryOperation,
    MergeStrategy, Note, NoteStatus, OperationRecord, Pattern, PatternStatus, PatternType, Relationship,
)
from ...utils import parse_datetime_utc, to_iso, utc_now
from .base import StorageBackend, StoragePluginBase, ACTIVE_ONLY, ENTITY_ORDER_FIELDS, FACT_ORDER_FIELDS

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS entities
    (
        id                 TEXT PRIMARY KEY,
        user_id            TEXT    NOT NULL,
        name               TEXT    NOT NULL,
        aliases            TEXT    DEFAULT '[]',
        entity_type        TEXT    NOT NULL,
        memory_type        TEXT    NOT NULL,
        relationship       TEXT,
        summary            TEXT,
        importance         TEXT    NOT NULL,
        importance_score   REAL    NOT NULL,
        sentiment_average  REAL    DEFAULT 0,
        mention_count      INTEGER DEFAULT 0,
        embedding          BLOB,
        status             TEXT    NOT NULL,
        version            INTEGER DEFAULT 1,
        supersedes_id      TEXT,
        superseded_by      TEXT,
        context_notes      TEXT    DEFAULT '[]',
        source_note_ids    TEXT    DEFAULT '[]',
        is_historical      INTEGER DEFAULT 0,
        effective_from     TEXT,
        expires_at         TEXT,
        recurrence_pattern TEXT,
        sensitivity_level  TEXT    NOT NULL,
        access_count       INTEGER DEFAULT 0,
        last_accessed_at   TEXT,
        created_at         TEXT    NOT NULL,
        updated_at         TEXT    NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_entities_user_status ON entities (user_id, status)",
    """
    CREATE TABLE IF NOT EXISTS facts
    (
        id                  TEXT PRIMARY KEY,
        user_id             TEXT    NOT NULL,
        entity_id           TEXT    NOT NULL,
        predicate           TEXT    NOT NULL,
        object_text         TEXT,
        object_entity_id    TEXT,
        confidence          REAL    NOT NULL,
        status              TEXT    NOT NULL,
        source_note_id      TEXT,
        is_inferred         INTEGER DEFAULT 0,
        valid_from          TEXT,
        valid_to            TEXT,
        created_at          TEXT    NOT NULL,
        updated_at          TEXT    NOT NULL,
        invalidated_at      TEXT,
        invalidated_by      TEXT,
        invalidation_reason TEXT,
        version             INTEGER DEFAULT 1,
        previous_version_id TEXT,
        is_current          INTEGER DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_facts_user_entity ON facts (user_id, entity_id, predicate)",
    "CREATE INDEX IF NOT EXISTS idx_facts_source_note ON facts (user_id, source_note_id)",
    """
    CREATE TABLE IF NOT EXISTS notes
    (
        id         TEXT PRIMARY KEY,
        user_id    TEXT NOT NULL,
        title      TEXT,
        category   TEXT,
        status     TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        deleted_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_notes_user ON notes (user_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS patterns
    (
        id                TEXT PRIMARY KEY,
        user_id           TEXT NOT NULL,
        pattern_type      TEXT NOT NULL,
        category          TEXT,
        description       TEXT NOT NULL,
        short_description TEXT,
        confidence        REAL NOT NULL,
        evidence          TEXT DEFAULT '[]',
        status            TEXT NOT NULL,
        created_at        TEXT NOT NULL,
        updated_at        TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_patterns_user ON patterns (user_id, status)",
    """
    CREATE TABLE IF NOT EXISTS behaviors
    (
        id                  TEXT PRIMARY KEY,
        user_id             TEXT    NOT NULL,
        predicate           TEXT    NOT NULL,
        entity_id           TEXT,
        entity_name         TEXT    NOT NULL,
        topic               TEXT,
        sentiment           REAL    DEFAULT 0,
        evidence            TEXT,
        confidence          REAL    NOT NULL,
        reinforcement_count INTEGER DEFAULT 1,
        status              TEXT    NOT NULL,
        source_note_id      TEXT,
        first_detected_at   TEXT    NOT NULL,
        last_reinforced_at  TEXT    NOT NULL,
        updated_at          TEXT    NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_behaviors_user ON behaviors (user_id, predicate)",
    """
    CREATE TABLE IF NOT EXISTS relationships
    (
        id                TEXT PRIMARY KEY,
        user_id           TEXT    NOT NULL,
        source_entity_id  TEXT    NOT NULL,
        target_entity_id  TEXT    NOT NULL,
        relationship_type TEXT    NOT NULL,
        strength          REAL    NOT NULL,
        confidence        REAL    NOT NULL,
        is_active         INTEGER DEFAULT 1,
        started_at        TEXT,
        ended_at          TEXT,
        last_confirmed_at TEXT,
        created_at        TEXT    NOT NULL,
        updated_at        TEXT    NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_relationships_user ON relationships (user_id, source_entity_id, target_entity_id)",
    """
    CREATE TABLE IF NOT EXISTS operations
    (
        id             TEXT PRIMARY KEY,
        user_id        TEXT NOT NULL,
        operation      TEXT NOT NULL,
        entity_id      TEXT,
        target_id      TEXT,
        merge_strategy TEXT,
        reasoning      TEXT,
        candidate_name TEXT,
        created_at     TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_operations_user ON operations (user_id, created_at)",
)

_MODELS: dict[str, type[BaseModel]] = {
    "entities": Entity,
    "facts": Fact,
    "notes": Note,
    "patterns": Pattern,
    "behaviors": Behavior,
    "relationships": Relationship,
}

# Columns stored as JSON text
_JSON_COLUMNS: dict[str, frozenset[str]] = {
    "entities": frozenset({"aliases", "context_notes", "source_note_ids", "recurrence_pattern"}),
    "patterns": frozenset({"evidence"}),
}


def _like(term: str) -> str:
    escaped = term.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _in_clause(column: str, values: Sequence[Any]) -> str:
    return f"{column} IN ({', '.join('?' for _ in values)})"


def _enum_values(values: Iterable[Any]) -> list[Any]:
    return [v.value if isinstance(v, Enum) else v for v in values]


class SQLiteStorageBackend(StorageBackend):
    """SQLite storage backend (single file, WAL mode, serialized writes)."""

    def __init__(self, db_path: str = "mirror.db", v: Variables = None):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file (":memory:" for a private in-memory database)
            v: Variables for logging context
        """
        super().__init__(v)
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(f"mirror_sqlite_tx_{id(self)}", default=False)

    async def connect(self) -> None:
        """Initialize storage connection."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.logger.info("Connecting to SQLite database at %s", self.db_path)

        # Autocommit mode; multi-statement units use explicit BEGIN/COMMIT in transaction()
        self._connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row

        # Enable WAL mode for better concurrent read performance
        await self._connection.execute("PRAGMA journal_mode=WAL")

        await self._create_tables()
        self.logger.info("Connected to SQLite database at %s", self.db_path)

    async def disconnect(self) -> None:
        """Close storage connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            self.logger.info("Disconnected from SQLite database")

    async def health_check(self) -> bool:
        """Check if storage is healthy."""
        try:
            if self._connection:
                await self._connection.execute("SELECT 1")
                return True
            return False
        except Exception as e:
            self.logger.error("Health check failed: %s", e)
            return False

    async def _create_tables(self) -> None:
        """Create database tables."""
        for statement in _SCHEMA:
            await self._connection.execute(statement)

    @property
    def _db(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise StorageError("SQLite storage is not connected")
        return self._connection

    @asynccontextmanager
    async def transaction(self, user_id: str):
        if self._in_transaction.get():
            yield
            return

        async with self._write_lock:
            token = self._in_transaction.set(True)
            try:
                await self._db.execute("BEGIN IMMEDIATE")
                try:
                    yield
                except BaseException:
                    await self._db.execute("ROLLBACK")
                    self.logger.debug("Rolled back transaction for user %s", user_id)
                    raise
                await self._db.execute("COMMIT")
            finally:
                self._in_transaction.reset(token)

    @asynccontextmanager
    async def _writing(self):
        """Serialize a write with other writers unless already inside a transaction."""
        if self._in_transaction.get():
            yield
            return
        async with self._write_lock:
            yield

    # ========== Generic row helpers ==========

    def _encode(self, table: str, column: str, value: Any) -> Any:
        if value is None:
            return None
        if column in _JSON_COLUMNS.get(table, ()):
            return json.dumps(value, ensure_ascii=False)
        if column == "embedding":
            return self._serialize_embedding(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            return to_iso(value)
        return value

    def _row_to_model(self, table: str, row: aiosqlite.Row) -> BaseModel:
        data = {key: row[key] for key in row.keys()}
        for column in _JSON_COLUMNS.get(table, ()):
            if data.get(column):
                data[column] = json.loads(data[column])
            else:
                # NULL: let the model default apply
                data.pop(column, None)
        if "embedding" in data:
            data["embedding"] = self._deserialize_embedding(data["embedding"]) if data["embedding"] else None
        return _MODELS[table].model_validate(data)

    async def _insert(self, table: str, record: BaseModel) -> None:
        data = record.model_dump()
        columns = list(data)
        values = [self._encode(table, c, data[c]) for c in columns]
        async with self._writing():
            await self._db.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                values,
            )

    async def _get(self, table: str, user_id: str, record_id: str) -> Optional[Any]:
        async with self._db.execute(
                f"SELECT * FROM {table} WHERE id = ? AND user_id = ?", (record_id, user_id)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_model(table, row) if row else None

    async def _update(self, table: str, user_id: str, record_id: str, updates: dict[str, Any]) -> Optional[Any]:
        values = dict(updates)
        fields = _MODELS[table].model_fields
        if "updated_at" in fields and "updated_at" not in values:
            values["updated_at"] = utc_now()
        unknown = set(values) - set(fields)
        if unknown:
            raise ValueError(f"Unknown {table} fields: {sorted(unknown)}")
        if not values:
            return await self._get(table, user_id, record_id)

        set_parts = [f"{column} = ?" for column in values]
        params = [self._encode(table, c, v) for c, v in values.items()]
        params.extend([record_id, user_id])
        async with self._writing():
            cursor = await self._db.execute(
                f"UPDATE {table} SET {', '.join(set_parts)} WHERE id = ? AND user_id = ?", params
            )
        if cursor.rowcount == 0:
            return None
        return await self._get(table, user_id, record_id)

    async def _select(self, table: str, where: list[str], params: list[Any], order: str,
                      limit: Optional[int]) -> list[Any]:
        query = f"SELECT * FROM {table} WHERE {' AND '.join(where)} ORDER BY {order}"
        if limit is not None:
            query += " LIMIT ?"
            params = [*params, max(0, limit)]
        async with self._db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_model(table, row) for row in rows]

    # ========== Entity Operations ==========

    async def create_entity(self, entity: Entity) -> Entity:
        await self._insert("entities", entity)
        self.logger.debug("Created entity: %s for user: %s", entity.id, entity.user_id)
        return await self.get_entity(entity.user_id, entity.id)

    async def get_entity(self, user_id: str, entity_id: str) -> Optional[Entity]:
        return await self._get("entities", user_id, entity_id)

    async def update_entity(self, user_id: str, entity_id: str, **updates) -> Optional[Entity]:
        return await self._update("entities", user_id, entity_id, updates)

    async def delete_entity(self, user_id: str, entity_id: str) -> bool:
        async with self.transaction(user_id):
            await self._db.execute("DELETE FROM facts WHERE user_id = ? AND entity_id = ?", (user_id, entity_id))
            cursor = await self._db.execute("DELETE FROM entities WHERE user_id = ? AND id = ?", (user_id, entity_id))
        return cursor.rowcount > 0

    async def query_entities(
            self,
            user_id: str,
            name_contains: Optional[Sequence[str]] = None,
            entity_types: Optional[Iterable[EntityType]] = None,
            statuses: Optional[Iterable[EntityStatus]] = ACTIVE_ONLY,
            include_superseded: bool = False,
            include_historical: bool = True,
            require_embedding: bool = False,
            order_by: str = "importance_score",
            limit: Optional[int] = None,
    ) -> list[Entity]:
        if order_by not in ENTITY_ORDER_FIELDS:
            raise ValueError(f"Unsupported entity ordering: {order_by}")
        where, params = ["user_id = ?"], [user_id]

        if entity_types is not None:
            types = _enum_values(entity_types)
            if not types:
                return []
            where.append(_in_clause("entity_type", types))
            params.extend(types)
        if statuses is not None:
            allowed = _enum_values(statuses)
            if not allowed:
                return []
            where.append(_in_clause("status", allowed))
            params.extend(allowed)
        if not include_superseded:
            where.append("superseded_by IS NULL")
        if not include_historical:
            where.append("is_historical = 0")
        if require_embedding:
            where.append("embedding IS NOT NULL")
        if name_contains is not None:
            terms = [t for t in name_contains if t and t.strip()]
            if not terms:
                return []
            clauses = []
            for term in terms:
                clauses.append("(LOWER(name) LIKE ? ESCAPE '\\' OR LOWER(aliases) LIKE ? ESCAPE '\\')")
                params.extend([_like(term), _like(term)])
            where.append(f"({' OR '.join(clauses)})")

        return await self._select("entities", where, params, f"{order_by} DESC, created_at DESC, id ASC", limit)

    async def record_entity_access(self, user_id: str, entity_ids: Sequence[str]) -> None:
        ids = list(set(entity_ids))
        if not ids:
            return
        async with self._writing():
            await self._db.execute(
                f"UPDATE entities SET access_count = access_count + 1, last_accessed_at = ? "
                f"WHERE user_id = ? AND {_in_clause('id', ids)}",
                [to_iso(utc_now()), user_id, *ids],
            )

    async def list_user_ids(self) -> list[str]:
        async with self._db.execute("SELECT DISTINCT user_id FROM entities ORDER BY user_id") as cursor:
            rows = await cursor.fetchall()
        return [row["user_id"] for row in rows]

    # ========== Fact Operations ==========

    async def create_fact(self, fact: Fact) -> Fact:
        await self._insert("facts", fact)
        self.logger.debug("Created fact: %s (%s) for entity: %s", fact.id, fact.predicate, fact.entity_id)
        return await self.get_fact(fact.user_id, fact.id)

    async def get_fact(self, user_id: str, fact_id: str) -> Optional[Fact]:
        return await self._get("facts", user_id, fact_id)

    async def update_fact(self, user_id: str, fact_id: str, **updates) -> Optional[Fact]:
        return await self._update("facts", user_id, fact_id, updates)

    async def query_facts(
            self,
            user_id: str,
            entity_ids: Optional[Sequence[str]] = None,
            predicates: Optional[Iterable[str]] = None,
            statuses: Optional[Iterable[FactStatus]] = (FactStatus.ACTIVE,),
            current_only: bool = True,
            min_confidence: Optional[float] = None,
            object_text: Optional[str] = None,
            source_note_id: Optional[str] = None,
            order_by: str = "confidence",
            limit: Optional[int] = None,
    ) -> list[Fact]:
        if order_by not in FACT_ORDER_FIELDS:
            raise ValueError(f"Unsupported fact ordering: {order_by}")
        where, params = ["user_id = ?"], [user_id]

        if entity_ids is not None:
            ids = list(entity_ids)
            if not ids:
                return []
            where.append(_in_clause("entity_id", ids))
            params.extend(ids)
        if predicates is not None:
            preds = list(predicates)
            if not preds:
                return []
            where.append(_in_clause("predicate", preds))
            params.extend(preds)
        if statuses is not None:
            allowed = _enum_values(statuses)
            if not allowed:
                return []
            where.append(_in_clause("status", allowed))
            params.extend(allowed)
        if current_only:
            where.append("is_current = 1")
        if min_confidence is not None:
            where.append("confidence >= ?")
            params.append(min_confidence)
        if object_text is not None:
            where.append("LOWER(TRIM(object_text)) = ?")
            params.append(object_text.strip().lower())
        if source_note_id is not None:
            where.append("source_note_id = ?")
            params.append(source_note_id)

        return await self._select("facts", where, params, f"{order_by} DESC, created_at DESC, id ASC", limit)

    # ========== Note Operations ==========

    async def create_note(self, note: Note) -> Note:
        await self._insert("notes", note)
        return await self.get_note(note.user_id, note.id)

    async def get_note(self, user_id: str, note_id: str) -> Optional[Note]:
        return await self._get("notes", user_id, note_id)

    async def update_note(self, user_id: str, note_id: str, **updates) -> Optional[Note]:
        return await self._update("notes", user_id, note_id, updates)

    async def remove_note(self, user_id: str, note_id: str) -> bool:
        async with self._writing():
            cursor = await self._db.execute("DELETE FROM notes WHERE user_id = ? AND id = ?", (user_id, note_id))
        return cursor.rowcount > 0

    async def query_notes(
            self,
            user_id: str,
            match_terms: Optional[Sequence[str]] = None,
            include_deleted: bool = False,
            limit: Optional[int] = None,
    ) -> list[Note]:
        where, params = ["user_id = ?"], [user_id]
        if not include_deleted:
            where.append("status != ?")
            params.append(NoteStatus.DELETED.value)
        if match_terms is not None:
            terms = [t for t in match_terms if t and t.strip()]
            if not terms:
                return []
            clauses = []
            for term in terms:
                clauses.append("(LOWER(title) LIKE ? ESCAPE '\\' OR LOWER(category) LIKE ? ESCAPE '\\')")
                params.extend([_like(term), _like(term)])
            where.append(f"({' OR '.join(clauses)})")
        return await self._select("notes", where, params, "created_at DESC, id ASC", limit)

    # ========== Pattern Operations ==========

    async def create_pattern(self, pattern: Pattern) -> Pattern:
        await self._insert("patterns", pattern)
        return await self._get("patterns", pattern.user_id, pattern.id)

    async def query_patterns(
            self,
            user_id: str,
            pattern_types: Optional[Iterable[PatternType]] = None,
            categories: Optional[Iterable[str]] = None,
            min_confidence: Optional[float] = None,
            exclude_rejected: bool = True,
            limit: Optional[int] = None,
    ) -> list[Pattern]:
        where, params = ["user_id = ?"], [user_id]
        if exclude_rejected:
            where.append("status != ?")
            params.append(PatternStatus.REJECTED.value)
        if min_confidence is not None:
            where.append("confidence >= ?")
            params.append(min_confidence)

        types = _enum_values(pattern_types) if pattern_types is not None else None
        cats = [c.lower() for c in categories] if categories is not None else None
        if types is not None or cats is not None:
            clauses = []
            if types:
                clauses.append(_in_clause("pattern_type", types))
                params.extend(types)
            if cats:
                clauses.append(_in_clause("LOWER(category)", cats))
                params.extend(cats)
            if not clauses:
                return []
            where.append(f"({' OR '.join(clauses)})")

        return await self._select("patterns", where, params, "confidence DESC, created_at DESC, id ASC", limit)

    # ========== Behavior Operations ==========

    async def create_behavior(self, behavior: Behavior) -> Behavior:
        await self._insert("behaviors", behavior)
        return await self._get("behaviors", behavior.user_id, behavior.id)

    async def update_behavior(self, user_id: str, behavior_id: str, **updates) -> Optional[Behavior]:
        return await self._update("behaviors", user_id, behavior_id, updates)

    async def query_behaviors(
            self,
            user_id: str,
            entity_names: Optional[Sequence[str]] = None,
            predicate: Optional[str] = None,
            statuses: Optional[Iterable[BehaviorStatus]] = (BehaviorStatus.ACTIVE,),
            source_note_id: Optional[str] = None,
            limit: Optional[int] = None,
    ) -> list[Behavior]:
        where, params = ["user_id = ?"], [user_id]
        if statuses is not None:
            allowed = _enum_values(statuses)
            if not allowed:
                return []
            where.append(_in_clause("status", allowed))
            params.extend(allowed)
        if predicate is not None:
            where.append("predicate = ?")
            params.append(predicate)
        if source_note_id is not None:
            where.append("source_note_id = ?")
            params.append(source_note_id)
        if entity_names is not None:
            names = [n for n in entity_names if n and n.strip()]
            if not names:
                return []
            clauses = ["LOWER(entity_name) LIKE ? ESCAPE '\\'" for _ in names]
            where.append(f"({' OR '.join(clauses)})")
            params.extend(_like(n) for n in names)
        return await self._select("behaviors", where, params, "confidence DESC, last_reinforced_at DESC, id ASC",
                                  limit)

    # ========== Relationship Operations ==========

    async def create_relationship(self, relationship: Relationship) -> Relationship:
        await self._insert("relationships", relationship)
        return await self._get("relationships", relationship.user_id, relationship.id)

    async def update_relationship(self, user_id: str, relationship_id: str, **updates) -> Optional[Relationship]:
        return await self._update("relationships", user_id, relationship_id, updates)

    async def query_relationships(
            self,
            user_id: str,
            entity_id: Optional[str] = None,
            source_entity_id: Optional[str] = None,
            target_entity_id: Optional[str] = None,
            relationship_type: Optional[str] = None,
            active_only: bool = True,
            limit: Optional[int] = None,
    ) -> list[Relationship]:
        where, params = ["user_id = ?"], [user_id]
        if entity_id is not None:
            where.append("(source_entity_id = ? OR target_entity_id = ?)")
            params.extend([entity_id, entity_id])
        if source_entity_id is not None:
            where.append("source_entity_id = ?")
            params.append(source_entity_id)
        if target_entity_id is not None:
            where.append("target_entity_id = ?")
            params.append(target_entity_id)
        if relationship_type is not None:
            where.append("relationship_type = ?")
            params.append(relationship_type)
        if active_only:
            where.append("is_active = 1")
        return await self._select("relationships", where, params, "strength DESC, created_at DESC, id ASC", limit)

    # ========== Operation Log ==========

    async def record_operation(self, record: OperationRecord) -> OperationRecord:
        async with self._writing():
            await self._db.execute(
                """
                INSERT INTO operations (id, user_id, operation, entity_id, target_id, merge_strategy,
                                        reasoning, candidate_name, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.operation.value,
                    record.entity_id,
                    record.target_id,
                    record.merge_strategy.value if record.merge_strategy else None,
                    record.reasoning,
                    record.candidate_name,
                    to_iso(record.created_at),
                ),
            )
        return record

    async def list_operations(self, user_id: str, limit: int = 50) -> list[OperationRecord]:
        async with self._db.execute(
                "SELECT * FROM operations WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, max(0, limit)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_operation(row) for row in rows]

    def _row_to_operation(self, row: aiosqlite.Row) -> OperationRecord:
        """Convert database row to OperationRecord."""
        return OperationRecord(
            id=row["id"],
            user_id=row["user_id"],
            operation=MemoryOperation(row["operation"]),
            entity_id=row["entity_id"],
            target_id=row["target_id"],
            merge_strategy=MergeStrategy(row["merge_strategy"]) if row["merge_strategy"] else None,
            reasoning=row["reasoning"] or '',
            candidate_name=row["candidate_name"],
            created_at=parse_datetime_utc(row["created_at"]),
        )

    def _serialize_embedding(self, embedding: list[float]) -> bytes:
        """Serialize embedding to binary format for storage."""
        return struct.pack(f'{len(embedding)}f', *embedding)

    def _deserialize_embedding(self, blob: bytes) -> list[float]:
        """Deserialize embedding from binary format."""
        num_floats = len(blob) // 4
        return list(struct.unpack(f'{num_floats}f', blob))


class SqliteStorageBackendPlugin(StoragePluginBase):
    PROVIDER_NAME = 'sqlite'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return SQLiteStorageBackend(
            db_path=v.environ(MIRROR_SQLITE_STORAGE_PATH, default=DEFAULT_MIRROR_SQLITE_STORAGE_PATH),
            v=v
        )
