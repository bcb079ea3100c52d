"""
Base store utilities.

Provides connection management and the generic natural-key upsert engine
shared by every entity table.
"""
from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Iterable, Optional
import psycopg
from psycopg.rows import dict_row
from loguru import logger

from ..config import SyncConfig
from ..errors import ValidationError
from ..models import get_schema_sql


def get_connection(config: Optional[SyncConfig] = None):
    """
    Create a database connection.

    Returns an autocommit psycopg connection that yields rows as dicts.
    """
    config = config or SyncConfig.from_env()
    return psycopg.connect(config.db_url, autocommit=True, row_factory=dict_row)


class Database:
    """
    Thin wrapper over one psycopg connection.

    Every logical write runs inside ``transaction()``; outside of it the
    connection is in autocommit mode, so nothing is held open while the
    caller waits on the remote API.
    """

    def __init__(self, config: Optional[SyncConfig] = None, conn=None):
        self.config = config or SyncConfig.from_env()
        self._conn = conn

    @property
    def conn(self):
        """Get or create database connection."""
        if self._conn is None or self._conn.closed:
            self._conn = get_connection(self.config)
        return self._conn

    def query(self, sql: str, params: Any = None) -> list[dict]:
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            if cur.description is None:
                return []
            return cur.fetchall()

    def query_one(self, sql: str, params: Any = None) -> Optional[dict]:
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            if cur.description is None:
                return None
            return cur.fetchone()

    def execute(self, sql: str, params: Any = None) -> int:
        """Execute a statement and return the affected row count."""
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    @contextmanager
    def transaction(self) -> Generator["Database", None, None]:
        """
        Context manager for database transactions.

        Commits on success, rolls back on exception.
        """
        with self.conn.transaction():
            yield self

    def execute_ddl(self, ddl: str):
        """Execute a DDL script."""
        with self.conn.cursor() as cur:
            cur.execute(ddl)

    def initialize_schema(self):
        """Create the schema and all tables if they don't exist."""
        self.execute_ddl(get_schema_sql(self.config.db_schema))
        logger.info(f"Database schema '{self.config.db_schema}' initialized")

    def close(self):
        """Close database connection."""
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class EntityStore:
    """
    Generic natural-key store for one entity table.

    Subclasses declare the table layout:
    - ``table``: table name (without schema)
    - ``key_columns``: natural key, always including ``agreement_number``
    - ``columns``: non-key data columns written on insert and update
    - ``nullable_keys``: key columns compared with IS NOT DISTINCT FROM
    - ``dedupe_keys``: grouping used by the cleanup pass

    Every table carries a surrogate ``id`` that is preserved across updates.
    """

    table: str = ""
    key_columns: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()
    nullable_keys: frozenset[str] = frozenset()
    default_order: str = "id"
    dedupe_keys: Optional[tuple[str, ...]] = None

    def __init__(self, db: Database, schema: Optional[str] = None, batch_size: Optional[int] = None):
        self.db = db
        self.schema = schema or db.config.db_schema
        self.batch_size = batch_size or db.config.batch_size

    @property
    def qualified_table(self) -> str:
        return f"{self.schema}.{self.table}"

    def key_of(self, row: dict) -> dict:
        return {col: row.get(col) for col in self.key_columns}

    def _key_predicate(self) -> str:
        parts = []
        for col in self.key_columns:
            op = "IS NOT DISTINCT FROM" if col in self.nullable_keys else "="
            parts.append(f"{col} {op} %({col})s")
        return " AND ".join(parts)

    def validate(self, row: dict):
        """Reject a row whose natural key is incomplete."""
        missing = [
            col for col in self.key_columns
            if col not in self.nullable_keys and row.get(col) in (None, "")
        ]
        if missing:
            raise ValidationError(
                f"{self.table}: missing natural key field(s) {', '.join(missing)}"
            )

    def find_by_natural_key(self, *key_values: Any) -> Optional[dict]:
        """Find a row by its natural key values, given in ``key_columns`` order."""
        if len(key_values) != len(self.key_columns):
            raise ValueError(
                f"{self.table} natural key is {self.key_columns}, got {len(key_values)} value(s)"
            )
        return self._find(dict(zip(self.key_columns, key_values)))

    def _find(self, key: dict, db: Optional[Database] = None) -> Optional[dict]:
        db = db or self.db
        return db.query_one(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE {self._key_predicate()}
            ORDER BY updated_at DESC, id DESC
            LIMIT 1
            """,
            key,
        )

    def merge(self, existing: dict, row: dict) -> dict:
        """Combine a stored row with an incoming one before update."""
        return row

    def _insert(self, db: Database, row: dict) -> dict:
        cols = self.key_columns + self.columns
        columns_str = ", ".join(cols)
        placeholders = ", ".join(f"%({c})s" for c in cols)
        return db.query_one(
            f"INSERT INTO {self.qualified_table} ({columns_str}) VALUES ({placeholders}) RETURNING *",
            {c: row.get(c) for c in cols},
        )

    def _update(self, db: Database, row_id: Any, row: dict) -> dict:
        cols = self.key_columns + self.columns
        set_str = ", ".join(f"{c} = %({c})s" for c in cols)
        params = {c: row.get(c) for c in cols}
        params["id"] = row_id
        return db.query_one(
            f"""
            UPDATE {self.qualified_table}
            SET {set_str}, updated_at = NOW()
            WHERE id = %(id)s
            RETURNING *
            """,
            params,
        )

    def _find_existing(self, db: Database, row: dict) -> Optional[dict]:
        return self._find(self.key_of(row), db)

    def _write(self, db: Database, row: dict) -> tuple[dict, bool]:
        """Insert or update one row; returns (stored_row, inserted)."""
        existing = self._find_existing(db, row)
        if existing:
            return self._update(db, existing["id"], self.merge(existing, row)), False
        return self._insert(db, row), True

    def upsert(self, row: dict) -> dict:
        """Insert the row, or update the stored row with the same natural key."""
        self.validate(row)
        with self.db.transaction() as tx:
            stored, _ = self._write(tx, row)
        return stored

    def batch_upsert(
        self,
        rows: list[dict],
        on_chunk: Optional[Callable[[int], None]] = None,
    ) -> dict:
        """
        Upsert rows in chunks of ``batch_size``, one transaction per chunk.

        All rows are validated before the first write. A failing chunk is
        rolled back alone; chunks committed before it stay committed and
        have already been reported through ``on_chunk``.

        Returns:
            Dict with ``inserted`` and ``updated`` counts
        """
        if not rows:
            return {"inserted": 0, "updated": 0}

        for row in rows:
            self.validate(row)

        inserted = 0
        updated = 0
        for i in range(0, len(rows), self.batch_size):
            chunk = rows[i:i + self.batch_size]
            chunk_inserted = 0
            chunk_updated = 0
            with self.db.transaction() as tx:
                for row in chunk:
                    _, created = self._write(tx, row)
                    if created:
                        chunk_inserted += 1
                    else:
                        chunk_updated += 1
            inserted += chunk_inserted
            updated += chunk_updated
            if on_chunk is not None:
                on_chunk(len(chunk))

        logger.debug(f"{self.table}: {inserted} inserted, {updated} updated")
        return {"inserted": inserted, "updated": updated}

    def list_by_agreement(self, agreement_number: int, **filters: Any) -> list[dict]:
        """List rows of one agreement, optionally filtered by column equality."""
        where = ["agreement_number = %(agreement_number)s"]
        params: dict[str, Any] = {"agreement_number": agreement_number}
        for col, value in filters.items():
            if col not in self.key_columns + self.columns:
                raise ValueError(f"Unknown column for {self.table}: {col}")
            op = "IS NOT DISTINCT FROM" if value is None else "="
            where.append(f"{col} {op} %({col})s")
            params[col] = value
        return self.db.query(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE {" AND ".join(where)}
            ORDER BY {self.default_order}
            """,
            params,
        )

    # Cleanup support

    def _dedupe_source(self) -> str:
        return self.qualified_table

    def find_duplicate_rows(self, agreement_number: int) -> list[dict]:
        """Return every row whose dedupe key is shared by another row of the agreement."""
        keys = ", ".join(self.dedupe_keys or self.key_columns)
        return self.db.query(
            f"""
            SELECT id, updated_at, {keys} FROM (
                SELECT id, updated_at, {keys},
                       COUNT(*) OVER (PARTITION BY {keys}) AS copies
                FROM {self._dedupe_source()} src
                WHERE agreement_number = %s
            ) d
            WHERE copies > 1
            """,
            (agreement_number,),
        )

    def delete_ids(self, ids: Iterable[Any]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        with self.db.transaction() as tx:
            return tx.execute(
                f"DELETE FROM {self.qualified_table} WHERE id = ANY(%s)",
                (ids,),
            )


class SyncLogStore:
    """Append-only store for sync and cleanup operation records."""

    def __init__(self, db: Database, schema: Optional[str] = None):
        self.db = db
        self.schema = schema or db.config.db_schema

    def record(
        self,
        entity: str,
        operation: str = "sync",
        status: str = "success",
        record_count: int = 0,
        error_message: Optional[str] = None,
        started_at: Optional[datetime] = None,
        agreement_number: Optional[int] = None,
    ) -> Optional[dict]:
        """
        Record one operation.

        Best effort: a failure to write the log is logged and swallowed so
        it never masks or replaces the outcome of the operation itself.
        """
        completed_at = datetime.now(timezone.utc)
        started_at = started_at or completed_at
        duration_ms = int((completed_at - started_at).total_seconds() * 1000)
        entry = {
            "entity": entity,
            "operation": operation,
            "agreement_number": agreement_number,
            "record_count": record_count,
            "status": status,
            "error_message": error_message,
            "started_at": started_at,
            "completed_at": completed_at,
            "duration_ms": duration_ms,
        }
        try:
            self.db.execute(
                f"""
                INSERT INTO {self.schema}.sync_logs
                    (entity, operation, agreement_number, record_count, status,
                     error_message, started_at, completed_at, duration_ms)
                VALUES
                    (%(entity)s, %(operation)s, %(agreement_number)s, %(record_count)s, %(status)s,
                     %(error_message)s, %(started_at)s, %(completed_at)s, %(duration_ms)s)
                """,
                entry,
            )
        except Exception as e:
            logger.error(f"Error recording sync log for {entity}: {e}")
            return None
        return entry

    def recent(self, limit: int = 10) -> list[dict]:
        return self.db.query(
            f"SELECT * FROM {self.schema}.sync_logs ORDER BY started_at DESC, id DESC LIMIT %s",
            (limit,),
        )
