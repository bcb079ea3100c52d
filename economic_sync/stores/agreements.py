"""
Agreement store: CRUD over tenant credential records.
"""
from __future__ import annotations
from typing import Any, Optional

from .base import Database

UPDATABLE_COLUMNS = ("name", "agreement_number", "agreement_grant_token", "is_active")


class AgreementStore:
    """Persistence for agreements; knows nothing about the remote API."""

    def __init__(self, db: Database, schema: Optional[str] = None):
        self.db = db
        self.schema = schema or db.config.db_schema

    @property
    def qualified_table(self) -> str:
        return f"{self.schema}.agreements"

    def list(self, active_only: bool = True) -> list[dict]:
        where = "WHERE is_active" if active_only else ""
        return self.db.query(f"SELECT * FROM {self.qualified_table} {where} ORDER BY id")

    def get(self, agreement_id: int) -> Optional[dict]:
        return self.db.query_one(
            f"SELECT * FROM {self.qualified_table} WHERE id = %s",
            (agreement_id,),
        )

    def get_by_number(self, agreement_number: int) -> Optional[dict]:
        return self.db.query_one(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE agreement_number = %s
            ORDER BY is_active DESC, id
            LIMIT 1
            """,
            (agreement_number,),
        )

    def agreement_numbers(self) -> list[int]:
        rows = self.db.query(
            f"""
            SELECT DISTINCT agreement_number FROM {self.qualified_table}
            WHERE agreement_number IS NOT NULL
            ORDER BY agreement_number
            """
        )
        return [r["agreement_number"] for r in rows]

    def create(
        self,
        name: str,
        agreement_grant_token: str,
        agreement_number: Optional[int] = None,
        is_active: bool = True,
    ) -> dict:
        with self.db.transaction() as tx:
            return tx.query_one(
                f"""
                INSERT INTO {self.qualified_table} (name, agreement_number, agreement_grant_token, is_active)
                VALUES (%s, %s, %s, %s)
                RETURNING *
                """,
                (name, agreement_number, agreement_grant_token, is_active),
            )

    def update(self, agreement_id: int, **fields: Any) -> Optional[dict]:
        unknown = set(fields) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update agreement column(s): {', '.join(sorted(unknown))}")
        if not fields:
            return self.get(agreement_id)

        set_str = ", ".join(f"{col} = %({col})s" for col in fields)
        with self.db.transaction() as tx:
            return tx.query_one(
                f"""
                UPDATE {self.qualified_table}
                SET {set_str}, updated_at = NOW()
                WHERE id = %(id)s
                RETURNING *
                """,
                {**fields, "id": agreement_id},
            )

    def delete(self, agreement_id: int) -> bool:
        with self.db.transaction() as tx:
            return tx.execute(f"DELETE FROM {self.qualified_table} WHERE id = %s", (agreement_id,)) > 0
