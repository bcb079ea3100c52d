"""
Invoice store.

Invoice identity is a draft number before booking and a booked number
after it, scoped by customer and agreement. Lookups match the exact
identity first, then follow the Draft -> Booked promotion in either
direction so one logical invoice keeps one row.
"""
from __future__ import annotations
from math import ceil
from typing import Any, Optional
from loguru import logger

from ..errors import ValidationError
from ..transformers.invoices import BOOKED, DRAFT, merge_payment_status
from .base import Database, EntityStore

SORTABLE_COLUMNS = {
    "date": "invoice_date",
    "invoice_date": "invoice_date",
    "due_date": "due_date",
    "invoice_number": "invoice_number",
    "draft_invoice_number": "draft_invoice_number",
    "customer_number": "customer_number",
    "customer_name": "customer_name",
    "gross_amount": "gross_amount",
    "net_amount": "net_amount",
    "payment_status": "payment_status",
    "updated_at": "updated_at",
}

LINE_COLUMNS = (
    "line_number",
    "product_number",
    "description",
    "quantity",
    "unit_price",
    "discount_percentage",
    "unit",
    "total_net_amount",
)


def identity_number(row: dict) -> Optional[int]:
    """The number that identifies the invoice under its current identity kind."""
    if row.get("identity_kind") == DRAFT:
        return row.get("draft_invoice_number")
    return row.get("invoice_number")


class InvoiceStore(EntityStore):
    """Store for draft and booked invoices and their lines."""

    table = "invoices"
    key_columns = (
        "agreement_number",
        "customer_number",
        "identity_kind",
        "invoice_number",
        "draft_invoice_number",
    )
    columns = (
        "customer_name",
        "currency",
        "exchange_rate",
        "invoice_date",
        "due_date",
        "net_amount",
        "gross_amount",
        "vat_amount",
        "remainder",
        "invoice_type",
        "payment_status",
        "notes",
        "reference_number",
        "self_url",
    )
    nullable_keys = frozenset({"invoice_number", "draft_invoice_number"})
    default_order = "invoice_date DESC, id DESC"
    dedupe_keys = ("agreement_number", "customer_number", "identity_kind", "identity_number")

    def __init__(self, db: Database, schema: Optional[str] = None, batch_size: Optional[int] = None):
        super().__init__(db, schema, batch_size)
        self.lines_table = f"{self.schema}.invoice_lines"

    def validate(self, row: dict):
        super().validate(row)
        kind = row.get("identity_kind")
        if kind not in (DRAFT, BOOKED):
            raise ValidationError(f"invoices: unknown identity kind {kind!r}")
        if identity_number(row) is None:
            field = "draft_invoice_number" if kind == DRAFT else "invoice_number"
            raise ValidationError(f"invoices: missing natural key field(s) {field}")

    def find_by_natural_key(
        self,
        number: int,
        customer_number: int,
        agreement_number: int,
        kind: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Find an invoice by number, customer and agreement.

        With ``kind`` the number is matched against that identity only;
        without it either the booked or the draft number may match.
        """
        if kind is not None:
            return self.find_by_identity(kind, number, customer_number, agreement_number)
        return self.db.query_one(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE (invoice_number = %(number)s OR draft_invoice_number = %(number)s)
              AND customer_number = %(customer_number)s
              AND agreement_number = %(agreement_number)s
            ORDER BY (identity_kind = 'booked') DESC, updated_at DESC, id DESC
            LIMIT 1
            """,
            {"number": number, "customer_number": customer_number, "agreement_number": agreement_number},
        )

    def find_by_identity(
        self,
        kind: str,
        number: int,
        customer_number: int,
        agreement_number: int,
        db: Optional[Database] = None,
    ) -> Optional[dict]:
        db = db or self.db
        number_column = "draft_invoice_number" if kind == DRAFT else "invoice_number"
        return db.query_one(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE identity_kind = %(kind)s
              AND {number_column} = %(number)s
              AND customer_number = %(customer_number)s
              AND agreement_number = %(agreement_number)s
            ORDER BY updated_at DESC, id DESC
            LIMIT 1
            """,
            {
                "kind": kind,
                "number": number,
                "customer_number": customer_number,
                "agreement_number": agreement_number,
            },
        )

    def _find_existing(self, db: Database, row: dict) -> Optional[dict]:
        kind = row["identity_kind"]
        customer_number = row["customer_number"]
        agreement_number = row["agreement_number"]

        existing = self.find_by_identity(kind, identity_number(row), customer_number, agreement_number, db)
        if existing:
            return existing

        draft_number = row.get("draft_invoice_number")
        if draft_number is None:
            return None
        if kind == BOOKED:
            # Draft -> Booked promotion: the booked record names its draft
            return self.find_by_identity(DRAFT, draft_number, customer_number, agreement_number, db)
        # A draft snapshot for an invoice that has already been booked
        return db.query_one(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE identity_kind = 'booked'
              AND draft_invoice_number = %s
              AND customer_number = %s
              AND agreement_number = %s
            ORDER BY updated_at DESC, id DESC
            LIMIT 1
            """,
            (draft_number, customer_number, agreement_number),
        )

    def merge(self, existing: dict, row: dict) -> dict:
        """
        Merge an incoming invoice into the stored one.

        - payment_status keeps the higher-precedence value
        - a booked invoice is never turned back into a draft
        - a draft promoted to booked keeps its draft number
        """
        if existing.get("identity_kind") == BOOKED and row.get("identity_kind") == DRAFT:
            logger.debug(
                f"Ignoring draft snapshot {row.get('draft_invoice_number')} "
                f"for booked invoice {existing.get('invoice_number')}"
            )
            return dict(existing)

        merged = dict(row)
        merged["payment_status"] = merge_payment_status(
            existing.get("payment_status"), row.get("payment_status")
        )
        if merged.get("draft_invoice_number") is None:
            merged["draft_invoice_number"] = existing.get("draft_invoice_number")
        if existing.get("identity_kind") == DRAFT and row.get("identity_kind") == BOOKED:
            logger.info(
                f"Promoting draft {existing.get('draft_invoice_number')} to booked invoice "
                f"{row.get('invoice_number')} (agreement {row.get('agreement_number')})"
            )
        return merged

    def _write(self, db: Database, row: dict) -> tuple[dict, bool]:
        stored, created = super()._write(db, row)
        lines = row.get("lines")
        # Lines of a stale draft snapshot never replace a booked invoice's lines
        if lines is not None and stored.get("identity_kind") == row.get("identity_kind"):
            self._replace_lines(db, stored["id"], lines)
        return stored, created

    def _replace_lines(self, db: Database, invoice_id: int, lines: list[dict]) -> int:
        db.execute(f"DELETE FROM {self.lines_table} WHERE invoice_id = %s", (invoice_id,))
        columns_str = ", ".join(("invoice_id",) + LINE_COLUMNS)
        placeholders = ", ".join(["%(invoice_id)s"] + [f"%({c})s" for c in LINE_COLUMNS])
        for line in lines:
            params = {c: line.get(c) for c in LINE_COLUMNS}
            params["invoice_id"] = invoice_id
            db.execute(
                f"INSERT INTO {self.lines_table} ({columns_str}) VALUES ({placeholders})",
                params,
            )
        return len(lines)

    def replace_lines(self, invoice_id: int, lines: list[dict]) -> int:
        """Replace every line of an invoice with ``lines`` in one transaction."""
        with self.db.transaction() as tx:
            return self._replace_lines(tx, invoice_id, lines)

    def _dedupe_source(self) -> str:
        return f"""(
            SELECT *,
                   CASE WHEN identity_kind = 'draft' THEN draft_invoice_number
                        ELSE invoice_number END AS identity_number
            FROM {self.qualified_table}
        )"""

    # Read paths

    def get_by_id(self, invoice_id: int) -> Optional[dict]:
        return self.db.query_one(
            f"SELECT * FROM {self.qualified_table} WHERE id = %s",
            (invoice_id,),
        )

    def get_lines(self, invoice_id: int) -> list[dict]:
        return self.db.query(
            f"SELECT * FROM {self.lines_table} WHERE invoice_id = %s ORDER BY line_number",
            (invoice_id,),
        )

    def search(
        self,
        filters: Optional[dict] = None,
        sort_by: str = "date",
        sort_order: str = "DESC",
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        """
        Filter, sort and paginate invoices.

        Supported filters: customer_number, agreement_number, payment_status,
        invoice_type, identity_kind, date_from, date_to.
        """
        filters = filters or {}
        where = []
        params: dict[str, Any] = {}
        for col in ("customer_number", "agreement_number", "payment_status", "invoice_type", "identity_kind"):
            if filters.get(col) is not None:
                where.append(f"{col} = %({col})s")
                params[col] = filters[col]
        if filters.get("date_from") is not None:
            where.append("invoice_date >= %(date_from)s")
            params["date_from"] = filters["date_from"]
        if filters.get("date_to") is not None:
            where.append("invoice_date <= %(date_to)s")
            params["date_to"] = filters["date_to"]
        where_str = f"WHERE {' AND '.join(where)}" if where else ""

        sort_column = SORTABLE_COLUMNS.get(sort_by, "invoice_date")
        direction = "ASC" if str(sort_order).upper() == "ASC" else "DESC"
        page = max(int(page), 1)
        limit = max(int(limit), 1)

        count = self.db.query_one(
            f"SELECT COUNT(*) AS total FROM {self.qualified_table} {where_str}",
            params,
        )
        total = count["total"] if count else 0

        params["limit"] = limit
        params["offset"] = (page - 1) * limit
        data = self.db.query(
            f"""
            SELECT * FROM {self.qualified_table} {where_str}
            ORDER BY {sort_column} {direction} NULLS LAST, id {direction}
            LIMIT %(limit)s OFFSET %(offset)s
            """,
            params,
        )
        return {
            "data": data,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": ceil(total / limit) if total else 0,
            },
        }
