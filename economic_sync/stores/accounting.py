"""
Accounting hierarchy stores.

Years, periods, entries and totals are keyed by
``(agreement_number, year[, period_number[, entry_number | account_number]])``.
Foreign keys reject a period without its year and an entry without its
period, so the sync engine always writes parents first.
"""
from __future__ import annotations
from math import ceil
from typing import Optional

from .base import EntityStore


class AccountingYearStore(EntityStore):
    table = "accounting_years"
    key_columns = ("agreement_number", "year")
    columns = ("from_date", "to_date", "closed", "self_url")
    default_order = "from_date DESC"


class AccountingPeriodStore(EntityStore):
    table = "accounting_periods"
    key_columns = ("agreement_number", "year", "period_number")
    columns = ("from_date", "to_date", "barred", "self_url")
    default_order = "period_number"


class AccountingEntryStore(EntityStore):
    table = "accounting_entries"
    key_columns = ("agreement_number", "year", "entry_number")
    columns = (
        "period_number",
        "account_number",
        "amount",
        "amount_in_base_currency",
        "currency",
        "entry_date",
        "entry_text",
        "entry_type",
        "voucher_number",
        "self_url",
    )
    default_order = "entry_date, entry_number"

    def _paginate(self, where: str, params: dict, page: int, limit: int) -> dict:
        page = max(int(page), 1)
        limit = max(int(limit), 1)
        count = self.db.query_one(
            f"SELECT COUNT(*) AS total FROM {self.qualified_table} WHERE {where}",
            params,
        )
        total = count["total"] if count else 0
        data = self.db.query(
            f"""
            SELECT * FROM {self.qualified_table}
            WHERE {where}
            ORDER BY {self.default_order}
            LIMIT %(limit)s OFFSET %(offset)s
            """,
            {**params, "limit": limit, "offset": (page - 1) * limit},
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

    def entries_by_period(
        self, agreement_number: int, year: str, period_number: int, page: int = 1, limit: int = 100
    ) -> dict:
        return self._paginate(
            "agreement_number = %(agreement_number)s AND year = %(year)s AND period_number = %(period_number)s",
            {"agreement_number": agreement_number, "year": year, "period_number": period_number},
            page,
            limit,
        )

    def entries_by_account(
        self, agreement_number: int, year: str, account_number: int, page: int = 1, limit: int = 100
    ) -> dict:
        return self._paginate(
            "agreement_number = %(agreement_number)s AND year = %(year)s AND account_number = %(account_number)s",
            {"agreement_number": agreement_number, "year": year, "account_number": account_number},
            page,
            limit,
        )


class AccountingTotalStore(EntityStore):
    """
    Account totals per period, or per year when ``is_year_total`` is set.

    Year totals store ``period_number`` as NULL, so the period column is
    compared with IS NOT DISTINCT FROM.
    """

    table = "accounting_totals"
    key_columns = ("agreement_number", "year", "period_number", "account_number")
    columns = ("is_year_total", "total_in_base_currency", "from_date", "to_date")
    nullable_keys = frozenset({"period_number"})
    default_order = "account_number"

    def totals_for(self, agreement_number: int, year: str, period_number: Optional[int] = None) -> list[dict]:
        """Totals of one period, or the year totals when ``period_number`` is None."""
        return self.list_by_agreement(agreement_number, year=year, period_number=period_number)
