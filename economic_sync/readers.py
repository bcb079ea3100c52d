"""
Read paths over the local store.

Readers never call the remote API directly. The one exception to
"read only what is stored" is account totals: when none are stored for
the requested period or year, the reader asks its ``lazy_sync`` callback
to fetch them once and then reads again.
"""
from __future__ import annotations
from typing import Callable, Optional
from loguru import logger

from .cache import ExpiringCache
from .errors import NotFoundError
from .stores import (
    AccountStore,
    AccountingEntryStore,
    AccountingPeriodStore,
    AccountingTotalStore,
    AccountingYearStore,
    InvoiceStore,
    SyncLogStore,
)

LazySync = Callable[[int, str, Optional[int]], None]


class InvoiceReader:
    def __init__(self, store: InvoiceStore):
        self.store = store

    def list_invoices(
        self,
        filters: Optional[dict] = None,
        sort_by: str = "date",
        sort_order: str = "DESC",
        page: int = 1,
        limit: int = 50,
    ) -> dict:
        return self.store.search(filters, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit)

    def get_invoice(self, invoice_id: int) -> dict:
        """Return the invoice with its ``lines``."""
        invoice = self.store.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return {**invoice, "lines": self.store.get_lines(invoice_id)}


class AccountingReader:
    """
    Years, periods, entries, totals and the chart of accounts of an agreement.

    Year, period and account lists are served through an expiring cache;
    ``invalidate()`` drops it after a sync.
    """

    def __init__(
        self,
        years: AccountingYearStore,
        periods: AccountingPeriodStore,
        entries: AccountingEntryStore,
        totals: AccountingTotalStore,
        accounts: AccountStore,
        cache_ttl: float = 0,
        lazy_sync: Optional[LazySync] = None,
    ):
        self.years = years
        self.periods = periods
        self.entries = entries
        self.totals = totals
        self.accounts = accounts
        self.lazy_sync = lazy_sync
        self.cache = ExpiringCache(cache_ttl)

    @classmethod
    def from_stores(cls, stores: dict, cache_ttl: float = 0, lazy_sync: Optional[LazySync] = None):
        return cls(
            stores["accounting_years"],
            stores["accounting_periods"],
            stores["accounting_entries"],
            stores["accounting_totals"],
            stores["accounts"],
            cache_ttl=cache_ttl,
            lazy_sync=lazy_sync,
        )

    def invalidate(self):
        self.cache.invalidate()

    def list_years(self, agreement_number: int) -> list[dict]:
        return self.cache.get_or_compute(
            ("years", agreement_number),
            lambda: self.years.list_by_agreement(agreement_number),
        )

    def get_year(self, agreement_number: int, year: str) -> dict:
        row = self.years.find_by_natural_key(agreement_number, year)
        if not row:
            raise NotFoundError(f"Accounting year {year} not found for agreement {agreement_number}")
        return row

    def list_periods(self, agreement_number: int, year: str) -> list[dict]:
        self.get_year(agreement_number, year)
        return self.cache.get_or_compute(
            ("periods", agreement_number, year),
            lambda: self.periods.list_by_agreement(agreement_number, year=year),
        )

    def get_period(self, agreement_number: int, year: str, period_number: int) -> dict:
        row = self.periods.find_by_natural_key(agreement_number, year, period_number)
        if not row:
            raise NotFoundError(
                f"Accounting period {year}/{period_number} not found for agreement {agreement_number}"
            )
        return row

    def entries_by_period(
        self, agreement_number: int, year: str, period_number: int, page: int = 1, limit: int = 100
    ) -> dict:
        self.get_period(agreement_number, year, period_number)
        return self.entries.entries_by_period(agreement_number, year, period_number, page, limit)

    def entries_by_account(
        self, agreement_number: int, year: str, account_number: int, page: int = 1, limit: int = 100
    ) -> dict:
        self.get_year(agreement_number, year)
        return self.entries.entries_by_account(agreement_number, year, account_number, page, limit)

    def _totals(self, agreement_number: int, year: str, period_number: Optional[int]) -> list[dict]:
        rows = self.totals.totals_for(agreement_number, year, period_number)
        if rows or self.lazy_sync is None:
            return rows

        def sync_once() -> bool:
            scope = f"{year}/{period_number}" if period_number is not None else year
            logger.info(f"No totals stored for {scope} (agreement {agreement_number}), syncing on demand")
            self.lazy_sync(agreement_number, year, period_number)
            return True

        # A scope the remote has no totals for is synced once per cache ttl
        self.cache.get_or_compute(("totals_synced", agreement_number, year, period_number), sync_once)
        return self.totals.totals_for(agreement_number, year, period_number)

    def totals_by_period(self, agreement_number: int, year: str, period_number: int) -> list[dict]:
        self.get_period(agreement_number, year, period_number)
        return self._totals(agreement_number, year, period_number)

    def totals_by_year(self, agreement_number: int, year: str) -> list[dict]:
        self.get_year(agreement_number, year)
        return self._totals(agreement_number, year, None)

    def list_accounts(self, agreement_number: int) -> list[dict]:
        return self.cache.get_or_compute(
            ("accounts", agreement_number),
            lambda: self.accounts.list_by_agreement(agreement_number),
        )

    def get_account(self, agreement_number: int, account_number: int) -> dict:
        row = self.accounts.find_by_natural_key(agreement_number, account_number)
        if not row:
            raise NotFoundError(f"Account {account_number} not found for agreement {agreement_number}")
        return row


def recent_sync_logs(sync_log: SyncLogStore, limit: int = 10) -> list[dict]:
    return sync_log.recent(limit)
