"""Tests for read paths."""
from unittest.mock import Mock

import pytest

from economic_sync.errors import NotFoundError, TransportError
from economic_sync.readers import AccountingReader, InvoiceReader, recent_sync_logs


@pytest.fixture
def stores():
    return {
        "accounting_years": Mock(),
        "accounting_periods": Mock(),
        "accounting_entries": Mock(),
        "accounting_totals": Mock(),
        "accounts": Mock(),
    }


class TestInvoiceReader:
    def test_get_invoice_with_lines(self):
        store = Mock()
        store.get_by_id.return_value = {"id": 5, "invoice_number": 20001}
        store.get_lines.return_value = [{"line_number": 1}]
        invoice = InvoiceReader(store).get_invoice(5)
        assert invoice == {"id": 5, "invoice_number": 20001, "lines": [{"line_number": 1}]}

    def test_missing_invoice(self):
        store = Mock()
        store.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            InvoiceReader(store).get_invoice(5)

    def test_list_invoices_delegates(self):
        store = Mock()
        InvoiceReader(store).list_invoices({"customer_number": 42}, sort_by="due_date", page=2, limit=10)
        store.search.assert_called_once_with(
            {"customer_number": 42}, sort_by="due_date", sort_order="DESC", page=2, limit=10
        )


class TestAccountingReader:
    def test_missing_year(self, stores):
        stores["accounting_years"].find_by_natural_key.return_value = None
        reader = AccountingReader.from_stores(stores)
        with pytest.raises(NotFoundError):
            reader.get_year(555, "2030")
        with pytest.raises(NotFoundError):
            reader.list_periods(555, "2030")

    def test_missing_period(self, stores):
        stores["accounting_periods"].find_by_natural_key.return_value = None
        reader = AccountingReader.from_stores(stores)
        with pytest.raises(NotFoundError):
            reader.entries_by_period(555, "2024", 13)
        stores["accounting_entries"].entries_by_period.assert_not_called()

    def test_missing_account(self, stores):
        stores["accounts"].find_by_natural_key.return_value = None
        with pytest.raises(NotFoundError):
            AccountingReader.from_stores(stores).get_account(555, 9999)

    def test_entries_by_account(self, stores):
        stores["accounting_years"].find_by_natural_key.return_value = {"year": "2024"}
        stores["accounting_entries"].entries_by_account.return_value = {"data": [], "pagination": {}}
        reader = AccountingReader.from_stores(stores)
        reader.entries_by_account(555, "2024", 1010, page=2, limit=20)
        stores["accounting_entries"].entries_by_account.assert_called_once_with(555, "2024", 1010, 2, 20)

    def test_stored_totals_do_not_trigger_sync(self, stores):
        stores["accounting_periods"].find_by_natural_key.return_value = {"period_number": 1}
        stores["accounting_totals"].totals_for.return_value = [{"account_number": 1010}]
        lazy_sync = Mock()
        reader = AccountingReader.from_stores(stores, lazy_sync=lazy_sync)
        assert reader.totals_by_period(555, "2024", 1) == [{"account_number": 1010}]
        lazy_sync.assert_not_called()

    def test_missing_totals_are_synced_on_demand(self, stores):
        stores["accounting_years"].find_by_natural_key.return_value = {"year": "2024"}
        stores["accounting_totals"].totals_for.side_effect = [[], [{"account_number": 1010}]]
        lazy_sync = Mock()
        reader = AccountingReader.from_stores(stores, lazy_sync=lazy_sync)

        assert reader.totals_by_year(555, "2024") == [{"account_number": 1010}]
        lazy_sync.assert_called_once_with(555, "2024", None)
        assert stores["accounting_totals"].totals_for.call_count == 2

    def test_empty_remote_totals_are_synced_once_per_ttl(self, stores):
        stores["accounting_periods"].find_by_natural_key.return_value = {"period_number": 4}
        stores["accounting_totals"].totals_for.return_value = []
        lazy_sync = Mock()
        reader = AccountingReader.from_stores(stores, cache_ttl=60, lazy_sync=lazy_sync)

        assert reader.totals_by_period(555, "2024", 4) == []
        assert reader.totals_by_period(555, "2024", 4) == []
        lazy_sync.assert_called_once_with(555, "2024", 4)

        reader.totals_by_period(555, "2024", 5)
        assert lazy_sync.call_count == 2

        reader.invalidate()
        reader.totals_by_period(555, "2024", 4)
        assert lazy_sync.call_count == 3

    def test_failed_lazy_sync_is_retried_on_next_read(self, stores):
        stores["accounting_years"].find_by_natural_key.return_value = {"year": "2024"}
        stores["accounting_totals"].totals_for.return_value = []
        lazy_sync = Mock(side_effect=[TransportError("timeout"), None])
        reader = AccountingReader.from_stores(stores, cache_ttl=60, lazy_sync=lazy_sync)

        with pytest.raises(TransportError):
            reader.totals_by_year(555, "2024")
        assert reader.totals_by_year(555, "2024") == []
        assert lazy_sync.call_count == 2

    def test_without_lazy_sync_empty_totals_are_returned(self, stores):
        stores["accounting_periods"].find_by_natural_key.return_value = {"period_number": 1}
        stores["accounting_totals"].totals_for.return_value = []
        assert AccountingReader.from_stores(stores).totals_by_period(555, "2024", 1) == []

    def test_year_list_is_cached(self, stores):
        stores["accounting_years"].list_by_agreement.return_value = [{"year": "2024"}]
        reader = AccountingReader.from_stores(stores, cache_ttl=60)
        reader.list_years(555)
        reader.list_years(555)
        assert stores["accounting_years"].list_by_agreement.call_count == 1
        reader.invalidate()
        reader.list_years(555)
        assert stores["accounting_years"].list_by_agreement.call_count == 2


def test_recent_sync_logs():
    sync_log = Mock()
    sync_log.recent.return_value = [{"id": 1}]
    assert recent_sync_logs(sync_log, 3) == [{"id": 1}]
    sync_log.recent.assert_called_once_with(3)
