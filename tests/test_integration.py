"""
Integration tests against a real PostgreSQL (15+).

Set TEST_DB_URL to run them; each test gets a fresh schema.
"""
import os
from datetime import datetime, timezone
import uuid

import psycopg
import pytest

from economic_sync.cleanup import cleanup_duplicates
from economic_sync.stores import (
    AccountingEntryStore,
    AccountingPeriodStore,
    AccountingTotalStore,
    AccountingYearStore,
    AgreementStore,
    CustomerStore,
    Database,
    InvoiceStore,
    SyncLogStore,
)

from conftest import make_config

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("TEST_DB_URL"), reason="TEST_DB_URL not set"),
]


@pytest.fixture
def database():
    schema = f"economic_test_{uuid.uuid4().hex[:8]}"
    db = Database(make_config(db_url=os.getenv("TEST_DB_URL"), db_schema=schema))
    db.initialize_schema()
    yield db
    db.execute_ddl(f"DROP SCHEMA IF EXISTS {schema} CASCADE")
    db.close()


def count(db, table):
    return db.query_one(f"SELECT COUNT(*) AS n FROM {db.config.db_schema}.{table}")["n"]


def invoice(kind, number, draft=None, status="pending", lines=None):
    return {
        "identity_kind": kind,
        "invoice_number": number if kind == "booked" else None,
        "draft_invoice_number": draft if kind == "booked" else number,
        "customer_number": 42,
        "agreement_number": 555,
        "customer_name": "Acme",
        "gross_amount": 100.0,
        "payment_status": status,
        "invoice_type": kind,
        "lines": lines,
    }


class TestUpsertAgainstPostgres:
    def test_upsert_twice_keeps_one_row_and_its_id(self, database):
        store = CustomerStore(database)
        row = {"customer_number": 1, "agreement_number": 555, "name": "Acme", "barred": False}

        assert store.batch_upsert([row]) == {"inserted": 1, "updated": 0}
        first = store.find_by_natural_key(555, 1)
        assert store.batch_upsert([{**row, "name": "Acme ApS"}]) == {"inserted": 0, "updated": 1}
        second = store.find_by_natural_key(555, 1)

        assert count(database, "customers") == 1
        assert second["id"] == first["id"]
        assert second["name"] == "Acme ApS"

    def test_draft_promotion_and_status_precedence(self, database):
        store = InvoiceStore(database)
        store.upsert(invoice("draft", 12, lines=[{"line_number": 1, "description": "draft line"}]))
        store.upsert(invoice("booked", 20001, draft=12, status="overdue",
                             lines=[{"line_number": 1, "description": "booked line"}]))
        store.upsert(invoice("booked", 20001, status="pending"))
        # stale draft snapshot arriving after booking
        store.upsert(invoice("draft", 12, lines=[{"line_number": 1, "description": "stale"}]))

        assert count(database, "invoices") == 1
        row = store.find_by_natural_key(20001, 42, 555)
        assert row["identity_kind"] == "booked"
        assert row["draft_invoice_number"] == 12
        assert row["payment_status"] == "overdue"
        assert [line["description"] for line in store.get_lines(row["id"])] == ["booked line"]

    def test_year_totals_upsert_by_null_period(self, database):
        AccountingYearStore(database).upsert({"agreement_number": 555, "year": "2024", "closed": False})
        totals = AccountingTotalStore(database)
        row = {
            "agreement_number": 555,
            "year": "2024",
            "period_number": None,
            "is_year_total": True,
            "account_number": 1010,
            "total_in_base_currency": 10,
        }
        totals.upsert(row)
        totals.upsert({**row, "total_in_base_currency": 20})
        stored = totals.totals_for(555, "2024")
        assert len(stored) == 1
        assert float(stored[0]["total_in_base_currency"]) == 20.0

    def test_entries_need_their_period(self, database):
        AccountingYearStore(database).upsert({"agreement_number": 555, "year": "2024", "closed": False})
        AccountingPeriodStore(database).upsert({"agreement_number": 555, "year": "2024", "period_number": 1, "barred": False})
        entries = AccountingEntryStore(database)
        entries.upsert({"agreement_number": 555, "year": "2024", "period_number": 1, "entry_number": 1})
        with pytest.raises(psycopg.errors.ForeignKeyViolation):
            entries.upsert({"agreement_number": 555, "year": "2024", "period_number": 2, "entry_number": 2})
        assert count(database, "accounting_entries") == 1


class TestCleanupAgainstPostgres:
    def test_duplicate_invoices_collapse_to_newest(self, database):
        schema = database.config.db_schema
        for minutes in (10, 30, 20):
            database.execute(
                f"""
                INSERT INTO {schema}.invoices
                    (identity_kind, invoice_number, customer_number, agreement_number, updated_at)
                VALUES ('booked', 20001, 42, 555, TIMESTAMPTZ '2024-01-01 00:00:00+00' + %s * INTERVAL '1 minute')
                """,
                (minutes,),
            )
        AgreementStore(database).create("Acme", "grant-1", agreement_number=555)
        stores = {"invoices": InvoiceStore(database)}

        first = cleanup_duplicates(stores, [555], SyncLogStore(database))
        second = cleanup_duplicates(stores, [555], SyncLogStore(database))

        assert first["removed_count"] == 2
        assert second["removed_count"] == 0
        remaining = database.query(f"SELECT updated_at FROM {schema}.invoices")
        assert len(remaining) == 1
        assert remaining[0]["updated_at"] == datetime(2024, 1, 1, 0, 30, tzinfo=timezone.utc)
        assert count(database, "sync_logs") == 2
