"""Tests for the generic natural-key store and the sync log."""
from unittest.mock import call

import pytest

from economic_sync.errors import ValidationError
from economic_sync.stores import (
    AccountingTotalStore,
    CustomerStore,
    SyncLogStore,
    build_stores,
    STORE_CLASSES,
)
from economic_sync.stores.agreements import AgreementStore


def customer_row(number=42, name="Acme"):
    return {
        "customer_number": number,
        "agreement_number": 555,
        "name": name,
        "currency": "DKK",
        "balance": 0.0,
        "barred": False,
    }


def scripted_writes(db, existing=None):
    """Answer lookups with ``existing`` and echo every insert/update back with an id."""
    next_id = iter(range(100, 10000))

    def query_one(sql, params=None):
        if "INSERT INTO" in sql:
            return {**params, "id": next(next_id)}
        if "UPDATE" in sql:
            return dict(params)
        return existing

    db.query_one.side_effect = query_one


class TestEntityStoreUpsert:
    """Insert-or-update by natural key."""

    def test_upsert_twice_inserts_then_updates(self, db):
        store = CustomerStore(db)
        row = customer_row()

        scripted_writes(db, existing=None)
        assert store.batch_upsert([row]) == {"inserted": 1, "updated": 0}

        scripted_writes(db, existing={"id": 100, **row})
        assert store.batch_upsert([row]) == {"inserted": 0, "updated": 1}

        sql, params = db.query_one.call_args.args
        assert "UPDATE economic.customers" in sql
        assert "updated_at = NOW()" in sql
        assert params["id"] == 100
        assert params["name"] == "Acme"

    def test_upsert_returns_stored_row(self, db):
        store = CustomerStore(db)
        scripted_writes(db, existing=None)
        stored = store.upsert(customer_row())
        assert stored["id"] == 100
        db.transaction.assert_called_once()

    def test_lookup_uses_natural_key(self, db):
        store = CustomerStore(db)
        scripted_writes(db, existing=None)
        store.upsert(customer_row(number=7))
        lookup_sql, lookup_params = db.query_one.call_args_list[0].args
        assert "agreement_number = %(agreement_number)s AND customer_number = %(customer_number)s" in lookup_sql
        assert lookup_params == {"agreement_number": 555, "customer_number": 7}

    def test_validation_happens_before_any_write(self, db):
        store = CustomerStore(db)
        rows = [customer_row(1), customer_row(None)]
        with pytest.raises(ValidationError, match="customer_number"):
            store.batch_upsert(rows)
        db.transaction.assert_not_called()
        db.query_one.assert_not_called()

    def test_missing_agreement_number_is_rejected(self, db):
        store = CustomerStore(db)
        row = customer_row()
        row["agreement_number"] = None
        with pytest.raises(ValidationError, match="agreement_number"):
            store.upsert(row)
        db.query_one.assert_not_called()

    def test_chunks_get_their_own_transaction(self, db):
        store = CustomerStore(db, batch_size=2)
        scripted_writes(db, existing=None)
        chunks = []
        result = store.batch_upsert([customer_row(n) for n in range(1, 6)], on_chunk=chunks.append)
        assert result == {"inserted": 5, "updated": 0}
        assert chunks == [2, 2, 1]
        assert db.transaction.call_count == 3

    def test_failed_chunk_reports_only_committed_chunks(self, db):
        store = CustomerStore(db, batch_size=2)
        calls = {"inserts": 0}

        def query_one(sql, params=None):
            if "INSERT INTO" in sql:
                calls["inserts"] += 1
                if calls["inserts"] == 3:
                    raise RuntimeError("disk full")
                return {**params, "id": calls["inserts"]}
            return None

        db.query_one.side_effect = query_one
        chunks = []
        with pytest.raises(RuntimeError):
            store.batch_upsert([customer_row(n) for n in range(1, 5)], on_chunk=chunks.append)
        assert chunks == [2]

    def test_empty_batch(self, db):
        assert CustomerStore(db).batch_upsert([]) == {"inserted": 0, "updated": 0}
        db.transaction.assert_not_called()


class TestEntityStoreQueries:
    def test_find_by_natural_key_checks_arity(self, db):
        with pytest.raises(ValueError):
            CustomerStore(db).find_by_natural_key(555)

    def test_find_by_natural_key(self, db):
        db.query_one.return_value = {"id": 3}
        assert CustomerStore(db).find_by_natural_key(555, 42) == {"id": 3}
        assert db.query_one.call_args.args[1] == {"agreement_number": 555, "customer_number": 42}

    def test_nullable_key_uses_is_not_distinct_from(self, db):
        predicate = AccountingTotalStore(db)._key_predicate()
        assert "period_number IS NOT DISTINCT FROM %(period_number)s" in predicate
        assert "year = %(year)s" in predicate

    def test_year_total_rows_need_no_period(self, db):
        store = AccountingTotalStore(db)
        store.validate({"agreement_number": 555, "year": "2024", "period_number": None, "account_number": 1010})

    def test_list_by_agreement_filters(self, db):
        store = AccountingTotalStore(db)
        store.list_by_agreement(555, year="2024", period_number=None)
        sql, params = db.query.call_args.args
        assert "year = %(year)s" in sql
        assert "period_number IS NOT DISTINCT FROM %(period_number)s" in sql
        assert params == {"agreement_number": 555, "year": "2024", "period_number": None}

    def test_list_by_agreement_rejects_unknown_column(self, db):
        with pytest.raises(ValueError):
            CustomerStore(db).list_by_agreement(555, password="x")

    def test_find_duplicate_rows_partitions_by_key(self, db):
        CustomerStore(db).find_duplicate_rows(555)
        sql, params = db.query.call_args.args
        assert "COUNT(*) OVER (PARTITION BY agreement_number, customer_number)" in sql
        assert "copies > 1" in sql
        assert params == (555,)

    def test_delete_ids(self, db):
        db.execute.return_value = 2
        assert CustomerStore(db).delete_ids([4, 5]) == 2
        sql, params = db.execute.call_args.args
        assert "DELETE FROM economic.customers WHERE id = ANY(%s)" in sql
        assert params == ([4, 5],)

    def test_delete_nothing(self, db):
        assert CustomerStore(db).delete_ids([]) == 0
        db.execute.assert_not_called()

    def test_build_stores(self, db):
        stores = build_stores(db)
        assert set(stores) == set(STORE_CLASSES)
        assert all(store.db is db for store in stores.values())
        assert stores["customers"].qualified_table == "economic.customers"


class TestSyncLogStore:
    """The sync log is best effort."""

    def test_record_inserts_entry(self, db):
        entry = SyncLogStore(db).record("customers", record_count=3, agreement_number=555)
        assert entry["status"] == "success"
        assert entry["record_count"] == 3
        assert entry["duration_ms"] >= 0
        sql, params = db.execute.call_args.args
        assert "INSERT INTO economic.sync_logs" in sql
        assert params["entity"] == "customers"

    def test_record_failure_is_swallowed(self, db):
        db.execute.side_effect = RuntimeError("sync_logs is gone")
        assert SyncLogStore(db).record("customers", status="error", error_message="boom") is None

    def test_recent(self, db):
        db.query.return_value = [{"id": 1}]
        assert SyncLogStore(db).recent(5) == [{"id": 1}]
        assert db.query.call_args.args[1] == (5,)


class TestAgreementStore:
    def test_list_active_only(self, db):
        AgreementStore(db).list()
        assert "WHERE is_active" in db.query.call_args.args[0]

    def test_list_all(self, db):
        AgreementStore(db).list(active_only=False)
        assert "WHERE" not in db.query.call_args.args[0]

    def test_update_rejects_unknown_column(self, db):
        with pytest.raises(ValueError):
            AgreementStore(db).update(1, id=5)

    def test_update(self, db):
        db.query_one.return_value = {"id": 1, "is_active": False}
        assert AgreementStore(db).update(1, is_active=False) == {"id": 1, "is_active": False}
        sql, params = db.query_one.call_args.args
        assert "is_active = %(is_active)s" in sql
        assert params == {"is_active": False, "id": 1}

    def test_delete(self, db):
        db.execute.return_value = 0
        assert AgreementStore(db).delete(9) is False
        assert db.execute.call_args == call("DELETE FROM economic.agreements WHERE id = %s", (9,))
