"""
Database stores for e-conomic data.

This module contains the stores that persist data into PostgreSQL:
- Generic natural-key upsert engine and sync log
- Invoice store with identity promotion and status precedence
- Accounting hierarchy stores
- Master data stores
- Agreement store
"""
from __future__ import annotations
from typing import Optional

from .base import Database, EntityStore, SyncLogStore, get_connection
from .invoices import InvoiceStore
from .accounting import (
    AccountingYearStore,
    AccountingPeriodStore,
    AccountingEntryStore,
    AccountingTotalStore,
)
from .masters import (
    AccountStore,
    CustomerStore,
    PaymentTermStore,
    ProductGroupStore,
    ProductStore,
    SupplierGroupStore,
    SupplierStore,
    VatAccountStore,
)
from .agreements import AgreementStore

STORE_CLASSES: dict[str, type[EntityStore]] = {
    "payment_terms": PaymentTermStore,
    "product_groups": ProductGroupStore,
    "products": ProductStore,
    "vat_accounts": VatAccountStore,
    "supplier_groups": SupplierGroupStore,
    "suppliers": SupplierStore,
    "customers": CustomerStore,
    "accounts": AccountStore,
    "accounting_years": AccountingYearStore,
    "accounting_periods": AccountingPeriodStore,
    "accounting_entries": AccountingEntryStore,
    "accounting_totals": AccountingTotalStore,
    "invoices": InvoiceStore,
}


def build_stores(db: Database, schema: Optional[str] = None) -> dict[str, EntityStore]:
    """Instantiate one store per entity table, all sharing ``db``."""
    return {name: cls(db, schema) for name, cls in STORE_CLASSES.items()}


__all__ = [
    "Database",
    "EntityStore",
    "SyncLogStore",
    "get_connection",
    "InvoiceStore",
    "AccountingYearStore",
    "AccountingPeriodStore",
    "AccountingEntryStore",
    "AccountingTotalStore",
    "AccountStore",
    "CustomerStore",
    "PaymentTermStore",
    "ProductGroupStore",
    "ProductStore",
    "SupplierGroupStore",
    "SupplierStore",
    "VatAccountStore",
    "AgreementStore",
    "STORE_CLASSES",
    "build_stores",
]
