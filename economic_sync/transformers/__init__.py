"""
Record transformers for e-conomic data.

Pure functions mapping one API record to one local row:
- Invoices: drafts, booked listings, invoice lines
- Accounting: years, periods, entries, totals
- Masters: accounts, customers, products, suppliers, etc.
"""

from .base import nested, parse_date, parse_float, parse_int, parse_bool, parse_text
from .invoices import (
    PAYMENT_STATUS_PRIORITY,
    UNKNOWN_CUSTOMER,
    derive_payment_status,
    merge_payment_status,
    transform_invoice,
    transform_invoice_lines,
)
from .accounting import (
    transform_accounting_year,
    transform_accounting_period,
    transform_accounting_entry,
    transform_accounting_total,
)
from .masters import (
    transform_account,
    transform_customer,
    transform_payment_term,
    transform_product_group,
    transform_product,
    transform_supplier_group,
    transform_supplier,
    transform_vat_account,
)

__all__ = [
    # Base
    "nested",
    "parse_date",
    "parse_float",
    "parse_int",
    "parse_bool",
    "parse_text",
    # Invoices
    "PAYMENT_STATUS_PRIORITY",
    "UNKNOWN_CUSTOMER",
    "derive_payment_status",
    "merge_payment_status",
    "transform_invoice",
    "transform_invoice_lines",
    # Accounting
    "transform_accounting_year",
    "transform_accounting_period",
    "transform_accounting_entry",
    "transform_accounting_total",
    # Masters
    "transform_account",
    "transform_customer",
    "transform_payment_term",
    "transform_product_group",
    "transform_product",
    "transform_supplier_group",
    "transform_supplier",
    "transform_vat_account",
]
