"""
Remote API endpoint paths.

Collection paths are relative to the configured API base URL.
"""
from __future__ import annotations
from typing import Optional

from .errors import ValidationError

SELF = "/self"

# Invoice listings, one per remote invoice state
INVOICES_DRAFTS = "/invoices/drafts"
INVOICES_BOOKED = "/invoices/booked"
INVOICES_PAID = "/invoices/paid"
INVOICES_UNPAID = "/invoices/unpaid"
INVOICES_OVERDUE = "/invoices/overdue"
INVOICES_NOT_DUE = "/invoices/not-due"

INVOICE_LISTINGS = {
    "draft": INVOICES_DRAFTS,
    "booked": INVOICES_BOOKED,
    "paid": INVOICES_PAID,
    "unpaid": INVOICES_UNPAID,
    "overdue": INVOICES_OVERDUE,
    "not_due": INVOICES_NOT_DUE,
}

# Master data
ACCOUNTS = "/accounts"
CUSTOMERS = "/customers"
PAYMENT_TERMS = "/payment-terms"
PRODUCT_GROUPS = "/product-groups"
PRODUCTS = "/products"
SUPPLIER_GROUPS = "/supplier-groups"
SUPPLIERS = "/suppliers"
VAT_ACCOUNTS = "/vat-accounts"

# Accounting hierarchy
ACCOUNTING_YEARS = "/accounting-years"


def year_id(year: str, self_url: Optional[str] = None) -> str:
    """
    Path segment addressing an accounting year.

    Calendar years are addressed by their label ("2024"). Years spanning two
    calendar years are labelled "2019/2020" but addressed by the id at the
    end of their ``self`` link ("2019_6_2020").
    """
    if self_url:
        return self_url.rstrip("/").rsplit("/", 1)[-1]
    if "/" in year:
        raise ValidationError(f"Accounting year {year} cannot be addressed without its self link")
    return year


def accounting_periods(year_id: str) -> str:
    return f"{ACCOUNTING_YEARS}/{year_id}/periods"


def accounting_period_entries(year_id: str, period_number: int) -> str:
    return f"{ACCOUNTING_YEARS}/{year_id}/periods/{period_number}/entries"


def accounting_period_totals(year_id: str, period_number: int) -> str:
    return f"{ACCOUNTING_YEARS}/{year_id}/periods/{period_number}/totals"


def accounting_year_totals(year_id: str) -> str:
    return f"{ACCOUNTING_YEARS}/{year_id}/totals"
