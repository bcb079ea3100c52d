"""
Accounting hierarchy transformers: years, periods, entries and totals.

Child transformers take the parent keys (``year``, ``period_number``)
from the context rather than from the record, since the API only
exposes them in the request path.
"""
from __future__ import annotations

from .base import nested, parse_bool, parse_date, parse_float, parse_int, parse_text


def transform_accounting_year(record: dict, context: dict) -> dict:
    return {
        "year": parse_text(record.get("year")),
        "agreement_number": context.get("agreement_number"),
        "from_date": parse_date(record.get("fromDate")),
        "to_date": parse_date(record.get("toDate")),
        "closed": parse_bool(record.get("closed")),
        "self_url": record.get("self"),
    }


def transform_accounting_period(record: dict, context: dict) -> dict:
    return {
        "period_number": parse_int(record.get("periodNumber")),
        "year": context.get("year"),
        "agreement_number": context.get("agreement_number"),
        "from_date": parse_date(record.get("fromDate")),
        "to_date": parse_date(record.get("toDate")),
        "barred": parse_bool(record.get("barred")),
        "self_url": record.get("self"),
    }


def transform_accounting_entry(record: dict, context: dict) -> dict:
    return {
        "entry_number": parse_int(record.get("entryNumber")),
        "year": context.get("year"),
        "period_number": context.get("period_number"),
        "agreement_number": context.get("agreement_number"),
        "account_number": parse_int(nested(record, "account", "accountNumber")),
        "amount": parse_float(record.get("amount")),
        "amount_in_base_currency": parse_float(record.get("amountInBaseCurrency")),
        "currency": record.get("currency"),
        "entry_date": parse_date(record.get("date")),
        "entry_text": record.get("text"),
        "entry_type": record.get("entryType"),
        "voucher_number": parse_int(record.get("voucherNumber")),
        "self_url": record.get("self"),
    }


def transform_accounting_total(record: dict, context: dict) -> dict:
    """
    Transform an account total for a period or for a whole year.

    Year-level totals carry ``period_number`` None and ``is_year_total``
    True instead of a reserved period number.
    """
    is_year_total = bool(context.get("is_year_total"))
    return {
        "account_number": parse_int(nested(record, "account", "accountNumber")),
        "year": context.get("year"),
        "period_number": None if is_year_total else context.get("period_number"),
        "is_year_total": is_year_total,
        "agreement_number": context.get("agreement_number"),
        "total_in_base_currency": parse_float(record.get("totalInBaseCurrency")),
        "from_date": parse_date(record.get("fromDate")),
        "to_date": parse_date(record.get("toDate")),
    }
