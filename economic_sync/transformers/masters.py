"""
Master data transformers.

Supports all master types:
- Accounts
- Customers
- Payment terms
- Product groups
- Products
- Supplier groups
- Suppliers
- VAT accounts
"""
from __future__ import annotations

from .base import nested, parse_bool, parse_date, parse_float, parse_int, parse_text


def transform_account(record: dict, context: dict) -> dict:
    return {
        "account_number": parse_int(record.get("accountNumber")),
        "agreement_number": context.get("agreement_number"),
        "account_type": record.get("accountType"),
        "name": record.get("name"),
        "balance": parse_float(record.get("balance")),
        "debit_credit": record.get("debitCredit"),
        "block_direct_entries": parse_bool(record.get("blockDirectEntries")),
        "vat_code": parse_text(nested(record, "vatAccount", "vatCode")),
        "self_url": record.get("self"),
    }


def transform_customer(record: dict, context: dict) -> dict:
    return {
        "customer_number": parse_int(record.get("customerNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "currency": record.get("currency"),
        "email": record.get("email"),
        "address": record.get("address"),
        "zip": record.get("zip"),
        "city": record.get("city"),
        "country": record.get("country"),
        "corporate_identification_number": record.get("corporateIdentificationNumber"),
        "customer_group_number": parse_int(nested(record, "customerGroup", "customerGroupNumber")),
        "payment_terms_number": parse_int(nested(record, "paymentTerms", "paymentTermsNumber")),
        "balance": parse_float(record.get("balance")),
        "barred": parse_bool(record.get("barred")),
        "self_url": record.get("self"),
    }


def transform_payment_term(record: dict, context: dict) -> dict:
    return {
        "payment_terms_number": parse_int(record.get("paymentTermsNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "days_of_credit": parse_int(record.get("daysOfCredit")),
        "payment_terms_type": record.get("paymentTermsType"),
        "description": record.get("description"),
        "self_url": record.get("self"),
    }


def transform_product_group(record: dict, context: dict) -> dict:
    return {
        "product_group_number": parse_int(record.get("productGroupNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "sales_account_number": parse_int(
            nested(record, "accrual", "accountNumber")
            or nested(record, "salesAccount", "accountNumber")
        ),
        "self_url": record.get("self"),
    }


def transform_product(record: dict, context: dict) -> dict:
    return {
        "product_number": parse_text(record.get("productNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "description": record.get("description"),
        "cost_price": parse_float(record.get("costPrice"), default=None),
        "recommended_price": parse_float(record.get("recommendedPrice"), default=None),
        "sales_price": parse_float(record.get("salesPrice"), default=None),
        "barred": parse_bool(record.get("barred")),
        "product_group_number": parse_int(nested(record, "productGroup", "productGroupNumber")),
        "unit_name": parse_text(nested(record, "unit", "name")),
        "last_updated": parse_date(record.get("lastUpdated")),
        "self_url": record.get("self"),
    }


def transform_supplier_group(record: dict, context: dict) -> dict:
    return {
        "supplier_group_number": parse_int(record.get("supplierGroupNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "account_number": parse_int(nested(record, "account", "accountNumber")),
        "self_url": record.get("self"),
    }


def transform_supplier(record: dict, context: dict) -> dict:
    return {
        "supplier_number": parse_int(record.get("supplierNumber")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "address": record.get("address"),
        "zip": record.get("zip"),
        "city": record.get("city"),
        "country": record.get("country"),
        "email": record.get("email"),
        "phone": record.get("phone"),
        "currency": record.get("currency"),
        "corporate_identification_number": record.get("corporateIdentificationNumber"),
        "supplier_group_number": parse_int(nested(record, "supplierGroup", "supplierGroupNumber")),
        "payment_terms_number": parse_int(nested(record, "paymentTerms", "paymentTermsNumber")),
        "vat_zone_number": parse_int(nested(record, "vatZone", "vatZoneNumber")),
        "barred": parse_bool(record.get("barred")),
        "self_url": record.get("self"),
    }


def transform_vat_account(record: dict, context: dict) -> dict:
    return {
        "vat_code": parse_text(record.get("vatCode")),
        "agreement_number": context.get("agreement_number"),
        "name": record.get("name"),
        "vat_percentage": parse_float(record.get("ratePercentage", record.get("vatPercentage")), default=None),
        "account_number": parse_int(nested(record, "account", "accountNumber")),
        "contra_account_number": parse_int(nested(record, "contraAccount", "accountNumber")),
        "vat_type_name": parse_text(nested(record, "vatType", "name")),
        "barred": parse_bool(record.get("barred")),
        "self_url": record.get("self"),
    }
