"""
Master data stores.

Each master table is keyed by its remote number (or code) within one
agreement.
"""
from __future__ import annotations

from .base import EntityStore


class AccountStore(EntityStore):
    table = "accounts"
    key_columns = ("agreement_number", "account_number")
    columns = (
        "account_type",
        "name",
        "balance",
        "debit_credit",
        "block_direct_entries",
        "vat_code",
        "self_url",
    )
    default_order = "account_number"


class CustomerStore(EntityStore):
    table = "customers"
    key_columns = ("agreement_number", "customer_number")
    columns = (
        "name",
        "currency",
        "email",
        "address",
        "zip",
        "city",
        "country",
        "corporate_identification_number",
        "customer_group_number",
        "payment_terms_number",
        "balance",
        "barred",
        "self_url",
    )
    default_order = "customer_number"


class PaymentTermStore(EntityStore):
    table = "payment_terms"
    key_columns = ("agreement_number", "payment_terms_number")
    columns = ("name", "days_of_credit", "payment_terms_type", "description", "self_url")
    default_order = "payment_terms_number"


class ProductGroupStore(EntityStore):
    table = "product_groups"
    key_columns = ("agreement_number", "product_group_number")
    columns = ("name", "sales_account_number", "self_url")
    default_order = "product_group_number"


class ProductStore(EntityStore):
    table = "products"
    key_columns = ("agreement_number", "product_number")
    columns = (
        "name",
        "description",
        "cost_price",
        "recommended_price",
        "sales_price",
        "barred",
        "product_group_number",
        "unit_name",
        "last_updated",
        "self_url",
    )
    default_order = "product_number"


class SupplierGroupStore(EntityStore):
    table = "supplier_groups"
    key_columns = ("agreement_number", "supplier_group_number")
    columns = ("name", "account_number", "self_url")
    default_order = "supplier_group_number"


class SupplierStore(EntityStore):
    table = "suppliers"
    key_columns = ("agreement_number", "supplier_number")
    columns = (
        "name",
        "address",
        "zip",
        "city",
        "country",
        "email",
        "phone",
        "currency",
        "corporate_identification_number",
        "supplier_group_number",
        "payment_terms_number",
        "vat_zone_number",
        "barred",
        "self_url",
    )
    default_order = "supplier_number"


class VatAccountStore(EntityStore):
    table = "vat_accounts"
    key_columns = ("agreement_number", "vat_code")
    columns = (
        "name",
        "vat_percentage",
        "account_number",
        "contra_account_number",
        "vat_type_name",
        "barred",
        "self_url",
    )
    default_order = "vat_code"
