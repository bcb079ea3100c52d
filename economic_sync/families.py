"""
Entity family configurations.

Each family names the store it writes to, the remote collection(s) it
reads, the transformer applying to each record and the child families
synced for every stored row. The engine is driven entirely by these
records.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from . import endpoints
from .errors import ValidationError
from .transformers import (
    transform_account,
    transform_accounting_entry,
    transform_accounting_period,
    transform_accounting_total,
    transform_accounting_year,
    transform_customer,
    transform_invoice,
    transform_payment_term,
    transform_product,
    transform_product_group,
    transform_supplier,
    transform_supplier_group,
    transform_vat_account,
)


@dataclass
class Source:
    """One remote collection; ``path`` is built from the sync context."""

    path: Callable[[dict], str]
    context: dict = field(default_factory=dict)


@dataclass
class EntityFamily:
    name: str
    store: str
    transform: Callable[[dict, dict], dict]
    sources: tuple[Source, ...]
    children: tuple["EntityFamily", ...] = ()
    # Row fields handed down to the children's context
    context_keys: tuple[str, ...] = ()
    # Extra child context derived from a stored row
    derive_context: Optional[Callable[[dict], dict]] = None

    def child_context(self, row: dict) -> dict:
        context = {key: row[key] for key in self.context_keys}
        if self.derive_context is not None:
            context.update(self.derive_context(row))
        return context

    def describe(self, context: dict) -> str:
        parts = [self.name]
        for key in ("year", "period_number"):
            if context.get(key) is not None:
                parts.append(str(context[key]))
        return ":".join(parts)


def _fixed(path: str) -> Source:
    return Source(path=lambda ctx: path)


def _year_id(ctx: dict) -> str:
    return ctx.get("year_id") or endpoints.year_id(ctx["year"])


def _year_link(row: dict) -> dict:
    if not row.get("self_url"):
        return {}
    return {"year_id": endpoints.year_id(row["year"], row["self_url"])}


ACCOUNTING_ENTRIES = EntityFamily(
    name="accounting_entries",
    store="accounting_entries",
    transform=transform_accounting_entry,
    sources=(Source(lambda ctx: endpoints.accounting_period_entries(_year_id(ctx), ctx["period_number"])),),
)

ACCOUNTING_PERIOD_TOTALS = EntityFamily(
    name="accounting_period_totals",
    store="accounting_totals",
    transform=transform_accounting_total,
    sources=(Source(lambda ctx: endpoints.accounting_period_totals(_year_id(ctx), ctx["period_number"])),),
)

ACCOUNTING_YEAR_TOTALS = EntityFamily(
    name="accounting_year_totals",
    store="accounting_totals",
    transform=transform_accounting_total,
    sources=(Source(lambda ctx: endpoints.accounting_year_totals(_year_id(ctx)), {"is_year_total": True}),),
)

ACCOUNTING_PERIODS = EntityFamily(
    name="accounting_periods",
    store="accounting_periods",
    transform=transform_accounting_period,
    sources=(Source(lambda ctx: endpoints.accounting_periods(_year_id(ctx))),),
    children=(ACCOUNTING_ENTRIES, ACCOUNTING_PERIOD_TOTALS),
    context_keys=("period_number",),
)

ACCOUNTING_YEARS = EntityFamily(
    name="accounting_years",
    store="accounting_years",
    transform=transform_accounting_year,
    sources=(_fixed(endpoints.ACCOUNTING_YEARS),),
    children=(ACCOUNTING_PERIODS, ACCOUNTING_YEAR_TOTALS),
    context_keys=("year",),
    derive_context=_year_link,
)

INVOICES = EntityFamily(
    name="invoices",
    store="invoices",
    transform=transform_invoice,
    sources=tuple(
        Source(lambda ctx, path=path: path, {"listing": listing})
        for listing, path in endpoints.INVOICE_LISTINGS.items()
    ),
)

FAMILIES: dict[str, EntityFamily] = {
    family.name: family
    for family in (
        EntityFamily("payment_terms", "payment_terms", transform_payment_term, (_fixed(endpoints.PAYMENT_TERMS),)),
        EntityFamily("product_groups", "product_groups", transform_product_group, (_fixed(endpoints.PRODUCT_GROUPS),)),
        EntityFamily("products", "products", transform_product, (_fixed(endpoints.PRODUCTS),)),
        EntityFamily("vat_accounts", "vat_accounts", transform_vat_account, (_fixed(endpoints.VAT_ACCOUNTS),)),
        EntityFamily("supplier_groups", "supplier_groups", transform_supplier_group, (_fixed(endpoints.SUPPLIER_GROUPS),)),
        EntityFamily("suppliers", "suppliers", transform_supplier, (_fixed(endpoints.SUPPLIERS),)),
        EntityFamily("customers", "customers", transform_customer, (_fixed(endpoints.CUSTOMERS),)),
        EntityFamily("accounts", "accounts", transform_account, (_fixed(endpoints.ACCOUNTS),)),
        ACCOUNTING_YEARS,
        ACCOUNTING_PERIODS,
        ACCOUNTING_ENTRIES,
        ACCOUNTING_PERIOD_TOTALS,
        ACCOUNTING_YEAR_TOTALS,
        INVOICES,
    )
}

# Top-level families in dependency order (references before dependents)
SYNC_ORDER = (
    "payment_terms",
    "product_groups",
    "products",
    "vat_accounts",
    "supplier_groups",
    "suppliers",
    "customers",
    "accounts",
    "accounting_years",
    "invoices",
)

# Context keys each family needs when synced on its own
REQUIRED_CONTEXT = {
    "accounting_periods": ("year",),
    "accounting_entries": ("year", "period_number"),
    "accounting_period_totals": ("year", "period_number"),
    "accounting_year_totals": ("year",),
}


def get_family(family: Union[str, EntityFamily]) -> EntityFamily:
    if isinstance(family, EntityFamily):
        return family
    try:
        return FAMILIES[family]
    except KeyError:
        raise ValidationError(
            f"Unknown entity family: {family}. Valid: {', '.join(FAMILIES)}"
        ) from None
