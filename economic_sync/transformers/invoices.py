"""
Invoice transformers.

Maps draft and booked invoice records from every invoice listing
(drafts, booked, paid, unpaid, overdue, not-due) onto the ``invoices``
and ``invoice_lines`` row shapes.
"""
from __future__ import annotations
from typing import Optional

from .base import nested, parse_date, parse_float, parse_int, parse_text

UNKNOWN_CUSTOMER = "Unknown Customer"

DRAFT = "draft"
BOOKED = "booked"

LISTINGS = ("draft", "booked", "paid", "unpaid", "overdue", "not_due")

# Higher wins; a stored status is never replaced by a lower one.
PAYMENT_STATUS_PRIORITY = {
    "overdue": 3,
    "paid": 2,
    "partial": 1,
    "pending": 0,
}


def status_priority(status: Optional[str]) -> int:
    return PAYMENT_STATUS_PRIORITY.get(status or "pending", 0)


def merge_payment_status(current: Optional[str], incoming: Optional[str]) -> str:
    """Return whichever of the two statuses has the higher precedence."""
    if current is None:
        return incoming or "pending"
    if incoming is None:
        return current
    return incoming if status_priority(incoming) >= status_priority(current) else current


def derive_payment_status(record: dict, listing: str) -> str:
    """
    Derive the local payment status from the listing and the remainder.

    The paid and overdue listings are authoritative. For the other booked
    listings the remainder decides between paid, partial and pending.
    """
    if listing == "paid":
        return "paid"
    if listing == "overdue":
        return "overdue"
    if listing == "draft":
        return "pending"

    gross = parse_float(record.get("grossAmount"), default=None)
    remainder = parse_float(record.get("remainder"), default=None)
    if gross is None or remainder is None:
        return "pending"
    if remainder == 0 and gross != 0:
        return "paid"
    if 0 < abs(remainder) < abs(gross):
        return "partial"
    return "pending"


def _notes(record: dict) -> Optional[str]:
    notes = record.get("notes") or {}
    parts = [notes.get("heading"), notes.get("textLine1"), notes.get("textLine2")]
    joined = " - ".join(p for p in parts if p)
    return joined or None


def transform_invoice_lines(record: dict) -> Optional[list[dict]]:
    """
    Transform the line set of an invoice.

    Returns None when the record carries no ``lines`` key, so callers can
    tell "no line data fetched" apart from "invoice has no lines".
    """
    lines = record.get("lines")
    if lines is None or not isinstance(lines, list):
        return None

    rows = []
    for index, line in enumerate(lines, start=1):
        rows.append({
            "line_number": parse_int(line.get("lineNumber"), default=index),
            "product_number": parse_text(nested(line, "product", "productNumber")),
            "description": line.get("description"),
            "quantity": parse_float(line.get("quantity"), default=1.0),
            "unit_price": parse_float(line.get("unitNetPrice", line.get("unitPrice"))),
            "discount_percentage": parse_float(line.get("discountPercentage")),
            "unit": parse_text(nested(line, "unit", "name")),
            "total_net_amount": parse_float(line.get("totalNetAmount")),
        })
    return rows


def transform_invoice(record: dict, context: dict) -> dict:
    """
    Transform one invoice record from the listing named in ``context``.

    Draft listings identify the invoice by its draft number; every other
    listing by its booked number. A booked record that also reports the
    draft it came from keeps that draft number so the store can promote
    the existing draft row.
    """
    listing = context["listing"]
    is_draft = listing == DRAFT

    customer_name = (
        nested(record, "customer", "name")
        or nested(record, "recipient", "name")
        or UNKNOWN_CUSTOMER
    )

    return {
        "identity_kind": DRAFT if is_draft else BOOKED,
        "invoice_number": None if is_draft else parse_int(record.get("bookedInvoiceNumber", record.get("invoiceNumber"))),
        "draft_invoice_number": parse_int(record.get("draftInvoiceNumber")),
        "customer_number": parse_int(nested(record, "customer", "customerNumber")),
        "customer_name": customer_name,
        "agreement_number": context.get("agreement_number"),
        "currency": record.get("currency"),
        "exchange_rate": parse_float(record.get("exchangeRate"), default=None),
        "invoice_date": parse_date(record.get("date")),
        "due_date": parse_date(record.get("dueDate")),
        "net_amount": parse_float(record.get("netAmount")),
        "gross_amount": parse_float(record.get("grossAmount")),
        "vat_amount": parse_float(record.get("vatAmount")),
        "remainder": parse_float(record.get("remainder"), default=None),
        "invoice_type": listing,
        "payment_status": derive_payment_status(record, listing),
        "notes": _notes(record),
        "reference_number": parse_text(nested(record, "references", "other"), max_length=50),
        "self_url": record.get("self"),
        "lines": transform_invoice_lines(record),
    }
