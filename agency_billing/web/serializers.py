"""JSON shapes returned by the API."""

from typing import Any, Dict, Optional

from agency_billing.db.tables import Agency, AgencyProfile, EmailLog, Invoice
from agency_billing.services.invoice_service import PublicInvoice

# Never shown on the public share page
INTERNAL_INVOICE_FIELDS = (
    "notes",
    "payment_notes",
    "payment_reference",
    "created_by",
    "recurring_invoice_id",
)

PUBLIC_AGENCY_FIELDS = ("name", "email", "phone", "logo_url", "primary_color")

PUBLIC_PROFILE_FIELDS = (
    "abn",
    "trading_name",
    "address_line_1",
    "address_line_2",
    "city",
    "state",
    "postcode",
    "bank_name",
    "bsb",
    "account_number",
    "account_name",
    "gst_registered",
    "invoice_footer",
)


def invoice_to_dict(invoice: Invoice, exclude: tuple = ()) -> Dict[str, Any]:
    """Invoice columns plus its line items in display order."""
    data = invoice.to_dict(exclude=exclude)
    data["line_items"] = [
        item.to_dict(exclude=("invoice_id",)) for item in invoice.line_items
    ]
    return data


def invoice_summary(invoice: Invoice) -> Dict[str, Any]:
    """List view of an invoice (no line items)."""
    return invoice.to_dict()


def email_log_summary(entry: EmailLog) -> Dict[str, Any]:
    return entry.to_dict(exclude=("body_html",))


def _subset(row, fields) -> Dict[str, Any]:
    data = row.to_dict()
    return {name: data.get(name) for name in fields}


def public_invoice_to_dict(document: PublicInvoice) -> Dict[str, Any]:
    profile: Optional[AgencyProfile] = document.profile
    agency: Agency = document.agency
    return {
        "invoice": invoice_to_dict(document.invoice, exclude=INTERNAL_INVOICE_FIELDS),
        "agency": _subset(agency, PUBLIC_AGENCY_FIELDS),
        "profile": _subset(profile, PUBLIC_PROFILE_FIELDS) if profile else None,
    }
