"""
Jinja2 rendering of invoice documents and emails.

Templates live in ``agency_billing/templates`` and are rendered with
autoescaping on. The filters registered here format values the way they
appear on Australian invoices:

- ``currency``: ``Decimal("1234.5")`` -> ``$1,234.50``
- ``long_date``: ``date(2025, 1, 20)`` -> ``20 January 2025``
- ``terms_label``: ``NET_14`` -> ``NET 14``
"""

import datetime as dt
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, PackageLoader, select_autoescape

from agency_billing.calculators.invoice_calculator import round_money
from agency_billing.models.enums import InvoiceStatus, PaymentTerms

DEFAULT_PRIMARY_COLOR = "#4F46E5"

# (background, text) colours of the status badge
STATUS_COLORS = {
    InvoiceStatus.PAID: ("#dcfce7", "#166534"),
    InvoiceStatus.SENT: ("#fef3c7", "#92400e"),
    InvoiceStatus.VIEWED: ("#fef3c7", "#92400e"),
    InvoiceStatus.OVERDUE: ("#fee2e2", "#991b1b"),
    InvoiceStatus.CANCELLED: ("#f3f4f6", "#6b7280"),
    InvoiceStatus.REFUNDED: ("#f3f4f6", "#6b7280"),
}
DEFAULT_STATUS_COLORS = ("#e0e7ff", "#3730a3")


def format_currency(value: Union[Decimal, int, float, str, None]) -> str:
    """Format an AUD amount, e.g. ``$1,234.56`` or ``-$50.00``."""
    amount = round_money(value if value is not None else 0)
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_long_date(value: Union[dt.date, dt.datetime, str, None]) -> str:
    """Format a date as ``20 January 2025``."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        value = dt.date.fromisoformat(value[:10])
    return f"{value.day} {value.strftime('%B %Y')}"


def format_terms(
    payment_terms: Union[PaymentTerms, str, None], custom: Optional[str] = None
) -> str:
    """Label for the payment terms; custom terms show their description."""
    if payment_terms is None:
        return ""
    value = PaymentTerms(payment_terms).value
    if value == PaymentTerms.CUSTOM.value and custom:
        return custom
    return value.replace("_", " ")


def format_quantity(value: Union[Decimal, int, float, None]) -> str:
    return f"{Decimal(str(value or 0)):.2f}"


def status_colors(status: Union[InvoiceStatus, str]) -> Dict[str, str]:
    background, color = STATUS_COLORS.get(InvoiceStatus(status), DEFAULT_STATUS_COLORS)
    return {"background": background, "color": color}


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """Shared Jinja2 environment with the invoice filters registered."""
    env = Environment(
        loader=PackageLoader("agency_billing", "templates"),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["currency"] = format_currency
    env.filters["long_date"] = format_long_date
    env.filters["quantity"] = format_quantity
    env.globals["terms_label"] = format_terms
    env.globals["status_colors"] = status_colors
    return env


def render_template(name: str, **context: Any) -> str:
    """Render a template from the package template directory."""
    context.setdefault("default_primary_color", DEFAULT_PRIMARY_COLOR)
    return get_environment().get_template(name).render(**context)
