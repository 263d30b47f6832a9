"""Invoice calculator for line amounts, totals, GST and due dates.

This module implements the money rules for invoices:
- Line amounts (quantity × unit price, rounded to cents)
- Invoice totals (subtotal, discount, GST on taxable lines, total)
- Due dates derived from payment terms
- Overdue detection for invoices awaiting payment

All arithmetic uses ``Decimal`` with half-up rounding to two places, the
way amounts are printed on the invoice.
"""

import datetime as dt
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Protocol, Union

from agency_billing.models.enums import AWAITING_STATUSES, InvoiceStatus, PaymentTerms

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Days added to the issue date for each payment term
PAYMENT_TERM_DAYS = {
    PaymentTerms.DUE_ON_RECEIPT: 0,
    PaymentTerms.NET_7: 7,
    PaymentTerms.NET_14: 14,
    PaymentTerms.NET_30: 30,
}
DEFAULT_TERM_DAYS = 14


class LineLike(Protocol):
    amount: Decimal
    is_taxable: bool


@dataclass
class InvoiceTotals:
    """Calculated totals for an invoice.

    Attributes:
        subtotal: Sum of all line amounts (excluding GST)
        taxable_amount: Sum of amounts on taxable lines
        discount_amount: Discount subtracted from the subtotal
        gst_amount: GST on taxable lines (0 when not GST registered)
        total: subtotal - discount + GST

    Example:
        >>> totals = InvoiceTotals(
        ...     subtotal=Decimal("1000.00"),
        ...     taxable_amount=Decimal("1000.00"),
        ...     discount_amount=Decimal("0.00"),
        ...     gst_amount=Decimal("100.00"),
        ...     total=Decimal("1100.00"),
        ... )
        >>> totals.total
        Decimal('1100.00')
    """

    subtotal: Decimal
    taxable_amount: Decimal
    discount_amount: Decimal
    gst_amount: Decimal
    total: Decimal


def round_money(value: Union[Decimal, int, str]) -> Decimal:
    """Round a value half-up to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Calculate the amount of a single line item.

    Args:
        quantity: Number of units
        unit_price: Price per unit excluding GST

    Returns:
        quantity × unit_price rounded half-up to cents

    Example:
        >>> calculate_line_amount(Decimal("2.5"), Decimal("99.99"))
        Decimal('249.98')
    """
    return round_money(Decimal(quantity) * Decimal(unit_price))


def calculate_invoice_totals(
    line_items: Iterable[LineLike],
    gst_registered: bool = True,
    gst_rate: Decimal = Decimal("10.00"),
    discount_amount: Optional[Decimal] = None,
) -> InvoiceTotals:
    """Calculate subtotal, GST and total for a set of line items.

    GST is charged on the taxable lines before the discount is applied, and
    only when the agency is GST registered. Non-taxable lines (marked
    "No GST" on the invoice) contribute to the subtotal only.

    Args:
        line_items: Objects with ``amount`` and ``is_taxable`` attributes
        gst_registered: Whether the agency charges GST
        gst_rate: GST percentage, e.g. ``Decimal("10.00")``
        discount_amount: Flat discount subtracted from the subtotal

    Returns:
        InvoiceTotals with every figure rounded to cents

    Example:
        >>> from types import SimpleNamespace as Line
        >>> totals = calculate_invoice_totals(
        ...     [Line(amount=Decimal("1000.00"), is_taxable=True),
        ...      Line(amount=Decimal("50.00"), is_taxable=False)],
        ...     discount_amount=Decimal("50.00"),
        ... )
        >>> (totals.subtotal, totals.gst_amount, totals.total)
        (Decimal('1050.00'), Decimal('100.00'), Decimal('1100.00'))
    """
    subtotal = Decimal("0")
    taxable = Decimal("0")

    for item in line_items:
        amount = Decimal(item.amount)
        subtotal += amount
        if item.is_taxable:
            taxable += amount

    discount = Decimal(discount_amount or 0)
    gst = taxable * Decimal(gst_rate) / HUNDRED if gst_registered else Decimal("0")

    return InvoiceTotals(
        subtotal=round_money(subtotal),
        taxable_amount=round_money(taxable),
        discount_amount=round_money(discount),
        gst_amount=round_money(gst),
        total=round_money(subtotal - discount + gst),
    )


def calculate_due_date(
    issue_date: dt.date, payment_terms: Optional[Union[PaymentTerms, str]]
) -> dt.date:
    """Derive the due date from the issue date and payment terms.

    ``DUE_ON_RECEIPT`` is due the same day; ``NET_7``/``NET_14``/``NET_30``
    add 7/14/30 days. ``CUSTOM`` and unknown terms fall back to 14 days.

    Example:
        >>> calculate_due_date(dt.date(2025, 1, 20), PaymentTerms.NET_30)
        datetime.date(2025, 2, 19)
    """
    try:
        terms = PaymentTerms(payment_terms) if payment_terms else None
    except ValueError:
        terms = None

    days = PAYMENT_TERM_DAYS.get(terms, DEFAULT_TERM_DAYS)  # type: ignore[arg-type]
    return issue_date + dt.timedelta(days=days)


def is_overdue(status: InvoiceStatus, due_date: dt.date, today: dt.date) -> bool:
    """Check whether an awaiting invoice has passed its due date.

    Only sent and viewed invoices become overdue. An invoice is still on
    time for the whole of its due date.
    """
    return InvoiceStatus(status) in AWAITING_STATUSES and today > due_date


def effective_status(
    status: InvoiceStatus, due_date: dt.date, today: dt.date
) -> InvoiceStatus:
    """Status to report for an invoice, accounting for overdue."""
    if is_overdue(status, due_date, today):
        return InvoiceStatus.OVERDUE
    return InvoiceStatus(status)


def days_overdue(due_date: dt.date, today: dt.date) -> int:
    """Whole days past the due date (0 when not yet due)."""
    return max(0, (today - due_date).days)
