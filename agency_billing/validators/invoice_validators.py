"""Business rule validators for invoices and recurring schedules.

Field-level shape (types, required fields, email format) is enforced by the
payload models; this module checks the rules that span several fields,
such as discounts against the subtotal and due dates against issue dates.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional, Sequence

from agency_billing.calculators.invoice_calculator import calculate_line_amount
from agency_billing.models.enums import PaymentTerms
from agency_billing.models.invoice import LineItemInput
from agency_billing.validators.validation_report import ValidationReport


class InvoiceValidator:
    """Collection of invoice business-rule checks.

    Each ``check_*`` method appends issues to a report; ``validate_invoice``
    and ``validate_schedule`` run the relevant checks and return the report.
    """

    @staticmethod
    def check_line_items(
        line_items: Sequence[LineItemInput], report: ValidationReport
    ) -> None:
        for index, item in enumerate(line_items):
            prefix = f"line_items[{index}]"
            if not item.description or not item.description.strip():
                report.add_error(
                    f"{prefix}.description", "Line item description is required"
                )
            if item.quantity <= 0:
                report.add_error(
                    f"{prefix}.quantity",
                    f"Quantity must be greater than zero (got {item.quantity})",
                    item.quantity,
                )
            if item.unit_price < 0:
                report.add_error(
                    f"{prefix}.unit_price",
                    f"Unit price cannot be negative (got {item.unit_price})",
                    item.unit_price,
                )

    @staticmethod
    def check_dates(
        issue_date: Optional[dt.date],
        due_date: Optional[dt.date],
        report: ValidationReport,
    ) -> None:
        if issue_date and due_date and due_date < issue_date:
            report.add_error(
                "due_date",
                f"Due date ({due_date}) cannot be before issue date ({issue_date})",
                due_date,
            )

    @staticmethod
    def check_discount(
        discount_amount: Decimal, subtotal: Decimal, report: ValidationReport
    ) -> None:
        if discount_amount < 0:
            report.add_error(
                "discount_amount", "Discount cannot be negative", discount_amount
            )
        elif discount_amount > subtotal:
            report.add_error(
                "discount_amount",
                f"Discount ({discount_amount}) cannot exceed the invoice "
                f"subtotal ({subtotal})",
                discount_amount,
            )

    @classmethod
    def validate_invoice(
        cls,
        line_items: Sequence[LineItemInput],
        issue_date: Optional[dt.date] = None,
        due_date: Optional[dt.date] = None,
        discount_amount: Decimal = Decimal("0"),
        payment_terms: Optional[PaymentTerms] = None,
        payment_terms_custom: Optional[str] = None,
    ) -> ValidationReport:
        """Validate a complete invoice payload.

        Args:
            line_items: Line items as submitted
            issue_date: Issue date (may be defaulted later)
            due_date: Explicit due date, if any
            discount_amount: Flat discount
            payment_terms: Selected payment terms
            payment_terms_custom: Description for custom terms

        Returns:
            ValidationReport; errors mean the invoice must not be saved
        """
        report = ValidationReport()

        cls.check_line_items(line_items, report)
        cls.check_dates(issue_date, due_date, report)

        subtotal = sum(
            (
                calculate_line_amount(item.quantity, item.unit_price)
                for item in line_items
            ),
            Decimal("0"),
        )
        cls.check_discount(Decimal(discount_amount or 0), subtotal, report)

        if not line_items:
            report.add_warning("line_items", "Invoice has no line items", [])
        elif subtotal - Decimal(discount_amount or 0) == 0:
            report.add_warning("total", "Invoice total is zero", subtotal)

        if payment_terms == PaymentTerms.CUSTOM and not payment_terms_custom:
            report.add_warning(
                "payment_terms_custom",
                "Custom payment terms selected without a description; "
                "due date defaults to 14 days",
            )

        return report

    @classmethod
    def validate_schedule(
        cls,
        line_items: Sequence[LineItemInput],
        start_date: Optional[dt.date],
        end_date: Optional[dt.date],
        max_occurrences: Optional[int],
        discount_amount: Decimal = Decimal("0"),
    ) -> ValidationReport:
        """Validate a recurring invoice schedule."""
        report = ValidationReport()

        if not line_items:
            report.add_error(
                "line_items", "A recurring invoice needs at least one line item", []
            )
        cls.check_line_items(line_items, report)

        if start_date and end_date and end_date < start_date:
            report.add_error(
                "end_date",
                f"End date ({end_date}) cannot be before start date ({start_date})",
                end_date,
            )

        if max_occurrences is not None and max_occurrences < 1:
            report.add_error(
                "max_occurrences",
                "Maximum occurrences must be at least 1",
                max_occurrences,
            )

        subtotal = sum(
            (
                calculate_line_amount(item.quantity, item.unit_price)
                for item in line_items
            ),
            Decimal("0"),
        )
        cls.check_discount(Decimal(discount_amount or 0), subtotal, report)

        return report
