"""Tests for invoice and recurring schedule business rules."""

import datetime as dt
from decimal import Decimal

import pytest

from agency_billing.models.enums import PaymentTerms
from agency_billing.models.invoice import LineItemInput
from agency_billing.validators.invoice_validators import InvoiceValidator


def line(quantity="1", unit_price="100.00", description="Design work"):
    return LineItemInput(description=description, quantity=quantity, unit_price=unit_price)


class TestValidateInvoice:
    """Tests for InvoiceValidator.validate_invoice."""

    def test_valid_invoice(self):
        report = InvoiceValidator.validate_invoice(
            [line(), line("2", "50.00")],
            issue_date=dt.date(2025, 1, 20),
            due_date=dt.date(2025, 2, 3),
        )

        assert report.is_valid()
        assert report.issues == []

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_quantity_is_an_error(self, quantity):
        report = InvoiceValidator.validate_invoice([line(quantity=quantity)])

        assert report.has_errors()
        assert report.get_errors()[0].field == "line_items[0].quantity"

    def test_negative_unit_price_is_an_error(self):
        report = InvoiceValidator.validate_invoice([line(), line(unit_price="-5")])

        errors = report.get_errors()
        assert [e.field for e in errors] == ["line_items[1].unit_price"]
        assert errors[0].message == "Unit price cannot be negative (got -5)"

    def test_due_date_before_issue_date(self):
        report = InvoiceValidator.validate_invoice(
            [line()], issue_date=dt.date(2025, 1, 20), due_date=dt.date(2025, 1, 19)
        )

        assert report.first_error_message() == (
            "Due date (2025-01-19) cannot be before issue date (2025-01-20)"
        )

    def test_due_date_on_issue_date_is_allowed(self):
        report = InvoiceValidator.validate_invoice(
            [line()], issue_date=dt.date(2025, 1, 20), due_date=dt.date(2025, 1, 20)
        )

        assert report.is_valid()

    def test_discount_cannot_exceed_subtotal(self):
        report = InvoiceValidator.validate_invoice(
            [line(unit_price="100.00")], discount_amount=Decimal("100.01")
        )

        assert report.first_error_message() == (
            "Discount (100.01) cannot exceed the invoice subtotal (100.00)"
        )

    def test_full_discount_warns_zero_total(self):
        report = InvoiceValidator.validate_invoice(
            [line(unit_price="100.00")], discount_amount=Decimal("100.00")
        )

        assert report.is_valid()
        assert [w.field for w in report.get_warnings()] == ["total"]

    def test_no_line_items_is_a_warning(self):
        report = InvoiceValidator.validate_invoice([])

        assert report.is_valid()
        assert report.get_warnings()[0].message == "Invoice has no line items"

    def test_custom_terms_without_description_warns(self):
        report = InvoiceValidator.validate_invoice(
            [line()], payment_terms=PaymentTerms.CUSTOM
        )

        assert report.is_valid()
        assert report.get_warnings()[0].field == "payment_terms_custom"

        described = InvoiceValidator.validate_invoice(
            [line()], payment_terms=PaymentTerms.CUSTOM, payment_terms_custom="Net 45"
        )
        assert described.issues == []


class TestValidateSchedule:
    """Tests for InvoiceValidator.validate_schedule."""

    def test_valid_schedule(self):
        report = InvoiceValidator.validate_schedule(
            [line()], dt.date(2025, 1, 1), dt.date(2025, 12, 31), 12
        )

        assert report.is_valid()

    def test_schedule_requires_line_items(self):
        report = InvoiceValidator.validate_schedule([], dt.date(2025, 1, 1), None, None)

        assert report.first_error_message() == (
            "A recurring invoice needs at least one line item"
        )

    def test_end_date_before_start_date(self):
        report = InvoiceValidator.validate_schedule(
            [line()], dt.date(2025, 6, 1), dt.date(2025, 5, 31), None
        )

        assert report.get_errors()[0].field == "end_date"

    def test_max_occurrences_must_be_positive(self):
        report = InvoiceValidator.validate_schedule(
            [line()], dt.date(2025, 1, 1), None, 0
        )

        assert report.first_error_message() == "Maximum occurrences must be at least 1"

    def test_schedule_discount_checked_against_subtotal(self):
        report = InvoiceValidator.validate_schedule(
            [line(unit_price="10.00")], dt.date(2025, 1, 1), None, None,
            discount_amount=Decimal("20"),
        )

        assert report.get_errors()[0].field == "discount_amount"
