"""Validation layer for invoice and schedule business rules."""

from agency_billing.validators.invoice_validators import InvoiceValidator
from agency_billing.validators.validation_report import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
)

__all__ = [
    "InvoiceValidator",
    "ValidationReport",
    "ValidationIssue",
    "ValidationSeverity",
]
