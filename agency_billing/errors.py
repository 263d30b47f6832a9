"""Domain exceptions raised by the service layer.

Web routes and CLI commands translate these into HTTP responses and exit
codes; services never format user output themselves.
"""

from typing import Optional

from agency_billing.validators.validation_report import ValidationReport


class AgencyBillingError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(AgencyBillingError):
    """A record does not exist or is not visible to the caller's agency."""


class PermissionDeniedError(AgencyBillingError):
    """The caller's role lacks the required permission."""


class InvalidStateError(AgencyBillingError):
    """The operation is not allowed for the record's current status."""


class ConflictError(AgencyBillingError):
    """A uniqueness rule (slug, invoice number) would be violated."""


class InvoiceValidationError(AgencyBillingError):
    """Invoice or schedule data failed business validation."""

    def __init__(self, message: str, report: Optional[ValidationReport] = None):
        super().__init__(message)
        self.report = report


class PdfGenerationError(AgencyBillingError):
    """The HTML-to-PDF service failed or is unreachable."""


class EmailDeliveryError(AgencyBillingError):
    """No email transport is configured or the provider rejected a message."""
