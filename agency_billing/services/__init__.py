"""
Service layer for invoicing and form templates.

This package provides:
- Invoice lifecycle, recurring schedules and public share links
- PDF rendering through Gotenberg and email delivery (Resend or SMTP)
- Super-admin form templates with push and rollback
- Exponential backoff with jitter and a circuit breaker for outbound HTTP
"""

from .access import AgencyContext
from .agency_form_service import AgencyFormService
from .agency_service import AgencyService
from .email_service import EmailService, InvoiceEmailService, SendResult
from .form_template_service import FormTemplateService
from .invoice_service import InvoiceService, InvoiceStats
from .pdf_service import PdfService
from .recurring_service import RecurringInvoiceService, RecurringRunResult
from .retry_handler import CircuitBreakerError, RetryExhaustedException, RetryHandler

__all__ = [
    "AgencyContext",
    "AgencyFormService",
    "AgencyService",
    "CircuitBreakerError",
    "EmailService",
    "FormTemplateService",
    "InvoiceEmailService",
    "InvoiceService",
    "InvoiceStats",
    "PdfService",
    "RecurringInvoiceService",
    "RecurringRunResult",
    "RetryExhaustedException",
    "RetryHandler",
    "SendResult",
]
