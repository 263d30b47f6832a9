"""
Invoice PDF generation through a Gotenberg HTML-to-PDF service.

The invoice is rendered to HTML with Jinja2 and posted to Gotenberg's
Chromium route, which returns the PDF bytes.
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple

import requests

from agency_billing.config.settings import AppSettings, get_settings
from agency_billing.errors import PdfGenerationError
from agency_billing.models.enums import InvoiceStatus
from agency_billing.rendering import render_template
from agency_billing.services.access import AgencyContext
from agency_billing.services.invoice_service import InvoiceService, PublicInvoice
from agency_billing.services.retry_handler import (
    CircuitBreakerError,
    RetryExhaustedException,
    RetryHandler,
)
from agency_billing.utils.logging_utils import LogContext

logger = logging.getLogger(__name__)

CONVERT_PATH = "/forms/chromium/convert/html"

# A4 in inches with 0.4in margins
PAPER_OPTIONS = {
    "paperWidth": "8.27",
    "paperHeight": "11.69",
    "marginTop": "0.4",
    "marginBottom": "0.4",
    "marginLeft": "0.4",
    "marginRight": "0.4",
    "printBackground": "true",
    "preferCssPageSize": "true",
}


def gst_rate_label(rate: Optional[Decimal]) -> str:
    """``Decimal("10.00")`` -> ``"10"``, ``Decimal("12.50")`` -> ``"12.5"``."""
    normalized = Decimal(rate or 0).normalize()
    return f"{normalized:f}"


class PdfService:
    """
    Renders invoices to PDF.

    Features:
    - Server-side HTML rendering of the invoice document
    - Gotenberg conversion with retry and circuit breaker
    - Stamps ``pdf_generated_at`` on the invoice after each generation
    """

    def __init__(
        self,
        invoice_service: InvoiceService,
        settings: Optional[AppSettings] = None,
        retry_handler: Optional[RetryHandler] = None,
        http: Optional[requests.Session] = None,
    ):
        """
        Initialize the PDF service.

        Args:
            invoice_service: Service used to load invoices
            settings: Application settings (defaults to the global settings)
            retry_handler: Custom retry handler instance
            http: ``requests`` session used for the Gotenberg call
        """
        self.invoices = invoice_service
        self.settings = settings or get_settings()
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_delay,
            name="gotenberg",
        )
        self.http = http or requests.Session()

    @property
    def convert_url(self) -> str:
        return f"{self.settings.gotenberg_url}{CONVERT_PATH}"

    def render_invoice_html(self, document: PublicInvoice) -> str:
        """Render the printable invoice page."""
        invoice = document.invoice
        profile = document.profile
        is_paid = invoice.status == InvoiceStatus.PAID
        has_bank_info = bool(
            profile and (profile.bank_name or profile.bsb or profile.account_number)
        )

        return render_template(
            "invoice_pdf.html",
            invoice=invoice,
            agency=document.agency,
            profile=profile,
            line_items=invoice.line_items,
            is_paid=is_paid,
            show_bank_details=has_bank_info and not is_paid,
            gst_rate_label=gst_rate_label(invoice.gst_rate),
        )

    def html_to_pdf(self, html: str) -> bytes:
        """
        Convert an HTML document to PDF.

        Args:
            html: Complete HTML document

        Returns:
            PDF bytes

        Raises:
            PdfGenerationError: If the service is unreachable or rejects the
                document
        """

        def _convert_operation() -> bytes:
            response = self.http.post(
                self.convert_url,
                files={"files": ("index.html", html.encode("utf-8"), "text/html")},
                data=PAPER_OPTIONS,
                timeout=self.settings.pdf_timeout,
            )
            response.raise_for_status()
            return response.content

        try:
            return self.retry_handler.execute_with_retry(_convert_operation)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            logger.error(f"Gotenberg rejected the document (HTTP {status})")
            raise PdfGenerationError(
                f"PDF generation failed: Gotenberg returned {status}"
            ) from e
        except (RetryExhaustedException, CircuitBreakerError) as e:
            logger.error(f"PDF generation failed: {e}")
            raise PdfGenerationError(f"PDF generation failed: {e}") from e
        except requests.RequestException as e:
            logger.error(f"PDF generation failed: {e}")
            raise PdfGenerationError(f"PDF generation failed: {e}") from e

    def render_pdf(self, document: PublicInvoice) -> Tuple[bytes, str]:
        """Render an already loaded invoice document to PDF."""
        invoice = document.invoice
        with LogContext(agency_id=invoice.agency_id, invoice_number=invoice.invoice_number):
            pdf = self.html_to_pdf(self.render_invoice_html(document))
            self.invoices.mark_pdf_generated(invoice.id)
            logger.info(f"Generated PDF for invoice {invoice.invoice_number} ({len(pdf)} bytes)")
        return pdf, f"{invoice.invoice_number}.pdf"

    def generate_invoice_pdf(
        self, ctx: AgencyContext, invoice_id: str
    ) -> Tuple[bytes, str]:
        """
        Generate the PDF of an invoice the caller can access.

        Returns:
            Tuple of (pdf bytes, ``<invoice_number>.pdf``)
        """
        return self.render_pdf(self.invoices.get_invoice_document(ctx, invoice_id))

    def generate_public_pdf(self, slug: str) -> Tuple[bytes, str]:
        """Generate the PDF behind a public share link."""
        return self.render_pdf(self.invoices.get_public_invoice(slug))
