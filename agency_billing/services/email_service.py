"""
Email delivery for invoices and payment reminders.

``EmailService`` sends through the Resend HTTP API when an API key is
configured and falls back to plain SMTP (e.g. Mailpit in development).
``InvoiceEmailService`` renders the invoice emails, attaches the PDF and
keeps the ``email_logs`` table up to date.
"""

import base64
import datetime as dt
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Callable, List, Optional

import requests
from sqlalchemy import select

from agency_billing.calculators.invoice_calculator import days_overdue
from agency_billing.config.settings import AppSettings, get_settings
from agency_billing.db.session import Database
from agency_billing.db.tables import Agency, EmailLog, Invoice, utcnow
from agency_billing.errors import InvalidStateError, NotFoundError, PdfGenerationError
from agency_billing.models.enums import EmailStatus, EmailType, InvoiceStatus
from agency_billing.models.invoice import EmailLogFilters
from agency_billing.rendering import format_long_date, render_template
from agency_billing.services.access import AgencyContext, require_agency, require_permission
from agency_billing.services.activity import log_activity
from agency_billing.services.invoice_service import InvoiceService, PublicInvoice
from agency_billing.services.pdf_service import PdfService
from agency_billing.services.retry_handler import (
    CircuitBreakerError,
    RetryExhaustedException,
    RetryHandler,
)
from agency_billing.utils.logging_utils import LogContext

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Email service not configured"
REMINDER_STATUSES = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE}
)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass
class SendResult:
    """Outcome of a single send attempt.

    Attributes:
        success: Whether the provider accepted the message
        message_id: Provider message id (Resend id or SMTP Message-ID)
        error: Failure reason when ``success`` is false
        email_log_id: ``email_logs`` row recording the attempt, if any
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    email_log_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
            "email_log_id": self.email_log_id,
        }


class EmailService:
    """
    Sends HTML email with optional attachments.

    Features:
    - Resend HTTP API with retry and circuit breaker
    - SMTP fallback without TLS or auth (local mail catchers)
    - Never raises for delivery failures; returns a ``SendResult``
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        retry_handler: Optional[RetryHandler] = None,
        http: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=self.settings.max_retries,
            base_delay=self.settings.retry_delay,
            name="resend",
        )
        self.http = http or requests.Session()

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        reply_to: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> SendResult:
        """
        Send an email through the configured transport.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            reply_to: Optional Reply-To address
            attachments: Files to attach

        Returns:
            SendResult; ``error`` is "Email service not configured" when
            neither Resend nor SMTP is set up
        """
        attachments = attachments or []
        if self.settings.resend_api_key:
            return self._send_via_resend(to, subject, html, reply_to, attachments)
        if self.settings.smtp_host:
            return self._send_via_smtp(to, subject, html, reply_to, attachments)

        logger.error("No email service configured (RESEND_API_KEY or SMTP_HOST required)")
        return SendResult(success=False, error=NOT_CONFIGURED)

    def _send_via_resend(
        self,
        to: str,
        subject: str,
        html: str,
        reply_to: Optional[str],
        attachments: List[EmailAttachment],
    ) -> SendResult:
        payload = {
            "from": self.settings.email_from,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if reply_to:
            payload["reply_to"] = reply_to
        if attachments:
            payload["attachments"] = [
                {
                    "filename": att.filename,
                    "content": base64.b64encode(att.content).decode("ascii"),
                }
                for att in attachments
            ]

        def _send_operation() -> dict:
            response = self.http.post(
                self.settings.resend_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.resend_api_key}"},
                timeout=30,
            )
            response.raise_for_status()
            return response.json()

        try:
            data = self.retry_handler.execute_with_retry(_send_operation)
        except requests.HTTPError as e:
            message = _resend_error_message(e)
            logger.error(f"Resend API error: {message}")
            return SendResult(success=False, error=message)
        except (RetryExhaustedException, CircuitBreakerError, requests.RequestException) as e:
            logger.error(f"Failed to send email via Resend: {e}")
            return SendResult(success=False, error=str(e))

        message_id = data.get("id")
        logger.info(f"Email sent via Resend: {message_id}")
        return SendResult(success=True, message_id=message_id)

    def _send_via_smtp(
        self,
        to: str,
        subject: str,
        html: str,
        reply_to: Optional[str],
        attachments: List[EmailAttachment],
    ) -> SendResult:
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to
        message["Subject"] = subject
        if reply_to:
            message["Reply-To"] = reply_to
        message.set_content("This email requires an HTML capable client.")
        message.add_alternative(html, subtype="html")
        for att in attachments:
            maintype, _, subtype = att.content_type.partition("/")
            message.add_attachment(
                att.content, maintype=maintype, subtype=subtype, filename=att.filename
            )

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as smtp:
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return SendResult(success=False, error=str(e))

        message_id = message.get("Message-ID")
        logger.info(f"Email sent via SMTP to {self.settings.smtp_host}")
        return SendResult(success=True, message_id=message_id)


def _resend_error_message(error: requests.HTTPError) -> str:
    response = error.response
    if response is None:
        return str(error)
    try:
        return response.json().get("message") or str(error)
    except ValueError:
        return str(error)


@dataclass
class RenderedEmail:
    subject: str
    html: str
    email_type: EmailType
    metadata: dict = field(default_factory=dict)


class InvoiceEmailService:
    """Invoice and reminder emails with delivery logging.

    Args:
        database: Database providing sessions
        invoice_service: Loads invoices with access checks
        pdf_service: Renders the PDF attachment
        email_service: Transport used to send
        settings: Application settings
        today: Callable returning the current date
    """

    def __init__(
        self,
        database: Database,
        invoice_service: InvoiceService,
        pdf_service: PdfService,
        email_service: EmailService,
        settings: Optional[AppSettings] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self.db = database
        self.invoices = invoice_service
        self.pdfs = pdf_service
        self.email = email_service
        self.settings = settings or get_settings()
        self._today = today

    def public_url(self, invoice: Invoice) -> str:
        return f"{self.settings.public_base_url}/i/{invoice.slug}"

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_invoice_email(
        self,
        document: PublicInvoice,
        custom_message: Optional[str] = None,
        has_attachment: bool = True,
    ) -> RenderedEmail:
        invoice, agency = document.invoice, document.agency
        subject = f"Invoice {invoice.invoice_number} from {agency.name}"
        html = render_template(
            "invoice_email.html",
            subject=subject,
            agency=agency,
            invoice=invoice,
            recipient_name=_recipient_name(invoice),
            public_url=self.public_url(invoice),
            custom_message=custom_message,
            has_attachment=has_attachment,
        )
        return RenderedEmail(subject=subject, html=html, email_type=EmailType.INVOICE_SENT)

    def render_reminder_email(
        self, document: PublicInvoice, custom_message: Optional[str] = None
    ) -> RenderedEmail:
        """Friendly reminder before the due date, overdue notice after it."""
        invoice, agency = document.invoice, document.agency
        days_past_due = days_overdue(invoice.due_date, self._today())
        is_overdue = days_past_due > 0

        if is_overdue:
            prefix = "Overdue: "
            plural = "" if days_past_due == 1 else "s"
            default_message = (
                f"This is a reminder that Invoice {invoice.invoice_number} is now "
                f"{days_past_due} day{plural} overdue. Please arrange payment at "
                f"your earliest convenience."
            )
        else:
            prefix = "Reminder: "
            default_message = (
                f"This is a friendly reminder that Invoice {invoice.invoice_number} "
                f"is due on {format_long_date(invoice.due_date)}. Please arrange "
                f"payment by the due date to avoid any late fees."
            )

        subject = f"{prefix}Invoice {invoice.invoice_number} from {agency.name}"
        html = render_template(
            "reminder_email.html",
            subject=subject,
            agency=agency,
            invoice=invoice,
            recipient_name=_recipient_name(invoice),
            public_url=self.public_url(invoice),
            message=custom_message or default_message,
            is_overdue=is_overdue,
        )
        return RenderedEmail(
            subject=subject,
            html=html,
            email_type=EmailType.PAYMENT_REMINDER,
            metadata={"is_overdue": is_overdue, "days_past_due": days_past_due},
        )

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send_invoice_email(
        self, ctx: AgencyContext, invoice_id: str, custom_message: Optional[str] = None
    ) -> SendResult:
        """
        Email an invoice to its client with the PDF attached.

        The first successful send stamps ``sent_at`` and moves a draft to
        sent. A PDF failure is logged and the email goes out without it.

        Raises:
            NotFoundError: If the invoice is not in the caller's agency
            PermissionDeniedError: If the caller lacks ``email:send``
        """
        require_permission(ctx, "email:send")
        document = self.invoices.get_invoice_document(ctx, invoice_id)
        attachment = self._build_attachment(document)
        rendered = self.render_invoice_email(
            document, custom_message, has_attachment=attachment is not None
        )
        result = self._deliver(ctx, document, rendered, attachment)
        self._finish(ctx, document.invoice.id, result, rendered, mark_sent=True)
        return result

    def send_reminder(
        self, ctx: AgencyContext, invoice_id: str, custom_message: Optional[str] = None
    ) -> SendResult:
        """
        Send a payment reminder for an invoice awaiting payment.

        Raises:
            InvalidStateError: If the invoice is not sent, viewed or overdue
        """
        require_permission(ctx, "email:send")
        document = self.invoices.get_invoice_document(ctx, invoice_id)
        if document.invoice.status not in REMINDER_STATUSES:
            raise InvalidStateError(
                "Can only send reminders for sent, viewed, or overdue invoices"
            )

        attachment = self._build_attachment(document)
        rendered = self.render_reminder_email(document, custom_message)
        result = self._deliver(ctx, document, rendered, attachment)
        self._finish(ctx, document.invoice.id, result, rendered, mark_sent=False)
        return result

    def _build_attachment(self, document: PublicInvoice) -> Optional[EmailAttachment]:
        try:
            content, filename = self.pdfs.render_pdf(document)
        except PdfGenerationError as e:
            logger.warning(
                f"Sending invoice {document.invoice.invoice_number} without PDF: {e}"
            )
            return None
        return EmailAttachment(filename=filename, content=content)

    def _deliver(
        self,
        ctx: AgencyContext,
        document: PublicInvoice,
        rendered: RenderedEmail,
        attachment: Optional[EmailAttachment],
    ) -> SendResult:
        invoice, agency = document.invoice, document.agency

        with self.db.session_scope() as session:
            entry = EmailLog(
                agency_id=invoice.agency_id,
                invoice_id=invoice.id,
                email_type=rendered.email_type,
                recipient_email=invoice.client_email,
                recipient_name=_recipient_name(invoice),
                subject=rendered.subject,
                body_html=rendered.html,
                has_attachment=attachment is not None,
                attachment_filename=attachment.filename if attachment else None,
                status=EmailStatus.PENDING,
                sent_by=ctx.user_id,
            )
            session.add(entry)
            session.flush()
            email_log_id = entry.id

        with LogContext(invoice_number=invoice.invoice_number, email_log_id=email_log_id):
            try:
                result = self.email.send(
                    to=invoice.client_email,
                    subject=rendered.subject,
                    html=rendered.html,
                    reply_to=agency.email or None,
                    attachments=[attachment] if attachment else None,
                )
            except Exception as e:
                self._mark_failed(email_log_id, f"{type(e).__name__}: {e}")
                raise

        result.email_log_id = email_log_id
        return result

    def _mark_failed(self, email_log_id: str, error: str) -> None:
        logger.error(f"Email transport raised, marking log {email_log_id} failed: {error}")
        with self.db.session_scope() as session:
            entry = session.get(EmailLog, email_log_id)
            if entry is not None:
                entry.status = EmailStatus.FAILED
                entry.error_message = error

    def _finish(
        self,
        ctx: AgencyContext,
        invoice_id: str,
        result: SendResult,
        rendered: RenderedEmail,
        mark_sent: bool,
    ) -> None:
        kind = "email" if mark_sent else "reminder"
        with self.db.session_scope() as session:
            entry = session.get(EmailLog, result.email_log_id)
            if entry is None:
                raise NotFoundError("Email log not found")
            entry.status = EmailStatus.SENT if result.success else EmailStatus.FAILED
            entry.provider_message_id = result.message_id
            entry.sent_at = utcnow() if result.success else None
            entry.error_message = result.error

            invoice = session.get(Invoice, invoice_id)
            if mark_sent and result.success and invoice is not None and invoice.sent_at is None:
                invoice.sent_at = utcnow()
                if invoice.status == InvoiceStatus.DRAFT:
                    invoice.status = InvoiceStatus.SENT

            log_activity(
                session,
                ctx,
                f"invoice.{kind}_{'sent' if result.success else 'failed'}",
                "invoice",
                invoice_id,
                new_values={
                    "recipient_email": entry.recipient_email,
                    "error": result.error,
                    **rendered.metadata,
                },
            )

        if result.success:
            logger.info(f"Sent {kind} for invoice {invoice_id} to {entry.recipient_email}")
        else:
            logger.warning(f"Failed to send {kind} for invoice {invoice_id}: {result.error}")

    # ------------------------------------------------------------------
    # Delivery log
    # ------------------------------------------------------------------

    def list_email_logs(
        self, ctx: AgencyContext, filters: Optional[EmailLogFilters] = None
    ) -> List[EmailLog]:
        """Agency email log, newest first.

        Raises:
            PermissionDeniedError: If the caller lacks ``email:view_logs``
        """
        require_permission(ctx, "email:view_logs")
        agency_id = require_agency(ctx)
        filters = filters or EmailLogFilters()

        query = select(EmailLog).where(EmailLog.agency_id == agency_id)
        if filters.invoice_id:
            query = query.where(EmailLog.invoice_id == filters.invoice_id)
        if filters.status:
            query = query.where(EmailLog.status == filters.status)
        if filters.email_type:
            query = query.where(EmailLog.email_type == filters.email_type)
        query = (
            query.order_by(EmailLog.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )

        with self.db.session_scope() as session:
            return list(session.scalars(query).all())

    def get_invoice_email_logs(
        self, ctx: AgencyContext, invoice_id: str, limit: int = 20
    ) -> List[EmailLog]:
        """Emails sent for one invoice, visible to anyone who can see the invoice."""
        invoice = self.invoices.get_invoice(ctx, invoice_id)
        query = (
            select(EmailLog)
            .where(EmailLog.agency_id == invoice.agency_id, EmailLog.invoice_id == invoice.id)
            .order_by(EmailLog.created_at.desc())
            .limit(limit)
        )
        with self.db.session_scope() as session:
            return list(session.scalars(query).all())

    def resend_email(self, ctx: AgencyContext, email_log_id: str) -> SendResult:
        """
        Send a logged email again as a new log entry.

        The stored subject and body go out unchanged and without the PDF.
        Invoice status is left alone.

        Raises:
            NotFoundError: If the log entry is not in the caller's agency
            PermissionDeniedError: If the caller lacks ``email:resend``
        """
        require_permission(ctx, "email:resend")
        agency_id = require_agency(ctx)

        with self.db.session_scope() as session:
            original = session.scalars(
                select(EmailLog).where(
                    EmailLog.id == email_log_id, EmailLog.agency_id == agency_id
                )
            ).one_or_none()
            if original is None:
                raise NotFoundError("Email log not found")
            agency = session.get(Agency, agency_id)
            reply_to = agency.email if agency else None

            entry = EmailLog(
                agency_id=agency_id,
                invoice_id=original.invoice_id,
                email_type=original.email_type,
                recipient_email=original.recipient_email,
                recipient_name=original.recipient_name,
                subject=original.subject,
                body_html=original.body_html,
                has_attachment=False,
                status=EmailStatus.PENDING,
                retry_count=original.retry_count + 1,
                sent_by=ctx.user_id,
            )
            session.add(entry)
            session.flush()
            new_log_id = entry.id
            to, subject, html = entry.recipient_email, entry.subject, entry.body_html
            invoice_id = entry.invoice_id

        with LogContext(email_log_id=new_log_id, resent_from=email_log_id):
            try:
                result = self.email.send(
                    to=to, subject=subject, html=html, reply_to=reply_to or None
                )
            except Exception as e:
                self._mark_failed(new_log_id, f"{type(e).__name__}: {e}")
                raise
        result.email_log_id = new_log_id

        with self.db.session_scope() as session:
            entry = session.get(EmailLog, new_log_id)
            entry.status = EmailStatus.SENT if result.success else EmailStatus.FAILED
            entry.provider_message_id = result.message_id
            entry.sent_at = utcnow() if result.success else None
            entry.error_message = result.error
            log_activity(
                session,
                ctx,
                f"email.{'resent' if result.success else 'resend_failed'}",
                "email_log",
                new_log_id,
                new_values={
                    "original_email_log_id": email_log_id,
                    "invoice_id": invoice_id,
                    "recipient_email": to,
                    "error": result.error,
                },
            )

        if result.success:
            logger.info(f"Resent email {email_log_id} to {to}")
        else:
            logger.warning(f"Failed to resend email {email_log_id}: {result.error}")
        return result


def _recipient_name(invoice: Invoice) -> str:
    return invoice.client_contact_name or invoice.client_business_name
