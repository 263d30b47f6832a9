"""
Invoice lifecycle service.

Every operation runs in its own transaction and is scoped to the caller's
agency. Status rules:

- draft: editable, deletable, can be sent or recalculated
- sent / viewed / overdue: editable, payable, cancellable
- paid: refundable only
- cancelled / refunded: read-only

Sent and viewed invoices past their due date are moved to overdue lazily
(on read) and in bulk by the daily job.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from agency_billing.calculators.invoice_calculator import (
    calculate_due_date,
    calculate_invoice_totals,
    calculate_line_amount,
    is_overdue,
)
from agency_billing.db.session import Database
from agency_billing.db.tables import (
    Agency,
    AgencyProfile,
    Invoice,
    InvoiceLineItem,
    utcnow,
)
from agency_billing.errors import (
    InvalidStateError,
    InvoiceValidationError,
    NotFoundError,
    PermissionDeniedError,
)
from agency_billing.models.enums import AWAITING_STATUSES, InvoiceStatus
from agency_billing.models.invoice import (
    InvoiceCreate,
    InvoiceFilters,
    InvoiceUpdate,
    LineItemInput,
    PaymentRecord,
)
from agency_billing.services.access import (
    AgencyContext,
    can_access_resource,
    can_delete_resource,
    can_modify_resource,
    has_permission,
    require_agency,
    require_permission,
)
from agency_billing.services.activity import log_activity
from agency_billing.services.numbering import generate_unique_slug, next_invoice_number
from agency_billing.utils.logging_utils import LogContext
from agency_billing.validators.invoice_validators import InvoiceValidator
from agency_billing.validators.validation_report import ValidationReport

logger = logging.getLogger(__name__)

LOCKED_STATUSES = frozenset(
    {InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED}
)
CLIENT_FIELDS = (
    "client_business_name",
    "client_contact_name",
    "client_email",
    "client_phone",
    "client_address",
    "client_abn",
)
REQUIRED_FIELDS = frozenset(
    {
        "client_business_name",
        "client_email",
        "issue_date",
        "due_date",
        "payment_terms",
        "discount_amount",
    }
)


@dataclass
class StatusBucket:
    count: int = 0
    total: Decimal = Decimal("0.00")

    def add(self, count: int, total: Optional[Decimal]) -> None:
        self.count += int(count)
        self.total += Decimal(total or 0)

    def to_dict(self) -> Dict[str, object]:
        return {"count": self.count, "total": str(self.total)}


@dataclass
class InvoiceStats:
    """Dashboard figures: counts and totals per status group."""

    draft: StatusBucket = field(default_factory=StatusBucket)
    awaiting: StatusBucket = field(default_factory=StatusBucket)
    overdue: StatusBucket = field(default_factory=StatusBucket)
    paid: StatusBucket = field(default_factory=StatusBucket)

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        return {
            "draft": self.draft.to_dict(),
            "awaiting": self.awaiting.to_dict(),
            "overdue": self.overdue.to_dict(),
            "paid": self.paid.to_dict(),
        }


@dataclass
class PublicInvoice:
    """Everything the public share page and PDF need."""

    invoice: Invoice
    agency: Agency
    profile: Optional[AgencyProfile]


def build_line_items(items: Sequence[LineItemInput]) -> List[InvoiceLineItem]:
    """Create line item rows with calculated amounts, in submission order."""
    return [
        InvoiceLineItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=calculate_line_amount(item.quantity, item.unit_price),
            is_taxable=item.is_taxable,
            category=item.category,
            sort_order=index,
        )
        for index, item in enumerate(items)
    ]


def line_items_as_input(rows: Sequence[InvoiceLineItem]) -> List[LineItemInput]:
    return [
        LineItemInput(
            description=row.description,
            quantity=row.quantity,
            unit_price=row.unit_price,
            is_taxable=row.is_taxable,
            category=row.category,
        )
        for row in rows
    ]


def apply_totals(invoice: Invoice) -> None:
    """Recalculate stored totals from line items and the GST snapshot."""
    totals = calculate_invoice_totals(
        invoice.line_items,
        gst_registered=invoice.gst_registered,
        gst_rate=invoice.gst_rate,
        discount_amount=invoice.discount_amount,
    )
    invoice.subtotal = totals.subtotal
    invoice.gst_amount = totals.gst_amount
    invoice.discount_amount = totals.discount_amount
    invoice.total = totals.total


def _append_note(existing: Optional[str], label: str, reason: Optional[str]) -> Optional[str]:
    if not reason:
        return existing
    addition = f"{label}: {reason}"
    return f"{existing}\n\n{addition}" if existing else addition


def _raise_for_report(report: ValidationReport) -> None:
    if report.has_errors():
        raise InvoiceValidationError(
            report.first_error_message() or "Invoice validation failed", report
        )
    for warning in report.get_warnings():
        logger.info(f"Invoice validation warning: {warning}")


class InvoiceService:
    """Create, query and move invoices through their lifecycle.

    Args:
        database: Database providing sessions
        today: Callable returning the current date (injectable for tests)
    """

    def __init__(self, database: Database, today: Callable[[], dt.date] = dt.date.today):
        self.db = database
        self._today = today

    def today(self) -> dt.date:
        return self._today()

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    def _load(self, session: Session, ctx: AgencyContext, invoice_id: str) -> Invoice:
        agency_id = require_agency(ctx)
        invoice = session.scalar(
            select(Invoice).where(
                Invoice.id == invoice_id, Invoice.agency_id == agency_id
            )
        )
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if not can_access_resource(ctx.role, invoice.created_by, ctx.user_id, "invoice"):
            raise PermissionDeniedError("You do not have access to this invoice")
        return invoice

    def _load_for_update(
        self, session: Session, ctx: AgencyContext, invoice_id: str
    ) -> Invoice:
        invoice = self._load(session, ctx, invoice_id)
        if not can_modify_resource(ctx.role, invoice.created_by, ctx.user_id, "invoice"):
            raise PermissionDeniedError("You do not have permission to edit this invoice")
        return invoice

    def _refresh_overdue(self, invoice: Invoice) -> None:
        if is_overdue(invoice.status, invoice.due_date, self.today()):
            logger.info(f"Invoice {invoice.invoice_number} is now overdue")
            invoice.status = InvoiceStatus.OVERDUE

    def _get_profile(self, session: Session, agency_id: str) -> AgencyProfile:
        profile = session.scalar(
            select(AgencyProfile).where(AgencyProfile.agency_id == agency_id)
        )
        if profile is None:
            raise NotFoundError("Agency profile not found")
        return profile

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_invoices(
        self, ctx: AgencyContext, filters: Optional[InvoiceFilters] = None
    ) -> List[Invoice]:
        """List the agency's invoices, newest first.

        Members without ``invoice:view_all`` only see invoices they created.
        """
        agency_id = require_agency(ctx)
        filters = filters or InvoiceFilters()

        with self.db.session_scope() as session:
            self._mark_overdue(session, self.today(), agency_id)

            stmt = select(Invoice).where(Invoice.agency_id == agency_id)
            if not has_permission(ctx.role, "invoice:view_all"):
                stmt = stmt.where(Invoice.created_by == ctx.user_id)
            if filters.status:
                stmt = stmt.where(Invoice.status == filters.status)
            if filters.from_date:
                stmt = stmt.where(Invoice.issue_date >= filters.from_date)
            if filters.to_date:
                stmt = stmt.where(Invoice.issue_date <= filters.to_date)
            if filters.search and filters.search.strip():
                pattern = f"%{filters.search.strip()}%"
                stmt = stmt.where(
                    or_(
                        Invoice.invoice_number.ilike(pattern),
                        Invoice.client_business_name.ilike(pattern),
                        Invoice.client_email.ilike(pattern),
                    )
                )

            stmt = (
                stmt.order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
                .limit(filters.limit)
                .offset(filters.offset)
            )
            return list(session.scalars(stmt).all())

    def get_invoice(self, ctx: AgencyContext, invoice_id: str) -> Invoice:
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            self._refresh_overdue(invoice)
            return invoice

    def get_invoice_document(self, ctx: AgencyContext, invoice_id: str) -> PublicInvoice:
        """Invoice with its agency and profile, for rendering."""
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            self._refresh_overdue(invoice)
            agency = session.get(Agency, invoice.agency_id)
            return PublicInvoice(invoice=invoice, agency=agency, profile=agency.profile)

    def get_invoice_stats(self, ctx: AgencyContext) -> InvoiceStats:
        """Count and total invoices per dashboard group.

        Sent and viewed invoices past due count as overdue even before the
        daily job has updated them.
        """
        agency_id = require_agency(ctx)
        today = self.today()
        stats = InvoiceStats()

        with self.db.session_scope() as session:
            stmt = (
                select(
                    Invoice.status,
                    Invoice.due_date < today,
                    func.count(Invoice.id),
                    func.sum(Invoice.total),
                )
                .where(Invoice.agency_id == agency_id)
                .group_by(Invoice.status, Invoice.due_date < today)
            )
            if not has_permission(ctx.role, "invoice:view_all"):
                stmt = stmt.where(Invoice.created_by == ctx.user_id)

            for status, past_due, count, total in session.execute(stmt):
                status = InvoiceStatus(status)
                if status == InvoiceStatus.DRAFT:
                    stats.draft.add(count, total)
                elif status in AWAITING_STATUSES and past_due:
                    stats.overdue.add(count, total)
                elif status in AWAITING_STATUSES:
                    stats.awaiting.add(count, total)
                elif status == InvoiceStatus.OVERDUE:
                    stats.overdue.add(count, total)
                elif status == InvoiceStatus.PAID:
                    stats.paid.add(count, total)

        return stats

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_invoice(self, ctx: AgencyContext, data: InvoiceCreate) -> Invoice:
        """Create a draft invoice with a new number and share slug."""
        require_permission(ctx, "invoice:create")
        with self.db.session_scope() as session:
            return self.create_in_session(session, ctx, data)

    def create_in_session(
        self,
        session: Session,
        ctx: AgencyContext,
        data: InvoiceCreate,
        recurring_invoice_id: Optional[str] = None,
    ) -> Invoice:
        """Create an invoice inside an existing transaction.

        Used by ``create_invoice`` and by recurring generation, which creates
        several invoices per schedule in one transaction.
        """
        agency_id = require_agency(ctx)
        profile = self._get_profile(session, agency_id)

        issue_date = data.issue_date or self.today()
        terms = data.payment_terms or profile.default_payment_terms
        due_date = data.due_date or calculate_due_date(issue_date, terms)

        _raise_for_report(
            InvoiceValidator.validate_invoice(
                data.line_items,
                issue_date=issue_date,
                due_date=due_date,
                discount_amount=data.discount_amount,
                payment_terms=terms,
                payment_terms_custom=data.payment_terms_custom,
            )
        )

        invoice = Invoice(
            agency_id=agency_id,
            invoice_number=next_invoice_number(session, agency_id, issue_date),
            slug=generate_unique_slug(session),
            status=InvoiceStatus.DRAFT,
            issue_date=issue_date,
            due_date=due_date,
            payment_terms=terms,
            payment_terms_custom=data.payment_terms_custom,
            discount_amount=data.discount_amount,
            discount_description=data.discount_description,
            notes=data.notes,
            public_notes=data.public_notes,
            gst_registered=profile.gst_registered,
            gst_rate=profile.gst_rate,
            recurring_invoice_id=recurring_invoice_id,
            created_by=ctx.user_id,
            view_count=0,
            line_items=build_line_items(data.line_items),
            **{name: getattr(data, name) for name in CLIENT_FIELDS},
        )
        apply_totals(invoice)
        session.add(invoice)
        session.flush()

        with LogContext(agency_id=agency_id, invoice_number=invoice.invoice_number):
            logger.info(f"Created invoice {invoice.invoice_number} total {invoice.total}")
            log_activity(
                session,
                ctx,
                "invoice.created",
                "invoice",
                invoice.id,
                new_values={
                    "invoice_number": invoice.invoice_number,
                    "client_business_name": invoice.client_business_name,
                    "total": str(invoice.total),
                    "recurring_invoice_id": recurring_invoice_id,
                },
            )
        return invoice

    def update_invoice(
        self, ctx: AgencyContext, invoice_id: str, data: InvoiceUpdate
    ) -> Invoice:
        """Apply a partial update.

        Replacing line items or changing the discount recalculates totals
        using the GST settings captured when the invoice was created. Changing
        payment terms without an explicit due date re-derives the due date;
        moving only the issue date keeps the current due date.
        """
        changes = data.changed_fields()
        changes.pop("line_items", None)

        with self.db.session_scope() as session:
            invoice = self._load_for_update(session, ctx, invoice_id)
            if invoice.status in LOCKED_STATUSES:
                raise InvalidStateError(
                    f"Cannot edit a {invoice.status.value} invoice"
                )

            old_values = {
                "total": str(invoice.total),
                "due_date": invoice.due_date.isoformat(),
                "status": invoice.status.value,
            }

            line_items = (
                data.line_items
                if data.line_items is not None
                else line_items_as_input(invoice.line_items)
            )
            issue_date = changes.get("issue_date", invoice.issue_date)
            terms = changes.get("payment_terms", invoice.payment_terms)
            due_date = changes.get("due_date")
            if due_date is None and "payment_terms" in changes:
                due_date = calculate_due_date(issue_date, terms)
                changes["due_date"] = due_date

            _raise_for_report(
                InvoiceValidator.validate_invoice(
                    line_items,
                    issue_date=issue_date,
                    due_date=due_date or invoice.due_date,
                    discount_amount=changes.get(
                        "discount_amount", invoice.discount_amount
                    ),
                    payment_terms=terms,
                    payment_terms_custom=changes.get(
                        "payment_terms_custom", invoice.payment_terms_custom
                    ),
                )
            )

            for name, value in changes.items():
                if value is None and name in REQUIRED_FIELDS:
                    continue
                setattr(invoice, name, value)

            if data.line_items is not None:
                invoice.line_items = build_line_items(data.line_items)
            if data.line_items is not None or "discount_amount" in changes:
                apply_totals(invoice)

            # An extended due date takes an overdue invoice back to awaiting
            if (
                invoice.status == InvoiceStatus.OVERDUE
                and invoice.due_date >= self.today()
            ):
                invoice.status = (
                    InvoiceStatus.VIEWED if invoice.last_viewed_at else InvoiceStatus.SENT
                )

            session.flush()
            self._refresh_overdue(invoice)

            log_activity(
                session,
                ctx,
                "invoice.updated",
                "invoice",
                invoice.id,
                old_values=old_values,
                new_values={
                    "fields": sorted(data.changed_fields().keys()),
                    "total": str(invoice.total),
                },
            )
            logger.info(f"Updated invoice {invoice.invoice_number}")
            return invoice

    def delete_invoice(self, ctx: AgencyContext, invoice_id: str) -> None:
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            if not can_delete_resource(ctx.role, invoice.created_by, ctx.user_id, "invoice"):
                raise PermissionDeniedError(
                    "You do not have permission to delete this invoice"
                )
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError("Can only delete draft invoices")

            log_activity(
                session,
                ctx,
                "invoice.deleted",
                "invoice",
                invoice.id,
                old_values={"invoice_number": invoice.invoice_number},
            )
            session.delete(invoice)
            logger.info(f"Deleted draft invoice {invoice.invoice_number}")

    def duplicate_invoice(self, ctx: AgencyContext, invoice_id: str) -> Invoice:
        """Copy an invoice into a new draft dated today."""
        require_permission(ctx, "invoice:create")
        with self.db.session_scope() as session:
            source = self._load(session, ctx, invoice_id)
            agency_id = require_agency(ctx)
            issue_date = self.today()

            copy = Invoice(
                agency_id=agency_id,
                invoice_number=next_invoice_number(session, agency_id, issue_date),
                slug=generate_unique_slug(session),
                status=InvoiceStatus.DRAFT,
                issue_date=issue_date,
                due_date=calculate_due_date(issue_date, source.payment_terms),
                payment_terms=source.payment_terms,
                payment_terms_custom=source.payment_terms_custom,
                discount_amount=source.discount_amount,
                discount_description=source.discount_description,
                notes=source.notes,
                public_notes=source.public_notes,
                gst_registered=source.gst_registered,
                gst_rate=source.gst_rate,
                created_by=ctx.user_id,
                view_count=0,
                line_items=build_line_items(line_items_as_input(source.line_items)),
                **{name: getattr(source, name) for name in CLIENT_FIELDS},
            )
            apply_totals(copy)
            session.add(copy)
            session.flush()

            log_activity(
                session,
                ctx,
                "invoice.duplicated",
                "invoice",
                copy.id,
                new_values={
                    "source_invoice_id": source.id,
                    "source_invoice_number": source.invoice_number,
                    "invoice_number": copy.invoice_number,
                },
            )
            logger.info(
                f"Duplicated invoice {source.invoice_number} as {copy.invoice_number}"
            )
            return copy

    def send_invoice(self, ctx: AgencyContext, invoice_id: str) -> Invoice:
        """Mark a draft as sent without emailing it (e.g. sent by hand)."""
        require_permission(ctx, "invoice:send")
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError("Can only send draft invoices")

            invoice.status = InvoiceStatus.SENT
            invoice.sent_at = utcnow()
            log_activity(
                session,
                ctx,
                "invoice.sent",
                "invoice",
                invoice.id,
                old_values={"status": InvoiceStatus.DRAFT.value},
                new_values={"status": InvoiceStatus.SENT.value},
            )
            return invoice

    def record_payment(
        self, ctx: AgencyContext, invoice_id: str, payment: PaymentRecord
    ) -> Invoice:
        require_permission(ctx, "invoice:record_payment")
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            if invoice.status == InvoiceStatus.PAID:
                raise InvalidStateError("Invoice is already paid")
            if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED):
                raise InvalidStateError(
                    f"Cannot record payment for a {invoice.status.value} invoice"
                )

            old_status = invoice.status
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = payment.paid_at or utcnow()
            invoice.payment_method = payment.payment_method
            invoice.payment_reference = payment.payment_reference
            invoice.payment_notes = payment.payment_notes

            log_activity(
                session,
                ctx,
                "invoice.payment_recorded",
                "invoice",
                invoice.id,
                old_values={"status": old_status.value},
                new_values={
                    "status": InvoiceStatus.PAID.value,
                    "payment_method": payment.payment_method.value,
                    "total": str(invoice.total),
                },
            )
            logger.info(f"Recorded payment for invoice {invoice.invoice_number}")
            return invoice

    def cancel_invoice(
        self, ctx: AgencyContext, invoice_id: str, reason: Optional[str] = None
    ) -> Invoice:
        require_permission(ctx, "invoice:cancel")
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            if invoice.status == InvoiceStatus.PAID:
                raise InvalidStateError(
                    "Cannot cancel a paid invoice. Use refund instead."
                )
            if invoice.status == InvoiceStatus.CANCELLED:
                raise InvalidStateError("Invoice is already cancelled")
            if invoice.status == InvoiceStatus.REFUNDED:
                raise InvalidStateError("Cannot cancel a refunded invoice")

            old_status = invoice.status
            invoice.status = InvoiceStatus.CANCELLED
            invoice.notes = _append_note(invoice.notes, "Cancellation reason", reason)

            log_activity(
                session,
                ctx,
                "invoice.cancelled",
                "invoice",
                invoice.id,
                old_values={"status": old_status.value},
                new_values={"status": InvoiceStatus.CANCELLED.value, "reason": reason},
            )
            return invoice

    def refund_invoice(
        self, ctx: AgencyContext, invoice_id: str, reason: Optional[str] = None
    ) -> Invoice:
        require_permission(ctx, "invoice:refund")
        with self.db.session_scope() as session:
            invoice = self._load(session, ctx, invoice_id)
            if invoice.status != InvoiceStatus.PAID:
                raise InvalidStateError("Can only refund paid invoices")

            invoice.status = InvoiceStatus.REFUNDED
            invoice.notes = _append_note(invoice.notes, "Refund reason", reason)

            log_activity(
                session,
                ctx,
                "invoice.refunded",
                "invoice",
                invoice.id,
                old_values={"status": InvoiceStatus.PAID.value},
                new_values={"status": InvoiceStatus.REFUNDED.value, "reason": reason},
            )
            return invoice

    def recalculate_totals(self, ctx: AgencyContext, invoice_id: str) -> Invoice:
        with self.db.session_scope() as session:
            invoice = self._load_for_update(session, ctx, invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError("Can only recalculate totals for draft invoices")

            for item in invoice.line_items:
                item.amount = calculate_line_amount(item.quantity, item.unit_price)
            apply_totals(invoice)
            return invoice

    def mark_pdf_generated(self, invoice_id: str) -> None:
        with self.db.session_scope() as session:
            session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(pdf_generated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

    # ------------------------------------------------------------------
    # Overdue batch
    # ------------------------------------------------------------------

    def _mark_overdue(
        self, session: Session, today: dt.date, agency_id: Optional[str] = None
    ) -> int:
        stmt = (
            update(Invoice)
            .where(
                Invoice.status.in_(list(AWAITING_STATUSES)),
                Invoice.due_date < today,
            )
            .values(status=InvoiceStatus.OVERDUE, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if agency_id is not None:
            stmt = stmt.where(Invoice.agency_id == agency_id)
        return session.execute(stmt).rowcount or 0

    def mark_overdue_invoices(self, today: Optional[dt.date] = None) -> int:
        """Move every sent/viewed invoice past its due date to overdue.

        Returns:
            Number of invoices updated across all agencies
        """
        today = today or self.today()
        with self.db.session_scope() as session:
            count = self._mark_overdue(session, today)
        logger.info(f"Marked {count} invoice(s) overdue as of {today}")
        return count

    # ------------------------------------------------------------------
    # Public share links
    # ------------------------------------------------------------------

    def _load_public(self, session: Session, slug: str) -> PublicInvoice:
        invoice = session.scalar(select(Invoice).where(Invoice.slug == slug))
        if invoice is None:
            raise NotFoundError("Invoice not found")
        agency = session.get(Agency, invoice.agency_id)
        if agency is None:
            raise NotFoundError("Invoice not found")
        return PublicInvoice(invoice=invoice, agency=agency, profile=agency.profile)

    def get_public_invoice(self, slug: str) -> PublicInvoice:
        """Load an invoice by its share slug (no authentication)."""
        with self.db.session_scope() as session:
            public = self._load_public(session, slug)
            self._refresh_overdue(public.invoice)
            return public

    def record_view(self, slug: str) -> PublicInvoice:
        """Count a view of the public page; a sent invoice becomes viewed."""
        with self.db.session_scope() as session:
            public = self._load_public(session, slug)
            invoice = public.invoice
            invoice.view_count = (invoice.view_count or 0) + 1
            invoice.last_viewed_at = utcnow()
            if invoice.status == InvoiceStatus.SENT:
                invoice.status = InvoiceStatus.VIEWED
            self._refresh_overdue(invoice)
            return public
