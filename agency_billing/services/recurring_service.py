"""
Recurring invoice schedules and the daily generation run.

A schedule stores a client snapshot and line items. Each day the batch job
creates one draft invoice per occurrence that has come due since the last
run, advances ``next_run_date`` and completes the schedule once its end
date or maximum number of occurrences is reached.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from agency_billing.calculators.schedule_calculator import (
    advance_date,
    due_occurrences,
    first_run_on_or_after,
    is_schedule_finished,
)
from agency_billing.db.session import Database
from agency_billing.db.tables import RecurringInvoice
from agency_billing.errors import InvalidStateError, InvoiceValidationError, NotFoundError
from agency_billing.models.enums import AgencyRole, RecurringStatus
from agency_billing.models.invoice import InvoiceCreate, LineItemInput
from agency_billing.models.recurring import RecurringInvoiceCreate, RecurringInvoiceUpdate
from agency_billing.services.access import (
    AgencyContext,
    require_agency,
    require_permission,
)
from agency_billing.services.activity import log_activity
from agency_billing.services.invoice_service import CLIENT_FIELDS, InvoiceService
from agency_billing.utils.logging_utils import LogContext, log_function_call
from agency_billing.validators.invoice_validators import InvoiceValidator

if TYPE_CHECKING:
    from agency_billing.services.email_service import InvoiceEmailService

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = (
    "payment_terms",
    "payment_terms_custom",
    "discount_amount",
    "discount_description",
    "notes",
    "public_notes",
)


@dataclass
class RecurringRunResult:
    """Outcome of one generation run.

    Attributes:
        generated_invoice_ids: Invoices created, in creation order
        completed_schedule_ids: Schedules that reached their end this run
        emailed_invoice_ids: Auto-sent invoices that were delivered
        errors: Schedule id -> error message for schedules that failed
    """

    generated_invoice_ids: List[str] = field(default_factory=list)
    completed_schedule_ids: List[str] = field(default_factory=list)
    emailed_invoice_ids: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def generated_count(self) -> int:
        return len(self.generated_invoice_ids)

    def to_dict(self) -> dict:
        return {
            "generated_count": self.generated_count,
            "generated_invoice_ids": list(self.generated_invoice_ids),
            "completed_schedule_ids": list(self.completed_schedule_ids),
            "emailed_invoice_ids": list(self.emailed_invoice_ids),
            "errors": dict(self.errors),
        }


def serialize_line_items(items: List[LineItemInput]) -> List[dict]:
    """Line items as JSON-safe dicts (Decimals become strings)."""
    return [item.model_dump(mode="json") for item in items]


def _raise_for_schedule(
    line_items: List[LineItemInput],
    start_date: Optional[dt.date],
    end_date: Optional[dt.date],
    max_occurrences: Optional[int],
    discount_amount,
) -> None:
    report = InvoiceValidator.validate_schedule(
        line_items, start_date, end_date, max_occurrences, discount_amount
    )
    if report.has_errors():
        raise InvoiceValidationError(
            report.first_error_message() or "Recurring invoice validation failed",
            report,
        )


class RecurringInvoiceService:
    """Manage recurring schedules and generate their invoices.

    Args:
        database: Database providing sessions
        invoice_service: Creates the generated invoices
        email_service: Optional sender for schedules with ``auto_send``
        today: Callable returning the current date
    """

    def __init__(
        self,
        database: Database,
        invoice_service: InvoiceService,
        email_service: Optional["InvoiceEmailService"] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self.db = database
        self.invoices = invoice_service
        self.email_service = email_service
        self._today = today

    def _load(self, session: Session, ctx: AgencyContext, schedule_id: str) -> RecurringInvoice:
        agency_id = require_agency(ctx)
        schedule = session.scalar(
            select(RecurringInvoice).where(
                RecurringInvoice.id == schedule_id,
                RecurringInvoice.agency_id == agency_id,
            )
        )
        if schedule is None:
            raise NotFoundError("Recurring invoice not found")
        return schedule

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list_schedules(
        self, ctx: AgencyContext, status: Optional[RecurringStatus] = None
    ) -> List[RecurringInvoice]:
        require_permission(ctx, "recurring:view")
        agency_id = require_agency(ctx)
        with self.db.session_scope() as session:
            stmt = select(RecurringInvoice).where(RecurringInvoice.agency_id == agency_id)
            if status is not None:
                stmt = stmt.where(RecurringInvoice.status == status)
            stmt = stmt.order_by(
                RecurringInvoice.next_run_date, RecurringInvoice.client_business_name
            )
            return list(session.scalars(stmt).all())

    def get_schedule(self, ctx: AgencyContext, schedule_id: str) -> RecurringInvoice:
        require_permission(ctx, "recurring:view")
        with self.db.session_scope() as session:
            return self._load(session, ctx, schedule_id)

    def create_schedule(
        self, ctx: AgencyContext, data: RecurringInvoiceCreate
    ) -> RecurringInvoice:
        """Create an active schedule whose first run is ``start_date``."""
        require_permission(ctx, "recurring:manage")
        agency_id = require_agency(ctx)
        _raise_for_schedule(
            data.line_items,
            data.start_date,
            data.end_date,
            data.max_occurrences,
            data.discount_amount,
        )

        with self.db.session_scope() as session:
            schedule = RecurringInvoice(
                agency_id=agency_id,
                line_items=serialize_line_items(data.line_items),
                frequency=data.frequency,
                start_date=data.start_date,
                next_run_date=data.start_date,
                end_date=data.end_date,
                max_occurrences=data.max_occurrences,
                occurrences_generated=0,
                auto_send=data.auto_send,
                status=RecurringStatus.ACTIVE,
                created_by=ctx.user_id,
                **{name: getattr(data, name) for name in CLIENT_FIELDS + TEMPLATE_FIELDS},
            )
            session.add(schedule)
            session.flush()
            log_activity(
                session,
                ctx,
                "recurring.created",
                "recurring_invoice",
                schedule.id,
                new_values={
                    "client_business_name": schedule.client_business_name,
                    "frequency": schedule.frequency.value,
                    "start_date": schedule.start_date.isoformat(),
                },
            )
            logger.info(
                f"Created {schedule.frequency.value} schedule for "
                f"{schedule.client_business_name} starting {schedule.start_date}"
            )
            return schedule

    def update_schedule(
        self, ctx: AgencyContext, schedule_id: str, data: RecurringInvoiceUpdate
    ) -> RecurringInvoice:
        """Apply a partial update; completed schedules are read-only."""
        require_permission(ctx, "recurring:manage")
        changes = data.changed_fields()
        changes.pop("line_items", None)

        with self.db.session_scope() as session:
            schedule = self._load(session, ctx, schedule_id)
            if schedule.status == RecurringStatus.COMPLETED:
                raise InvalidStateError("Cannot edit a completed recurring invoice")

            line_items = (
                data.line_items
                if data.line_items is not None
                else [LineItemInput(**item) for item in schedule.line_items]
            )
            _raise_for_schedule(
                line_items,
                schedule.start_date,
                changes.get("end_date", schedule.end_date),
                changes.get("max_occurrences", schedule.max_occurrences),
                changes.get("discount_amount", schedule.discount_amount),
            )

            for name, value in changes.items():
                if value is None and name in ("client_business_name", "client_email",
                                              "frequency", "next_run_date",
                                              "discount_amount", "auto_send"):
                    continue
                setattr(schedule, name, value)
            if data.line_items is not None:
                schedule.line_items = serialize_line_items(data.line_items)

            log_activity(
                session,
                ctx,
                "recurring.updated",
                "recurring_invoice",
                schedule.id,
                new_values={"fields": sorted(data.changed_fields().keys())},
            )
            return schedule

    def delete_schedule(self, ctx: AgencyContext, schedule_id: str) -> None:
        """Delete a schedule; invoices it generated are kept."""
        require_permission(ctx, "recurring:manage")
        with self.db.session_scope() as session:
            schedule = self._load(session, ctx, schedule_id)
            log_activity(
                session,
                ctx,
                "recurring.deleted",
                "recurring_invoice",
                schedule.id,
                old_values={"client_business_name": schedule.client_business_name},
            )
            session.delete(schedule)

    def pause_schedule(self, ctx: AgencyContext, schedule_id: str) -> RecurringInvoice:
        require_permission(ctx, "recurring:manage")
        with self.db.session_scope() as session:
            schedule = self._load(session, ctx, schedule_id)
            if schedule.status != RecurringStatus.ACTIVE:
                raise InvalidStateError("Can only pause active recurring invoices")
            schedule.status = RecurringStatus.PAUSED
            log_activity(
                session, ctx, "recurring.paused", "recurring_invoice", schedule.id
            )
            return schedule

    def resume_schedule(self, ctx: AgencyContext, schedule_id: str) -> RecurringInvoice:
        """Reactivate a paused schedule.

        Occurrences missed while paused are skipped: a past
        ``next_run_date`` moves forward to the first occurrence on or
        after today.
        """
        require_permission(ctx, "recurring:manage")
        today = self._today()
        with self.db.session_scope() as session:
            schedule = self._load(session, ctx, schedule_id)
            if schedule.status != RecurringStatus.PAUSED:
                raise InvalidStateError("Can only resume paused recurring invoices")

            schedule.next_run_date = first_run_on_or_after(
                schedule.next_run_date,
                schedule.frequency,
                today,
                anchor_day=schedule.start_date.day,
            )
            if is_schedule_finished(
                schedule.next_run_date,
                schedule.end_date,
                schedule.occurrences_generated,
                schedule.max_occurrences,
            ):
                schedule.status = RecurringStatus.COMPLETED
            else:
                schedule.status = RecurringStatus.ACTIVE

            log_activity(
                session,
                ctx,
                "recurring.resumed",
                "recurring_invoice",
                schedule.id,
                new_values={
                    "next_run_date": schedule.next_run_date.isoformat(),
                    "status": schedule.status.value,
                },
            )
            return schedule

    # ------------------------------------------------------------------
    # Daily generation
    # ------------------------------------------------------------------

    def _invoice_payload(self, schedule: RecurringInvoice, issue_date: dt.date) -> InvoiceCreate:
        return InvoiceCreate(
            issue_date=issue_date,
            line_items=[LineItemInput(**item) for item in schedule.line_items],
            **{name: getattr(schedule, name) for name in CLIENT_FIELDS + TEMPLATE_FIELDS},
        )

    def _generate_for_schedule(
        self, session: Session, schedule: RecurringInvoice, today: dt.date
    ) -> List[str]:
        remaining = None
        if schedule.max_occurrences is not None:
            remaining = max(0, schedule.max_occurrences - schedule.occurrences_generated)

        anchor_day = schedule.start_date.day
        occurrences = due_occurrences(
            schedule.next_run_date,
            schedule.frequency,
            today,
            anchor_day=anchor_day,
            end_date=schedule.end_date,
            remaining=remaining,
        )

        ctx = AgencyContext(
            agency_id=schedule.agency_id,
            user_id=schedule.created_by,
            role=AgencyRole.OWNER,
        )
        invoice_ids = []
        for occurrence in occurrences:
            invoice = self.invoices.create_in_session(
                session,
                ctx,
                self._invoice_payload(schedule, occurrence),
                recurring_invoice_id=schedule.id,
            )
            invoice_ids.append(invoice.id)

        if occurrences:
            schedule.next_run_date = advance_date(
                occurrences[-1], schedule.frequency, anchor_day
            )
            schedule.occurrences_generated += len(occurrences)
            schedule.last_run_date = today

        if is_schedule_finished(
            schedule.next_run_date,
            schedule.end_date,
            schedule.occurrences_generated,
            schedule.max_occurrences,
        ):
            schedule.status = RecurringStatus.COMPLETED

        return invoice_ids

    @log_function_call(level="INFO")
    def generate_due_invoices(self, today: Optional[dt.date] = None) -> RecurringRunResult:
        """
        Generate invoices for every active schedule that has come due.

        Each schedule runs in its own transaction so one failure does not
        stop the batch; failures are reported in ``errors``.

        Args:
            today: Run date (defaults to today)

        Returns:
            RecurringRunResult summarising the run
        """
        today = today or self._today()
        result = RecurringRunResult()

        with self.db.session_scope() as session:
            schedule_ids = list(
                session.scalars(
                    select(RecurringInvoice.id)
                    .where(
                        RecurringInvoice.status == RecurringStatus.ACTIVE,
                        RecurringInvoice.next_run_date <= today,
                    )
                    .order_by(RecurringInvoice.next_run_date)
                ).all()
            )

        logger.info(f"Recurring run for {today}: {len(schedule_ids)} schedule(s) due")

        for schedule_id in schedule_ids:
            with LogContext(recurring_invoice_id=schedule_id):
                try:
                    with self.db.session_scope() as session:
                        schedule = session.get(RecurringInvoice, schedule_id)
                        invoice_ids = self._generate_for_schedule(session, schedule, today)
                        completed = schedule.status == RecurringStatus.COMPLETED
                        agency_id = schedule.agency_id
                        auto_send = schedule.auto_send
                        created_by = schedule.created_by
                except Exception as e:
                    logger.exception(f"Recurring schedule {schedule_id} failed: {e}")
                    result.errors[schedule_id] = str(e)
                    continue

                logger.info(f"Generated {len(invoice_ids)} invoice(s)")
                result.generated_invoice_ids.extend(invoice_ids)
                if completed:
                    result.completed_schedule_ids.append(schedule_id)

                if auto_send and invoice_ids:
                    self._auto_send(schedule_id, agency_id, created_by, invoice_ids, result)

        logger.info(
            f"Recurring run complete: {result.generated_count} generated, "
            f"{len(result.completed_schedule_ids)} completed, {len(result.errors)} failed"
        )
        return result

    def _auto_send(
        self,
        schedule_id: str,
        agency_id: str,
        user_id: Optional[str],
        invoice_ids: List[str],
        result: RecurringRunResult,
    ) -> None:
        if self.email_service is None:
            logger.warning("auto_send requested but no email service is configured")
            return

        ctx = AgencyContext(agency_id=agency_id, user_id=user_id, role=AgencyRole.OWNER)
        for invoice_id in invoice_ids:
            try:
                send_result = self.email_service.send_invoice_email(ctx, invoice_id)
            except Exception as e:
                logger.exception(f"Auto-send of invoice {invoice_id} raised: {e}")
                result.errors[schedule_id] = f"Auto-send failed: {e}"
                continue
            if send_result.success:
                result.emailed_invoice_ids.append(invoice_id)
            else:
                logger.warning(f"Auto-send of invoice {invoice_id} failed: {send_result.error}")
