"""
Unit tests for recurring invoice schedules and the daily generation run.
"""

import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy import select

from agency_billing.db.tables import Invoice
from agency_billing.errors import (
    InvalidStateError,
    InvoiceValidationError,
    NotFoundError,
    PermissionDeniedError,
)
from agency_billing.models.enums import InvoiceStatus, RecurringFrequency, RecurringStatus
from agency_billing.models.invoice import LineItemInput
from agency_billing.models.recurring import RecurringInvoiceCreate, RecurringInvoiceUpdate
from agency_billing.services.email_service import SendResult

TODAY = dt.date(2025, 1, 20)


@pytest.fixture
def schedule_payload() -> RecurringInvoiceCreate:
    """Monthly retainer that started two months before TODAY."""
    return RecurringInvoiceCreate(
        client_business_name="Retainer Co",
        client_contact_name="Sam Retainer",
        client_email="accounts@retainer.example.com",
        frequency=RecurringFrequency.MONTHLY,
        start_date=dt.date(2024, 11, 20),
        line_items=[
            LineItemInput(description="Monthly retainer", unit_price=Decimal("1000.00")),
        ],
        notes="Thanks for your business",
    )


@pytest.fixture
def schedule(services, owner_ctx, schedule_payload):
    return services.recurring.create_schedule(owner_ctx, schedule_payload)


def generated_invoices(database, schedule_id):
    with database.session_scope() as session:
        return list(
            session.scalars(
                select(Invoice)
                .where(Invoice.recurring_invoice_id == schedule_id)
                .order_by(Invoice.issue_date)
            ).all()
        )


class TestScheduleCrud:
    """Test creating, editing and deleting schedules."""

    def test_create_schedule(self, schedule):
        assert schedule.status == RecurringStatus.ACTIVE
        assert schedule.next_run_date == dt.date(2024, 11, 20)
        assert schedule.occurrences_generated == 0
        [item] = schedule.line_items
        assert item["description"] == "Monthly retainer"
        assert LineItemInput(**item).unit_price == Decimal("1000")
        assert schedule.created_by == "user-owner"

    def test_create_requires_line_items(self, services, owner_ctx, schedule_payload):
        with pytest.raises(InvoiceValidationError, match="at least one line item"):
            services.recurring.create_schedule(
                owner_ctx, schedule_payload.model_copy(update={"line_items": []})
            )

    def test_create_rejects_end_before_start(self, services, owner_ctx, schedule_payload):
        with pytest.raises(InvoiceValidationError, match="cannot be before start date"):
            services.recurring.create_schedule(
                owner_ctx,
                schedule_payload.model_copy(update={"end_date": dt.date(2024, 1, 1)}),
            )

    def test_member_cannot_manage(self, services, member_ctx, schedule_payload):
        with pytest.raises(PermissionDeniedError):
            services.recurring.create_schedule(member_ctx, schedule_payload)

    def test_member_can_view(self, services, member_ctx, schedule):
        assert [s.id for s in services.recurring.list_schedules(member_ctx)] == [schedule.id]

    def test_list_filters_by_status(self, services, owner_ctx, schedule):
        assert services.recurring.list_schedules(owner_ctx, RecurringStatus.PAUSED) == []

    def test_update_schedule(self, services, owner_ctx, schedule):
        updated = services.recurring.update_schedule(
            owner_ctx,
            schedule.id,
            RecurringInvoiceUpdate(
                frequency=RecurringFrequency.QUARTERLY,
                line_items=[LineItemInput(description="Quarterly retainer", unit_price="2800")],
            ),
        )

        assert updated.frequency == RecurringFrequency.QUARTERLY
        assert updated.line_items[0]["description"] == "Quarterly retainer"
        assert updated.client_business_name == "Retainer Co"

    def test_update_validates_line_items(self, services, owner_ctx, schedule):
        with pytest.raises(InvoiceValidationError):
            services.recurring.update_schedule(
                owner_ctx, schedule.id, RecurringInvoiceUpdate(line_items=[])
            )

    def test_completed_schedule_is_read_only(self, services, owner_ctx, schedule_payload):
        schedule = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"max_occurrences": 1})
        )
        services.recurring.generate_due_invoices()

        with pytest.raises(InvalidStateError, match="Cannot edit a completed"):
            services.recurring.update_schedule(
                owner_ctx, schedule.id, RecurringInvoiceUpdate(notes="Changed")
            )

    def test_delete_keeps_generated_invoices(self, services, database, owner_ctx, schedule):
        services.recurring.generate_due_invoices()
        invoice_ids = [invoice.id for invoice in generated_invoices(database, schedule.id)]

        services.recurring.delete_schedule(owner_ctx, schedule.id)

        with pytest.raises(NotFoundError):
            services.recurring.get_schedule(owner_ctx, schedule.id)
        for invoice_id in invoice_ids:
            assert services.invoices.get_invoice(owner_ctx, invoice_id) is not None


class TestPauseResume:
    """Test pausing and resuming schedules."""

    def test_pause(self, services, owner_ctx, schedule):
        paused = services.recurring.pause_schedule(owner_ctx, schedule.id)

        assert paused.status == RecurringStatus.PAUSED

    def test_pause_requires_active(self, services, owner_ctx, schedule):
        services.recurring.pause_schedule(owner_ctx, schedule.id)

        with pytest.raises(InvalidStateError, match="Can only pause active"):
            services.recurring.pause_schedule(owner_ctx, schedule.id)

    def test_resume_requires_paused(self, services, owner_ctx, schedule):
        with pytest.raises(InvalidStateError, match="Can only resume paused"):
            services.recurring.resume_schedule(owner_ctx, schedule.id)

    def test_resume_skips_missed_periods(self, services, owner_ctx, schedule):
        services.recurring.pause_schedule(owner_ctx, schedule.id)

        resumed = services.recurring.resume_schedule(owner_ctx, schedule.id)

        assert resumed.status == RecurringStatus.ACTIVE
        assert resumed.next_run_date == TODAY

    def test_resume_keeps_future_run_date(self, services, owner_ctx, schedule_payload):
        schedule = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"start_date": dt.date(2025, 3, 1)})
        )
        services.recurring.pause_schedule(owner_ctx, schedule.id)

        resumed = services.recurring.resume_schedule(owner_ctx, schedule.id)

        assert resumed.next_run_date == dt.date(2025, 3, 1)

    def test_resume_past_end_date_completes(self, services, owner_ctx, schedule_payload):
        schedule = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"end_date": dt.date(2024, 12, 31)})
        )
        services.recurring.pause_schedule(owner_ctx, schedule.id)

        resumed = services.recurring.resume_schedule(owner_ctx, schedule.id)

        assert resumed.status == RecurringStatus.COMPLETED

    def test_paused_schedule_is_not_generated(self, services, owner_ctx, schedule):
        services.recurring.pause_schedule(owner_ctx, schedule.id)

        result = services.recurring.generate_due_invoices()

        assert result.generated_count == 0


class TestGenerateDueInvoices:
    """Test the daily generation run."""

    def test_catches_up_missed_occurrences(self, services, database, owner_ctx, schedule):
        result = services.recurring.generate_due_invoices()

        invoices = generated_invoices(database, schedule.id)
        assert result.generated_count == 3
        assert [invoice.issue_date for invoice in invoices] == [
            dt.date(2024, 11, 20),
            dt.date(2024, 12, 20),
            dt.date(2025, 1, 20),
        ]

        schedule = services.recurring.get_schedule(owner_ctx, schedule.id)
        assert schedule.next_run_date == dt.date(2025, 2, 20)
        assert schedule.occurrences_generated == 3
        assert schedule.last_run_date == TODAY

    def test_generated_invoice_copies_schedule(self, services, database, schedule):
        services.recurring.generate_due_invoices()

        invoice = generated_invoices(database, schedule.id)[-1]
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.client_business_name == "Retainer Co"
        assert invoice.client_email == "accounts@retainer.example.com"
        assert invoice.notes == "Thanks for your business"
        assert invoice.subtotal == Decimal("1000.00")
        assert invoice.gst_amount == Decimal("100.00")
        assert invoice.total == Decimal("1100.00")
        assert invoice.due_date == dt.date(2025, 2, 3)
        assert invoice.created_by == "user-owner"

    def test_second_run_same_day_is_idempotent(self, services, schedule):
        services.recurring.generate_due_invoices()

        assert services.recurring.generate_due_invoices().generated_count == 0

    def test_future_schedule_not_due(self, services, owner_ctx, schedule_payload):
        services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"start_date": dt.date(2025, 1, 21)})
        )

        assert services.recurring.generate_due_invoices().generated_count == 0

    def test_explicit_run_date(self, services, schedule):
        result = services.recurring.generate_due_invoices(today=dt.date(2024, 11, 20))

        assert result.generated_count == 1

    def test_max_occurrences_completes_schedule(self, services, owner_ctx, schedule_payload):
        schedule = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"max_occurrences": 2})
        )

        result = services.recurring.generate_due_invoices()

        assert result.generated_count == 2
        assert result.completed_schedule_ids == [schedule.id]
        assert services.recurring.get_schedule(owner_ctx, schedule.id).status == (
            RecurringStatus.COMPLETED
        )

    def test_end_date_limits_occurrences(self, services, owner_ctx, schedule_payload):
        schedule = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"end_date": dt.date(2024, 12, 31)})
        )

        result = services.recurring.generate_due_invoices()

        assert result.generated_count == 2
        assert result.completed_schedule_ids == [schedule.id]

    def test_auto_send_emails_generated_invoices(
        self, services, database, owner_ctx, schedule_payload, email_transport
    ):
        schedule = services.recurring.create_schedule(
            owner_ctx,
            schedule_payload.model_copy(
                update={"start_date": TODAY, "auto_send": True}
            ),
        )

        result = services.recurring.generate_due_invoices()

        [invoice] = generated_invoices(database, schedule.id)
        assert result.emailed_invoice_ids == [invoice.id]
        assert invoice.status == InvoiceStatus.SENT
        assert email_transport.send.call_args.kwargs["to"] == "accounts@retainer.example.com"

    def test_auto_send_failure_keeps_invoice(
        self, services, database, owner_ctx, schedule_payload, email_transport
    ):
        email_transport.send.return_value = SendResult(success=False, error="down")
        schedule = services.recurring.create_schedule(
            owner_ctx,
            schedule_payload.model_copy(update={"start_date": TODAY, "auto_send": True}),
        )

        result = services.recurring.generate_due_invoices()

        assert result.generated_count == 1
        assert result.emailed_invoice_ids == []
        assert generated_invoices(database, schedule.id)[0].status == InvoiceStatus.DRAFT

    def test_auto_send_exception_does_not_stop_batch(
        self, services, database, owner_ctx, schedule_payload, email_transport
    ):
        email_transport.send.side_effect = RuntimeError("provider SDK blew up")
        first = services.recurring.create_schedule(
            owner_ctx,
            schedule_payload.model_copy(update={"start_date": TODAY, "auto_send": True}),
        )
        second = services.recurring.create_schedule(
            owner_ctx,
            schedule_payload.model_copy(
                update={
                    "client_business_name": "Second Co",
                    "start_date": TODAY,
                    "auto_send": True,
                }
            ),
        )

        result = services.recurring.generate_due_invoices()

        assert result.generated_count == 2
        assert result.emailed_invoice_ids == []
        assert result.errors == {
            first.id: "Auto-send failed: provider SDK blew up",
            second.id: "Auto-send failed: provider SDK blew up",
        }
        for schedule in (first, second):
            [invoice] = generated_invoices(database, schedule.id)
            assert invoice.status == InvoiceStatus.DRAFT

    def test_failing_schedule_does_not_stop_batch(
        self, services, database, owner_ctx, schedule_payload, monkeypatch
    ):
        broken = services.recurring.create_schedule(
            owner_ctx,
            schedule_payload.model_copy(update={"client_business_name": "Broken Co"}),
        )
        healthy = services.recurring.create_schedule(
            owner_ctx, schedule_payload.model_copy(update={"start_date": TODAY})
        )
        original = services.invoices.create_in_session

        def create_in_session(session, ctx, data, **kwargs):
            if data.client_business_name == "Broken Co":
                raise RuntimeError("numbering unavailable")
            return original(session, ctx, data, **kwargs)

        monkeypatch.setattr(services.invoices, "create_in_session", create_in_session)

        result = services.recurring.generate_due_invoices()

        assert result.errors == {broken.id: "numbering unavailable"}
        assert result.generated_count == 1
        assert generated_invoices(database, broken.id) == []
        assert services.recurring.get_schedule(owner_ctx, broken.id).occurrences_generated == 0
        assert len(generated_invoices(database, healthy.id)) == 1

    def test_result_to_dict(self, services, schedule):
        data = services.recurring.generate_due_invoices().to_dict()

        assert data["generated_count"] == 3
        assert data["errors"] == {}
