"""Scheduled jobs: the daily run and its two steps.

``run-daily`` is the cron entry point. It generates due recurring invoices
first, then marks sent and viewed invoices past their due date as overdue.
"""

import datetime as dt
from typing import Optional

import click

from agency_billing.cli.context import get_services, is_debug
from agency_billing.cli.error_handlers import ProcessingError, with_error_handling
from agency_billing.cli.utils.formatters import format_info, format_success, format_warning
from agency_billing.cli.utils.progress import ProgressTracker
from agency_billing.services.recurring_service import RecurringRunResult
from agency_billing.utils.logging_utils import LogContext, generate_correlation_id

date_option = click.option(
    "--date",
    "run_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Run as if today were this date (YYYY-MM-DD)",
)


def _as_date(value: Optional[dt.datetime]) -> dt.date:
    return value.date() if value is not None else dt.date.today()


def _describe(result: RecurringRunResult) -> str:
    parts = [f"{result.generated_count} invoice(s) generated"]
    if result.completed_schedule_ids:
        parts.append(f"{len(result.completed_schedule_ids)} schedule(s) completed")
    if result.emailed_invoice_ids:
        parts.append(f"{len(result.emailed_invoice_ids)} emailed")
    return ", ".join(parts)


def _raise_for_failures(result: RecurringRunResult) -> None:
    if not result.errors:
        return
    for schedule_id, message in result.errors.items():
        click.echo(format_warning(f"Schedule {schedule_id}: {message}"))
    raise ProcessingError(
        f"{len(result.errors)} recurring schedule(s) failed",
        recovery_hint="The other schedules were processed; see the log for details",
    )


@click.command(name="run-daily")
@date_option
@click.pass_context
def run_daily(ctx: click.Context, run_date: Optional[dt.datetime]):
    """Generate due recurring invoices, then mark overdue invoices.

    Example:
        agency-billing run-daily
        agency-billing run-daily --date 2025-03-01
    """
    with with_error_handling(is_debug(ctx)):
        today = _as_date(run_date)
        services = get_services(ctx)
        tracker = ProgressTracker(["Generating recurring invoices", "Marking overdue invoices"])

        with LogContext(correlation_id=generate_correlation_id(), job="daily"):
            click.echo(format_info(f"Daily run for {today.isoformat()}"))

            tracker.start()
            result = services.recurring.generate_due_invoices(today)
            tracker.advance(_describe(result))

            tracker.start()
            overdue = services.invoices.mark_overdue_invoices(today)
            tracker.advance(f"{overdue} invoice(s) marked overdue")

        _raise_for_failures(result)
        click.echo(format_success("Daily run complete"))


@click.command(name="generate-recurring")
@date_option
@click.pass_context
def generate_recurring(ctx: click.Context, run_date: Optional[dt.datetime]):
    """Generate invoices for recurring schedules that are due."""
    with with_error_handling(is_debug(ctx)):
        today = _as_date(run_date)
        with LogContext(correlation_id=generate_correlation_id(), job="recurring"):
            result = get_services(ctx).recurring.generate_due_invoices(today)

        click.echo(format_info(_describe(result)))
        _raise_for_failures(result)
        click.echo(format_success("Recurring invoices generated"))


@click.command(name="mark-overdue")
@date_option
@click.pass_context
def mark_overdue(ctx: click.Context, run_date: Optional[dt.datetime]):
    """Mark sent and viewed invoices past their due date as overdue."""
    with with_error_handling(is_debug(ctx)):
        today = _as_date(run_date)
        count = get_services(ctx).invoices.mark_overdue_invoices(today)
        click.echo(format_success(f"{count} invoice(s) marked overdue"))
