"""Invoice listing and CSV export for an agency."""

import datetime as dt
from typing import List, Optional

import click

from agency_billing.cli.context import get_services, is_debug
from agency_billing.cli.error_handlers import with_error_handling
from agency_billing.cli.utils.formatters import (
    format_info,
    format_status,
    format_success,
    format_table,
)
from agency_billing.db.tables import Invoice
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import InvoiceFilters
from agency_billing.reports.invoice_reports import (
    aging_report,
    export_invoices_csv,
    invoices_to_dataframe,
    summarize_by_status,
)
from agency_billing.rendering import format_currency
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer

PAGE_SIZE = 500

STATUS_CHOICES = click.Choice([status.value for status in InvoiceStatus])


def fetch_all_invoices(
    services: ServiceContainer, agency_id: str, status: Optional[str] = None
) -> List[Invoice]:
    """Every invoice of an agency, paging through ``list_invoices``."""
    ctx = AgencyContext.system(agency_id)
    invoices: List[Invoice] = []
    offset = 0
    while True:
        page = services.invoices.list_invoices(
            ctx,
            InvoiceFilters(
                status=InvoiceStatus(status) if status else None,
                limit=PAGE_SIZE,
                offset=offset,
            ),
        )
        invoices.extend(page)
        if len(page) < PAGE_SIZE:
            return invoices
        offset += PAGE_SIZE


@click.command(name="list-invoices")
@click.option("--agency-id", required=True, help="Agency to list invoices for")
@click.option("--status", type=STATUS_CHOICES, default=None, help="Only this status")
@click.pass_context
def list_invoices(ctx: click.Context, agency_id: str, status: Optional[str]):
    """List an agency's invoices, newest first.

    Example:
        agency-billing list-invoices --agency-id 3f1c... --status overdue
    """
    with with_error_handling(is_debug(ctx)):
        invoices = fetch_all_invoices(get_services(ctx), agency_id, status)

        if not invoices:
            click.echo(format_info("No invoices found."))
            return

        rows = [
            [
                invoice.invoice_number,
                invoice.client_business_name,
                invoice.issue_date.isoformat(),
                invoice.due_date.isoformat(),
                format_status(InvoiceStatus(invoice.status).value),
                format_currency(invoice.total),
            ]
            for invoice in invoices
        ]
        click.echo(
            format_table(
                ["Number", "Client", "Issued", "Due", "Status", "Total"],
                rows,
                align_right=[5],
            )
        )
        click.echo(format_success(f"Found {len(invoices)} invoice(s)"))


@click.command(name="export-invoices")
@click.option("--agency-id", required=True, help="Agency to export")
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, writable=True),
    help="CSV file to write",
)
@click.option("--aging", is_flag=True, help="Export the receivables aging report instead")
@click.pass_context
def export_invoices(ctx: click.Context, agency_id: str, output: str, aging: bool):
    """Export an agency's invoices (or the aging report) to CSV.

    Example:
        agency-billing export-invoices --agency-id 3f1c... -o invoices.csv
        agency-billing export-invoices --agency-id 3f1c... -o aging.csv --aging
    """
    with with_error_handling(is_debug(ctx)):
        df = invoices_to_dataframe(fetch_all_invoices(get_services(ctx), agency_id))

        if aging:
            report = aging_report(df, dt.date.today())
            path = export_invoices_csv(report, output)
            rows = report.values.tolist()
            click.echo(format_table(["Bucket", "Count", "Total"], rows, align_right=[1, 2]))
        else:
            path = export_invoices_csv(df, output)
            summary = summarize_by_status(df)
            if not summary.empty:
                click.echo(
                    format_table(
                        ["Status", "Count", "Total"],
                        summary.values.tolist(),
                        align_right=[1, 2],
                    )
                )

        click.echo(format_success(f"Wrote {path}"))
