"""CLI commands."""

from agency_billing.cli.commands.database import create_agency, init_db
from agency_billing.cli.commands.invoices import export_invoices, list_invoices
from agency_billing.cli.commands.jobs import generate_recurring, mark_overdue, run_daily
from agency_billing.cli.commands.server import issue_token, serve
from agency_billing.cli.commands.templates import templates

__all__ = [
    "create_agency",
    "export_invoices",
    "generate_recurring",
    "init_db",
    "issue_token",
    "list_invoices",
    "mark_overdue",
    "run_daily",
    "serve",
    "templates",
]
