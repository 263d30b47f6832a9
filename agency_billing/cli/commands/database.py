"""Database setup commands: ``init-db`` and ``create-agency``."""

from decimal import Decimal
from typing import Optional

import click

from agency_billing.cli.context import get_services, is_debug
from agency_billing.cli.error_handlers import DataValidationError, with_error_handling
from agency_billing.cli.utils.formatters import format_info, format_success
from agency_billing.models.agency import AgencyCreate, AgencyProfileUpdate


@click.command(name="init-db")
@click.pass_context
def init_db(ctx: click.Context):
    """Create all tables in the configured database.

    Example:
        agency-billing init-db
    """
    with with_error_handling(is_debug(ctx)):
        services = get_services(ctx)
        click.echo(format_info(f"Creating tables in {services.database.url}"))
        services.database.create_all()
        click.echo(format_success("Database ready"))


@click.command(name="create-agency")
@click.option("--name", required=True, help="Agency name shown on invoices")
@click.option("--email", required=True, help="Agency contact email (reply-to)")
@click.option("--abn", default=None, help="Australian Business Number")
@click.option("--gst/--no-gst", default=True, show_default=True, help="GST registered")
@click.option("--gst-rate", type=str, default=None, help="GST percentage (default 10.00)")
@click.option("--prefix", default=None, help="Invoice number prefix (default INV)")
@click.pass_context
def create_agency(
    ctx: click.Context,
    name: str,
    email: str,
    abn: Optional[str],
    gst: bool,
    gst_rate: Optional[str],
    prefix: Optional[str],
):
    """Create an agency and its invoicing profile, printing its id.

    Example:
        agency-billing create-agency --name "Acme Studio" --email hi@acme.au --abn "51 824 753 556"
    """
    with with_error_handling(is_debug(ctx)):
        profile = {"abn": abn, "gst_registered": gst}
        if gst_rate is not None:
            profile["gst_rate"] = Decimal(gst_rate)
        if prefix is not None:
            profile["invoice_prefix"] = prefix

        try:
            data = AgencyCreate(
                name=name, email=email, profile=AgencyProfileUpdate(**profile)
            )
        except (ValueError, ArithmeticError) as e:
            raise DataValidationError(str(e), "Check the agency name, email and GST rate")

        agency = get_services(ctx).agencies.create_agency(data)
        click.echo(format_success(f"Created agency {agency.name}"))
        click.echo(agency.id)
