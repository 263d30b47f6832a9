"""Agency Billing CLI.

Operator commands for setting up the database and agencies, the daily cron
run (recurring invoices and overdue marking), invoice exports, form template
pushes, API tokens and the API server.
"""

import click

from agency_billing import __version__
from agency_billing.cli.commands import (
    create_agency,
    export_invoices,
    generate_recurring,
    init_db,
    issue_token,
    list_invoices,
    mark_overdue,
    run_daily,
    serve,
    templates,
)
from agency_billing.config.logging_config import LoggingConfig, configure_logging


@click.group(help="Agency Billing CLI - invoicing jobs, exports and form templates")
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Show full stack traces on errors")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """Agency Billing CLI main entry point."""
    ctx.ensure_object(dict)["debug"] = debug


# Register commands
cli.add_command(init_db)
cli.add_command(create_agency)
cli.add_command(run_daily)
cli.add_command(generate_recurring)
cli.add_command(mark_overdue)
cli.add_command(list_invoices)
cli.add_command(export_invoices)
cli.add_command(issue_token)
cli.add_command(templates)
cli.add_command(serve)


def main():
    """Console entry point: configure logging from the environment, run the CLI."""
    configure_logging(LoggingConfig.from_env())
    cli(obj={})


if __name__ == "__main__":
    main()
