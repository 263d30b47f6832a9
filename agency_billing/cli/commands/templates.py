"""Form template administration: ``templates list|preview|push|rollback``."""

import click

from agency_billing.cli.context import CLI_SUPER_ADMIN, get_services, is_debug
from agency_billing.cli.error_handlers import with_error_handling
from agency_billing.cli.utils.formatters import (
    format_info,
    format_success,
    format_table,
    format_warning,
)


@click.group(name="templates")
def templates():
    """Manage platform form templates."""


@templates.command(name="list")
@click.pass_context
def list_templates(ctx: click.Context):
    """List templates in display order with their usage counts."""
    with with_error_handling(is_debug(ctx)):
        items = get_services(ctx).templates.list_templates(CLI_SUPER_ADMIN)
        if not items:
            click.echo(format_info("No templates found."))
            return

        rows = [
            [t.display_order, t.name, t.slug, t.category.value, t.usage_count, t.id]
            for t in items
        ]
        click.echo(
            format_table(
                ["Order", "Name", "Slug", "Category", "Used", "ID"],
                rows,
                align_right=[0, 4],
            )
        )


@templates.command(name="preview")
@click.argument("template_id")
@click.pass_context
def preview_push(ctx: click.Context, template_id: str):
    """Show how many agency forms a push would update."""
    with with_error_handling(is_debug(ctx)):
        count = get_services(ctx).templates.get_push_preview(CLI_SUPER_ADMIN, template_id)
        click.echo(format_info(f"{count} uncustomized form(s) would be updated"))


@templates.command(name="push")
@click.argument("template_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def push_template(ctx: click.Context, template_id: str, yes: bool):
    """Push a template's schema to every uncustomized copy."""
    with with_error_handling(is_debug(ctx)):
        service = get_services(ctx).templates
        count = service.get_push_preview(CLI_SUPER_ADMIN, template_id)
        if count == 0:
            click.echo(format_warning("No uncustomized forms use this template"))
            return
        if not yes:
            click.confirm(f"Update {count} agency form(s)?", abort=True)

        result = service.push_template_update(CLI_SUPER_ADMIN, template_id)
        click.echo(format_success(f"Updated {result.updated_count} form(s)"))


@templates.command(name="rollback")
@click.argument("template_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rollback_template(ctx: click.Context, template_id: str, yes: bool):
    """Restore the schema saved by the template's last push."""
    with with_error_handling(is_debug(ctx)):
        if not yes:
            click.confirm("Roll back the last push of this template?", abort=True)
        result = get_services(ctx).templates.rollback_template_push(
            CLI_SUPER_ADMIN, template_id
        )
        click.echo(format_success(f"Rolled back {result.rolled_back_count} form(s)"))
