"""API server and access tokens."""

from typing import Optional

import click
import uvicorn

from agency_billing.cli.context import get_services, is_debug
from agency_billing.cli.error_handlers import with_error_handling
from agency_billing.cli.utils.formatters import format_info
from agency_billing.models.enums import AgencyRole
from agency_billing.web.app import create_app
from agency_billing.web.auth import create_access_token


@click.command(name="issue-token")
@click.option("--user-id", required=True, help="User the token acts as")
@click.option("--agency-id", default=None, help="Agency the token is scoped to")
@click.option(
    "--role",
    type=click.Choice([role.value for role in AgencyRole]),
    default=AgencyRole.MEMBER.value,
    show_default=True,
)
@click.option("--super-admin", is_flag=True, help="Allow form template management")
@click.pass_context
def issue_token(
    ctx: click.Context,
    user_id: str,
    agency_id: Optional[str],
    role: str,
    super_admin: bool,
):
    """Print a signed API bearer token.

    Example:
        agency-billing issue-token --user-id u1 --agency-id 3f1c... --role owner
    """
    with with_error_handling(is_debug(ctx)):
        settings = get_services(ctx).settings
        token = create_access_token(
            settings,
            user_id=user_id,
            agency_id=agency_id,
            role=AgencyRole(role),
            super_admin=super_admin,
        )
        click.echo(token)


@click.command(name="serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=8000, show_default=True)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int):
    """Run the HTTP API with uvicorn."""
    with with_error_handling(is_debug(ctx)):
        app = create_app(get_services(ctx))
        click.echo(format_info(f"Serving on http://{host}:{port}"))
        uvicorn.run(app, host=host, port=port, log_config=None)
