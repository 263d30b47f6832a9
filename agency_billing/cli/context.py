"""Service lookup shared by CLI commands."""

import click
import pydantic

from agency_billing.cli.error_handlers import ConfigurationError
from agency_billing.config.settings import get_settings
from agency_billing.models.enums import AgencyRole
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer, build_services

# Operator context for template commands run from the shell
CLI_SUPER_ADMIN = AgencyContext(
    agency_id=None, user_id=None, role=AgencyRole.OWNER, is_super_admin=True
)


def get_services(ctx: click.Context) -> ServiceContainer:
    """Services stored on the click context, built on first use.

    Tests pass ready-made services with ``runner.invoke(cli, args,
    obj={"services": services})``.
    """
    obj = ctx.ensure_object(dict)
    if obj.get("services") is None:
        try:
            settings = get_settings()
        except pydantic.ValidationError as e:
            raise ConfigurationError(
                f"Invalid settings: {e.error_count()} error(s)",
                recovery_hint="Check the values in your .env file",
            )
        obj["services"] = build_services(settings)
    return obj["services"]


def is_debug(ctx: click.Context) -> bool:
    return bool(ctx.ensure_object(dict).get("debug", False))
