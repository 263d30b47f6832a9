"""Error handling for CLI commands.

Domain and infrastructure errors are turned into a coloured message, an
optional recovery hint and a distinct exit code:

====  ==========================================
1     Configuration error
2     External service (PDF renderer, email provider)
3     Data validation or invalid state
4     Processing error
5     Database error
6     Permission denied
7     Record not found
130   Cancelled by the user
255   Unexpected error
====  ==========================================
"""

import sys
import traceback
from typing import Optional

import click
from sqlalchemy.exc import SQLAlchemyError

from agency_billing.cli.utils.formatters import format_error, format_warning
from agency_billing.errors import (
    ConflictError,
    EmailDeliveryError,
    InvalidStateError,
    InvoiceValidationError,
    NotFoundError,
    PdfGenerationError,
    PermissionDeniedError,
)


class CLIError(Exception):
    """Base exception for CLI errors with user-friendly messages."""

    def __init__(self, message: str, recovery_hint: Optional[str] = None):
        """
        Initialize CLI error.

        Args:
            message: Error message to display
            recovery_hint: Optional hint for recovering from the error
        """
        self.message = message
        self.recovery_hint = recovery_hint
        super().__init__(message)


class ConfigurationError(CLIError):
    """Missing or invalid settings (database URL, JWT secret, ...)."""


class DataValidationError(CLIError):
    """Invalid command input."""


class ProcessingError(CLIError):
    """A batch job finished with failures."""


def _report(title: str, message: str, hint: Optional[str] = None) -> None:
    click.echo(format_error(f"{title}: {message}"))
    if hint:
        click.echo(format_warning(f"Hint: {hint}"))


def handle_cli_error(error: Exception, debug: bool = False) -> int:
    """
    Print a user-friendly message for ``error`` and return its exit code.

    Args:
        error: The exception that occurred
        debug: Whether to show the full stack trace for unexpected errors

    Returns:
        Exit code (see module docstring)
    """
    if isinstance(error, ConfigurationError):
        _report("Configuration Error", error.message, error.recovery_hint)
        return 1

    if isinstance(error, DataValidationError):
        _report("Data Validation Error", error.message, error.recovery_hint)
        return 3

    if isinstance(error, ProcessingError):
        _report("Processing Error", error.message, error.recovery_hint)
        return 4

    if isinstance(error, PdfGenerationError):
        _report(
            "PDF Service Error",
            error.message,
            "Check that Gotenberg is running and GOTENBERG_URL points at it",
        )
        return 2

    if isinstance(error, EmailDeliveryError):
        _report(
            "Email Error",
            error.message,
            "Set RESEND_API_KEY or SMTP_HOST in the .env file",
        )
        return 2

    if isinstance(error, InvoiceValidationError):
        _report("Validation Error", error.message)
        if error.report is not None and error.report.issues:
            click.echo(error.report.format())
        return 3

    if isinstance(error, (InvalidStateError, ConflictError)):
        _report("Invalid Operation", error.message)
        return 3

    if isinstance(error, PermissionDeniedError):
        _report("Permission Denied", error.message)
        return 6

    if isinstance(error, NotFoundError):
        _report("Not Found", error.message, "Check the id you passed")
        return 7

    if isinstance(error, SQLAlchemyError):
        _report(
            "Database Error",
            str(error).splitlines()[0],
            "Check DATABASE_URL and run 'agency-billing init-db'",
        )
        return 5

    if isinstance(error, click.Abort):
        click.echo(format_warning("\nOperation cancelled by user"))
        return 130

    click.echo(format_error(f"Unexpected Error: {type(error).__name__}"))
    click.echo(str(error))

    if debug:
        click.echo("\nFull stack trace:")
        click.echo(traceback.format_exc())
    else:
        click.echo(format_warning("\nRun with --debug flag for full stack trace"))

    return 255


def with_error_handling(debug: bool = False):
    """
    Context manager that exits with ``handle_cli_error``'s code on failure.

    Example:
        @click.command()
        @click.option('--debug', is_flag=True)
        def my_command(debug):
            with with_error_handling(debug):
                ...
    """

    class ErrorHandler:
        def __init__(self, show_debug: bool):
            self.show_debug = show_debug

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if exc_val is not None and not isinstance(exc_val, click.exceptions.Exit):
                exit_code = handle_cli_error(exc_val, self.show_debug)
                sys.exit(exit_code)
            return False

    return ErrorHandler(debug)
