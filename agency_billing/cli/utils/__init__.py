"""CLI utility functions."""

from agency_billing.cli.utils.formatters import (
    format_error,
    format_info,
    format_status,
    format_success,
    format_table,
    format_warning,
)
from agency_billing.cli.utils.progress import ProgressTracker

__all__ = [
    "format_error",
    "format_info",
    "format_status",
    "format_success",
    "format_table",
    "format_warning",
    "ProgressTracker",
]
