"""Structured logging utilities with agency/invoice context support."""

import functools
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Optional, cast

_thread_local = threading.local()

# Field names whose values never reach a log line or the activity log
SENSITIVE_FIELDS = {
    "password",
    "token",
    "api_key",
    "secret",
    "access_token",
    "refresh_token",
    "credentials",
    "authorization",
    "account_number",
    "bsb",
}

REDACTED = "***REDACTED***"


def generate_correlation_id() -> str:
    """
    Generate a unique correlation ID for tracking a request or cron run.

    Returns:
        UUID string to use as correlation ID
    """
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Return the correlation ID of the current context, if any."""
    return get_context().get("correlation_id")


def get_context() -> Dict[str, Any]:
    """Return a copy of the fields currently attached to log records."""
    return dict(getattr(_thread_local, "context", {}) or {})


class LogContext:
    """
    Context manager for adding structured fields to log records.

    Fields are kept in thread-local storage and copied onto every record by
    ``_ContextFilter``, so nested calls inherit the outer fields.

    Example:
        with LogContext(agency_id=agency.id, invoice_number="INV-2025-0001"):
            logger.info("Sending invoice email")
    """

    def __init__(self, **kwargs):
        self.fields = {k: v for k, v in kwargs.items() if v is not None}
        self.previous_context: Optional[Dict[str, Any]] = None

    def __enter__(self):
        if not hasattr(_thread_local, "context"):
            _thread_local.context = {}

        self.previous_context = _thread_local.context.copy()
        _thread_local.context.update(self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _thread_local.context = (
            self.previous_context if self.previous_context is not None else {}
        )


class _ContextFilter(logging.Filter):
    """Logging filter that adds context fields to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in getattr(_thread_local, "context", {}).items():
            setattr(record, key, value)
        return True


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(sensitive in lowered for sensitive in SENSITIVE_FIELDS)


def sanitize_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Redact sensitive fields in a (possibly nested) dictionary.

    Lists of dictionaries, such as invoice line items, are sanitized
    element by element.

    Args:
        data: Dictionary to sanitize

    Returns:
        Sanitized copy with sensitive values replaced by ``***REDACTED***``
    """
    if not isinstance(data, dict):
        return data

    sanitized: Dict[str, Any] = {}

    for key, value in data.items():
        if _is_sensitive(str(key)):
            sanitized[key] = REDACTED if value is not None else None
        elif isinstance(value, dict):
            sanitized[key] = sanitize_sensitive_data(cast(Dict[str, Any], value))
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_sensitive_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def log_function_call(
    func: Optional[Callable] = None, *, include_args: bool = False, level: str = "DEBUG"
) -> Callable:
    """
    Decorator to log function entry, exit and exceptions.

    Args:
        func: Function to decorate (when used without arguments)
        include_args: Whether to include function arguments in logs
        level: Log level to use for entry/exit messages

    Example:
        @log_function_call(level="INFO")
        def generate_due_invoices(self, today):
            ...
    """

    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(f.__module__)
            log_level = getattr(logging, level.upper())

            if include_args:
                args_repr = [repr(a) for a in args]
                kwargs_repr = [
                    f"{k}={v!r}"
                    for k, v in sanitize_sensitive_data(dict(kwargs)).items()
                ]
                signature = ", ".join(args_repr + kwargs_repr)
                logger.log(log_level, f"Entering {f.__name__} with args: {signature}")
            else:
                logger.log(log_level, f"Entering {f.__name__}")

            try:
                result = f(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Exception in {f.__name__}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                raise

            logger.log(log_level, f"Exiting {f.__name__}")
            return result

        return wrapper

    if func is None:
        return decorator
    return decorator(func)
