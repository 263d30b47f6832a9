"""Tests for structured logging utilities."""

import json
import logging
import uuid

import pytest

from agency_billing.config.logging_config import LoggingConfig, configure_logging, reset_logging
from agency_billing.utils.logging_utils import (
    LogContext,
    generate_correlation_id,
    get_context,
    get_correlation_id,
    log_function_call,
    sanitize_sensitive_data,
)


@pytest.fixture
def json_log(tmp_path):
    """Route all logging to a JSON file; returns a reader for its entries."""
    log_file = tmp_path / "billing.log"
    configure_logging(
        LoggingConfig(
            log_level="DEBUG",
            log_format="json",
            enable_console=False,
            enable_file=True,
            log_file=str(log_file),
        )
    )

    def read_entries():
        for handler in logging.getLogger().handlers:
            handler.flush()
        return [json.loads(line) for line in log_file.read_text().strip().split("\n")]

    yield read_entries
    reset_logging()


class TestGenerateCorrelationId:
    """Test correlation ID generation."""

    def test_generate_correlation_id_format(self):
        uuid.UUID(generate_correlation_id())

    def test_generate_correlation_id_uniqueness(self):
        ids = [generate_correlation_id() for _ in range(100)]
        assert len(set(ids)) == 100


class TestLogContext:
    """Test LogContext context manager."""

    def test_context_adds_fields_to_logs(self, json_log):
        logger = logging.getLogger("agency_billing.test")

        with LogContext(agency_id="agency-1", invoice_number="ACM-2025-0001"):
            logger.info("Sending invoice email")

        entry = json_log()[0]
        assert entry["agency_id"] == "agency-1"
        assert entry["invoice_number"] == "ACM-2025-0001"

    def test_context_nesting(self, json_log):
        logger = logging.getLogger("agency_billing.test")

        with LogContext(job="daily"):
            with LogContext(recurring_invoice_id="rec-1"):
                logger.info("Nested message")

        entry = json_log()[0]
        assert entry["job"] == "daily"
        assert entry["recurring_invoice_id"] == "rec-1"

    def test_context_cleanup_after_exit(self, json_log):
        logger = logging.getLogger("agency_billing.test")

        with LogContext(agency_id="agency-1"):
            logger.info("Inside context")
        logger.info("Outside context")

        inside, outside = json_log()
        assert "agency_id" in inside
        assert "agency_id" not in outside

    def test_none_values_are_not_attached(self):
        with LogContext(agency_id=None, job="daily"):
            assert get_context() == {"job": "daily"}

    def test_get_correlation_id_from_context(self):
        corr_id = generate_correlation_id()

        with LogContext(correlation_id=corr_id):
            assert get_correlation_id() == corr_id

        assert get_correlation_id() is None


class TestSanitizeSensitiveData:
    """Test sensitive data sanitization."""

    def test_sanitize_credentials(self):
        sanitized = sanitize_sensitive_data(
            {"email": "owner@example.com", "password": "hunter2", "api_key": "re_123"}
        )

        assert sanitized["email"] == "owner@example.com"
        assert sanitized["password"] == "***REDACTED***"
        assert sanitized["api_key"] == "***REDACTED***"

    def test_sanitize_bank_details(self):
        """Bank account fields from agency profiles never reach the activity log."""
        sanitized = sanitize_sensitive_data(
            {"bank_name": "Example Bank", "bsb": "062-000", "account_number": "12345678"}
        )

        assert sanitized == {
            "bank_name": "Example Bank",
            "bsb": "***REDACTED***",
            "account_number": "***REDACTED***",
        }

    def test_key_match_is_case_insensitive_substring(self):
        sanitized = sanitize_sensitive_data({"Authorization": "Bearer x", "jwt_secret": "s"})

        assert sanitized["Authorization"] == "***REDACTED***"
        assert sanitized["jwt_secret"] == "***REDACTED***"

    def test_sanitize_nested_dicts_and_lists(self):
        data = {
            "profile": {"abn": "51 824 753 556", "token": "abc"},
            "line_items": [{"description": "Design", "secret": "x"}, "plain"],
        }

        sanitized = sanitize_sensitive_data(data)

        assert sanitized["profile"] == {"abn": "51 824 753 556", "token": "***REDACTED***"}
        assert sanitized["line_items"][0]["secret"] == "***REDACTED***"
        assert sanitized["line_items"][1] == "plain"

    def test_sanitize_preserves_none_and_does_not_mutate(self):
        data = {"password": None, "token": "abc"}

        sanitized = sanitize_sensitive_data(data)

        assert sanitized["password"] is None
        assert data["token"] == "abc"


class TestLogFunctionCall:
    """Test function call logging decorator."""

    def test_logs_entry_and_exit(self, json_log):
        @log_function_call
        def add(x, y):
            return x + y

        assert add(2, 3) == 5

        entering, exiting = json_log()
        assert entering["message"] == "Entering add"
        assert exiting["message"] == "Exiting add"

    def test_include_args_redacts_sensitive_kwargs(self, json_log):
        @log_function_call(include_args=True)
        def send(recipient, api_key=None):
            return recipient

        send("client@example.com", api_key="re_live_123")

        message = json_log()[0]["message"]
        assert "client@example.com" in message
        assert "re_live_123" not in message
        assert "***REDACTED***" in message

    def test_level_option(self, json_log):
        @log_function_call(level="INFO")
        def run():
            return None

        run()

        assert {entry["level"] for entry in json_log()} == {"INFO"}

    def test_exception_is_logged_and_reraised(self, json_log):
        @log_function_call
        def failing():
            raise ValueError("bad schedule")

        with pytest.raises(ValueError):
            failing()

        error_entry = json_log()[-1]
        assert error_entry["level"] == "ERROR"
        assert "ValueError: bad schedule" in error_entry["message"]
