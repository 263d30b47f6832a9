"""
Unit tests for configuration management.
"""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import ValidationError

import agency_billing.config.settings as settings_module
from agency_billing.config.settings import (
    AppSettings,
    get_settings,
    load_settings,
    reload_settings,
)


class TestAppSettings:
    """Test cases for AppSettings."""

    def test_config_with_valid_env_vars(self, test_settings):
        """Test configuration loads correctly with valid environment variables."""
        assert test_settings.database_url == "sqlite://"
        assert test_settings.gotenberg_url == "http://gotenberg.test:3000"
        assert test_settings.public_base_url == "https://app.example.com"
        assert test_settings.jwt_secret == "test-secret"
        assert test_settings.environment == "testing"
        assert test_settings.debug is True
        assert test_settings.log_level == "DEBUG"
        assert test_settings.max_retries == 0

    def test_default_values(self, mock_env):
        """Test default configuration values."""
        config = AppSettings()

        assert config.pdf_timeout == 30
        assert config.jwt_algorithm == "HS256"
        assert config.jwt_expiry_hours == 72
        assert config.default_gst_rate == Decimal("10.00")
        assert config.default_payment_terms == "NET_14"
        assert config.default_invoice_prefix == "INV"
        assert config.smtp_port == 1025
        assert config.resend_api_url == "https://api.resend.com/emails"

    def test_email_from_header(self, test_settings):
        assert test_settings.email_from == "Example Billing <billing@example.com>"

    def test_email_configured_by_either_transport(self, mock_env):
        assert AppSettings().is_email_configured() is False

        with patch.dict(os.environ, {"RESEND_API_KEY": "re_test"}):
            assert AppSettings().is_email_configured() is True

        with patch.dict(os.environ, {"SMTP_HOST": "localhost"}):
            assert AppSettings().is_email_configured() is True

    def test_trailing_slash_is_stripped(self, mock_env):
        with patch.dict(
            os.environ,
            {"GOTENBERG_URL": "http://gotenberg:3000/", "PUBLIC_BASE_URL": "https://x.test/"},
        ):
            config = AppSettings()

        assert config.gotenberg_url == "http://gotenberg:3000"
        assert config.public_base_url == "https://x.test"

    @pytest.mark.parametrize("level", ["debug", "Warning", "ERROR"])
    def test_log_level_is_normalised(self, mock_env, level):
        with patch.dict(os.environ, {"LOG_LEVEL": level}):
            assert AppSettings().log_level == level.upper()

    def test_invalid_log_level(self, mock_env):
        with patch.dict(os.environ, {"LOG_LEVEL": "VERBOSE"}):
            with pytest.raises(ValidationError) as exc_info:
                AppSettings()

        assert "Log level must be one of" in str(exc_info.value)

    def test_invalid_environment(self, mock_env):
        with patch.dict(os.environ, {"ENVIRONMENT": "staging"}):
            with pytest.raises(ValidationError) as exc_info:
                AppSettings()

        assert "Environment must be one of" in str(exc_info.value)

    def test_payment_terms_validation(self, mock_env):
        with patch.dict(os.environ, {"DEFAULT_PAYMENT_TERMS": "net_30"}):
            assert AppSettings().default_payment_terms == "NET_30"

        with patch.dict(os.environ, {"DEFAULT_PAYMENT_TERMS": "NET_60"}):
            with pytest.raises(ValidationError):
                AppSettings()


class TestSettingsLoading:
    """Test cases for the global settings accessors."""

    def test_load_settings_from_env_file(self, mock_env, tmp_path, monkeypatch):
        monkeypatch.delenv("GOTENBERG_URL")
        env_file = tmp_path / ".env"
        env_file.write_text("GOTENBERG_URL=http://pdf.internal:3000\n")

        config = load_settings(str(env_file))

        assert config.gotenberg_url == "http://pdf.internal:3000"
        monkeypatch.delenv("GOTENBERG_URL")

    def test_get_settings_is_cached(self, mock_env):
        first = get_settings()

        assert get_settings() is first

    def test_reload_settings_replaces_global(self, mock_env):
        first = get_settings()

        reloaded = reload_settings()

        assert reloaded is not first
        assert settings_module._settings is reloaded
