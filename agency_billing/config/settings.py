"""
Configuration management for the agency billing service.
"""

from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_PAYMENT_TERMS = ["DUE_ON_RECEIPT", "NET_7", "NET_14", "NET_30", "CUSTOM"]


class AppSettings(BaseSettings):
    """Configuration settings for the agency billing service."""

    # Database
    database_url: str = Field(
        default="sqlite:///agency_billing.db", alias="DATABASE_URL"
    )

    # PDF rendering service (Gotenberg)
    gotenberg_url: str = Field(default="http://localhost:3003", alias="GOTENBERG_URL")
    pdf_timeout: int = Field(default=30, alias="PDF_TIMEOUT")

    # Public links
    public_base_url: str = Field(
        default="http://localhost:3004", alias="PUBLIC_BASE_URL"
    )

    # Email delivery
    email_from_address: str = Field(
        default="noreply@agency-billing.local", alias="EMAIL_FROM_ADDRESS"
    )
    email_from_name: str = Field(default="Agency Billing", alias="EMAIL_FROM_NAME")
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")
    resend_api_url: str = Field(
        default="https://api.resend.com/emails", alias="RESEND_API_URL"
    )
    smtp_host: Optional[str] = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=1025, alias="SMTP_PORT")

    # Authentication
    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expiry_hours: int = Field(default=72, alias="JWT_EXPIRY_HOURS")

    # Invoicing defaults for new agencies
    default_gst_rate: Decimal = Field(default=Decimal("10.00"), alias="DEFAULT_GST_RATE")
    default_payment_terms: str = Field(default="NET_14", alias="DEFAULT_PAYMENT_TERMS")
    default_invoice_prefix: str = Field(default="INV", alias="DEFAULT_INVOICE_PREFIX")

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Outbound HTTP retries
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    retry_delay: float = Field(default=1.0, alias="RETRY_DELAY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is valid."""
        valid_envs = ["development", "testing", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v.lower()

    @field_validator("default_payment_terms")
    @classmethod
    def validate_payment_terms(cls, v):
        """Ensure the default payment terms are a known value."""
        if v.upper() not in VALID_PAYMENT_TERMS:
            raise ValueError(f"Payment terms must be one of: {VALID_PAYMENT_TERMS}")
        return v.upper()

    @field_validator("gotenberg_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    def is_email_configured(self) -> bool:
        """Check whether any email transport is configured."""
        return bool(self.resend_api_key or self.smtp_host)

    @property
    def email_from(self) -> str:
        """Formatted sender header, e.g. ``Agency Billing <noreply@agency-billing.local>``."""
        return f"{self.email_from_name} <{self.email_from_address}>"


def load_settings(env_file: Optional[str] = None) -> AppSettings:
    """Load configuration from environment variables and .env file."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return AppSettings()


# Global configuration instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get the global configuration instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings(env_file: Optional[str] = None) -> AppSettings:
    """Reload configuration (useful for testing)."""
    global _settings
    _settings = load_settings(env_file)
    return _settings
