"""
Global pytest configuration and fixtures.
"""
import datetime as dt
import os
from decimal import Decimal
from typing import Dict
from unittest.mock import Mock

import pytest

from agency_billing.config import AppSettings, reload_settings
from agency_billing.db.session import Database
from agency_billing.models.agency import AgencyCreate, AgencyProfileUpdate
from agency_billing.models.enums import AgencyRole
from agency_billing.models.invoice import InvoiceCreate, LineItemInput
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer, build_services
from agency_billing.services.email_service import EmailService, SendResult

TODAY = dt.date(2025, 1, 20)


@pytest.fixture(scope="session")
def test_env_vars() -> Dict[str, str]:
    """Test environment variables for configuration."""
    return {
        'DATABASE_URL': 'sqlite://',
        'GOTENBERG_URL': 'http://gotenberg.test:3000',
        'PUBLIC_BASE_URL': 'https://app.example.com',
        'EMAIL_FROM_ADDRESS': 'billing@example.com',
        'EMAIL_FROM_NAME': 'Example Billing',
        'JWT_SECRET': 'test-secret',
        'ENVIRONMENT': 'testing',
        'DEBUG': 'true',
        'LOG_LEVEL': 'DEBUG',
        'MAX_RETRIES': '0',
        'RETRY_DELAY': '0',
    }


@pytest.fixture
def mock_env(test_env_vars, monkeypatch):
    """Mock environment variables for testing."""
    for key, value in test_env_vars.items():
        monkeypatch.setenv(key, value)
    for key in ('RESEND_API_KEY', 'SMTP_HOST'):
        monkeypatch.delenv(key, raising=False)

    # Clear the global settings to force reload with test values
    import agency_billing.config.settings
    agency_billing.config.settings._settings = None

    yield test_env_vars

    agency_billing.config.settings._settings = None


@pytest.fixture
def test_settings(mock_env) -> AppSettings:
    """Test configuration instance."""
    return reload_settings()


@pytest.fixture
def database() -> Database:
    """Fresh in-memory database with all tables."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def email_transport() -> Mock:
    """Email transport that accepts every message."""
    transport = Mock(spec=EmailService)
    transport.send.return_value = SendResult(success=True, message_id="msg_123")
    return transport


@pytest.fixture
def pdf_bytes() -> bytes:
    return b"%PDF-1.4 test document"


@pytest.fixture
def services(test_settings, database, email_transport, pdf_bytes) -> ServiceContainer:
    """All services on the in-memory database, pinned to TODAY.

    Email goes to a mock transport and the PDF renderer's HTTP client is a
    mock returning ``pdf_bytes``.
    """
    container = build_services(
        settings=test_settings,
        database=database,
        today=lambda: TODAY,
        email_service=email_transport,
    )
    response = Mock(status_code=200, content=pdf_bytes)
    response.raise_for_status.return_value = None
    container.pdfs.http = Mock()
    container.pdfs.http.post.return_value = response
    return container


@pytest.fixture
def agency(services):
    """A GST-registered agency with bank details."""
    return services.agencies.create_agency(
        AgencyCreate(
            name="Acme Studio",
            email="hello@acme.example.com",
            phone="0400 000 000",
            profile=AgencyProfileUpdate(
                abn="51 824 753 556",
                address_line_1="1 George St",
                city="Sydney",
                state="NSW",
                postcode="2000",
                bank_name="Example Bank",
                bsb="062-000",
                account_number="12345678",
                account_name="Acme Studio Pty Ltd",
            ),
        )
    )


@pytest.fixture
def owner_ctx(agency) -> AgencyContext:
    return AgencyContext(agency_id=agency.id, user_id="user-owner", role=AgencyRole.OWNER)


@pytest.fixture
def admin_ctx(agency) -> AgencyContext:
    return AgencyContext(agency_id=agency.id, user_id="user-admin", role=AgencyRole.ADMIN)


@pytest.fixture
def member_ctx(agency) -> AgencyContext:
    return AgencyContext(agency_id=agency.id, user_id="user-member", role=AgencyRole.MEMBER)


@pytest.fixture
def super_admin_ctx() -> AgencyContext:
    return AgencyContext(
        agency_id=None, user_id="platform-admin", role=AgencyRole.OWNER, is_super_admin=True
    )


@pytest.fixture
def invoice_payload() -> InvoiceCreate:
    """Two taxable lines of 1000.00 and 500.00 (subtotal 1500.00, GST 150.00)."""
    return InvoiceCreate(
        client_business_name="Client Co",
        client_contact_name="Jane Client",
        client_email="client@example.com",
        issue_date=TODAY,
        line_items=[
            LineItemInput(description="Website design", quantity=Decimal("1"),
                          unit_price=Decimal("1000.00"), category="Design"),
            LineItemInput(description="Hosting", quantity=Decimal("2"),
                          unit_price=Decimal("250.00")),
        ],
    )


@pytest.fixture
def draft_invoice(services, owner_ctx, invoice_payload):
    return services.invoices.create_invoice(owner_ctx, invoice_payload)


@pytest.fixture
def client(services):
    """API test client bound to the test services."""
    from fastapi.testclient import TestClient

    from agency_billing.web.app import create_app

    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(test_settings):
    """Build a bearer header for an ``AgencyContext``."""
    from agency_billing.web.auth import create_access_token

    def _headers(ctx: AgencyContext) -> Dict[str, str]:
        token = create_access_token(
            test_settings,
            user_id=ctx.user_id,
            agency_id=ctx.agency_id,
            role=ctx.role,
            super_admin=ctx.is_super_admin,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture(autouse=True)
def cleanup_test_files():
    """Clean up any test files created during testing."""
    yield

    # Remove test coverage files in case they're created
    test_files = ['coverage.xml', '.coverage']
    for file in test_files:
        if os.path.exists(file):
            os.remove(file)


# Pytest configuration for different test types
def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on location."""
    for item in items:
        if "tests/unit/" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
