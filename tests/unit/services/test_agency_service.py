"""Unit tests for agencies and their invoicing profile."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from agency_billing.db.tables import ActivityLog
from agency_billing.errors import NotFoundError, PermissionDeniedError
from agency_billing.models.agency import AgencyCreate, AgencyProfileUpdate
from agency_billing.models.enums import PaymentTerms
from agency_billing.utils.logging_utils import REDACTED


class TestCreateAgency:
    """Test agency creation and profile defaults."""

    def test_profile_defaults_from_settings(self, services):
        agency = services.agencies.create_agency(
            AgencyCreate(name="Beta Digital", email="hello@beta.example.com")
        )

        profile = services.agencies.get_profile(agency.id)
        assert profile.gst_registered is True
        assert profile.gst_rate == Decimal("10.00")
        assert profile.default_payment_terms == PaymentTerms.NET_14
        assert profile.invoice_prefix == "INV"
        assert profile.next_invoice_number == 1

    def test_supplied_profile_values_win(self, services):
        agency = services.agencies.create_agency(
            AgencyCreate(
                name="Kiwi Co",
                email="kia@kiwi.example.com",
                profile=AgencyProfileUpdate(
                    gst_rate="15", invoice_prefix="kiwi", default_payment_terms="NET_30"
                ),
            )
        )

        profile = services.agencies.get_profile(agency.id)
        assert profile.gst_rate == Decimal("15")
        assert profile.invoice_prefix == "KIWI"
        assert profile.default_payment_terms == PaymentTerms.NET_30

    def test_list_agencies_sorted_by_name(self, services, agency):
        services.agencies.create_agency(AgencyCreate(name="Beta", email="b@example.com"))

        assert [a.name for a in services.agencies.list_agencies()] == ["Acme Studio", "Beta"]

    def test_get_missing_agency(self, services):
        with pytest.raises(NotFoundError, match="Agency not found"):
            services.agencies.get_agency("missing")

    def test_get_agency_includes_profile(self, services, agency):
        loaded = services.agencies.get_agency(agency.id)

        assert loaded.profile.abn == "51 824 753 556"


class TestUpdateProfile:
    """Test profile updates."""

    def test_partial_update(self, services, owner_ctx, agency):
        profile = services.agencies.update_profile(
            owner_ctx, AgencyProfileUpdate(invoice_prefix="acm", trading_name="Acme")
        )

        assert profile.invoice_prefix == "ACM"
        assert profile.trading_name == "Acme"
        assert profile.bsb == "062-000"

    def test_member_cannot_edit(self, services, member_ctx):
        with pytest.raises(PermissionDeniedError):
            services.agencies.update_profile(member_ctx, AgencyProfileUpdate(city="Perth"))

    def test_bank_details_redacted_in_activity_log(self, services, database, admin_ctx):
        services.agencies.update_profile(
            admin_ctx, AgencyProfileUpdate(bsb="111-222", account_number="999", city="Perth")
        )

        with database.session_scope() as session:
            entry = session.scalar(
                select(ActivityLog).where(ActivityLog.action == "agency.profile_updated")
            )
        assert entry.new_values == {
            "bsb": REDACTED,
            "account_number": REDACTED,
            "city": "Perth",
        }
        assert entry.old_values["bsb"] == REDACTED
        assert entry.old_values["city"] == "Sydney"
        assert entry.user_id == "user-admin"
