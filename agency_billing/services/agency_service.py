"""Agencies and their invoicing profile."""

import logging
from typing import List, Optional

from sqlalchemy import select

from agency_billing.config.settings import AppSettings, get_settings
from agency_billing.db.session import Database
from agency_billing.db.tables import Agency, AgencyProfile
from agency_billing.errors import NotFoundError
from agency_billing.models.agency import AgencyCreate, AgencyProfileUpdate
from agency_billing.models.enums import PaymentTerms
from agency_billing.services.access import AgencyContext, require_agency, require_permission
from agency_billing.services.activity import log_activity

logger = logging.getLogger(__name__)


def _plain(value):
    if value is None:
        return None
    return value.value if isinstance(value, PaymentTerms) else str(value)


class AgencyService:
    """Create agencies and manage the profile printed on invoices."""

    def __init__(self, database: Database, settings: Optional[AppSettings] = None):
        self.db = database
        self.settings = settings or get_settings()

    def create_agency(self, data: AgencyCreate) -> Agency:
        """
        Create an agency together with its profile.

        Profile values not supplied fall back to the configured defaults
        (GST rate, payment terms, invoice prefix).
        """
        profile_values = data.profile.changed_fields()
        profile_values.setdefault("gst_registered", True)
        profile_values.setdefault("gst_rate", self.settings.default_gst_rate)
        profile_values.setdefault(
            "default_payment_terms", PaymentTerms(self.settings.default_payment_terms)
        )
        profile_values.setdefault("invoice_prefix", self.settings.default_invoice_prefix)
        profile_values.setdefault("next_invoice_number", 1)
        profile_values = {k: v for k, v in profile_values.items() if v is not None}

        with self.db.session_scope() as session:
            agency = Agency(
                name=data.name,
                email=data.email,
                phone=data.phone,
                logo_url=data.logo_url,
                primary_color=data.primary_color,
                profile=AgencyProfile(**profile_values),
            )
            session.add(agency)
            session.flush()
            log_activity(
                session,
                AgencyContext.system(agency.id),
                "agency.created",
                "agency",
                agency.id,
                new_values={"name": agency.name, "email": agency.email},
            )
            logger.info(f"Created agency {agency.name} ({agency.id})")
            return agency

    def list_agencies(self) -> List[Agency]:
        with self.db.session_scope() as session:
            return list(session.scalars(select(Agency).order_by(Agency.name)).all())

    def get_agency(self, agency_id: str) -> Agency:
        with self.db.session_scope() as session:
            agency = session.get(Agency, agency_id)
            if agency is None:
                raise NotFoundError("Agency not found")
            return agency

    def get_profile(self, agency_id: str) -> AgencyProfile:
        with self.db.session_scope() as session:
            profile = session.scalar(
                select(AgencyProfile).where(AgencyProfile.agency_id == agency_id)
            )
            if profile is None:
                raise NotFoundError("Agency profile not found")
            return profile

    def update_profile(self, ctx: AgencyContext, data: AgencyProfileUpdate) -> AgencyProfile:
        """Apply a partial profile update (requires ``settings:edit``)."""
        require_permission(ctx, "settings:edit")
        agency_id = require_agency(ctx)
        changes = data.changed_fields()

        with self.db.session_scope() as session:
            profile = session.scalar(
                select(AgencyProfile).where(AgencyProfile.agency_id == agency_id)
            )
            if profile is None:
                raise NotFoundError("Agency profile not found")

            old_values = {name: getattr(profile, name) for name in changes}
            for name, value in changes.items():
                if value is None and name in ("gst_registered", "gst_rate",
                                              "default_payment_terms", "invoice_prefix",
                                              "next_invoice_number"):
                    continue
                setattr(profile, name, value)

            log_activity(
                session,
                ctx,
                "agency.profile_updated",
                "agency_profile",
                profile.id,
                old_values={k: _plain(v) for k, v in old_values.items()},
                new_values={k: _plain(v) for k, v in changes.items()},
            )
            return profile
