"""Persistence layer: ORM tables and session management."""

from agency_billing.db.session import Database, get_database, reset_database
from agency_billing.db.tables import (
    ActivityLog,
    Agency,
    AgencyForm,
    AgencyProfile,
    Base,
    EmailLog,
    FormTemplate,
    Invoice,
    InvoiceLineItem,
    RecurringInvoice,
)

__all__ = [
    "ActivityLog",
    "Agency",
    "AgencyForm",
    "AgencyProfile",
    "Base",
    "Database",
    "EmailLog",
    "FormTemplate",
    "Invoice",
    "InvoiceLineItem",
    "RecurringInvoice",
    "get_database",
    "reset_database",
]
