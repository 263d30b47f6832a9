"""Payload models for the agency billing service.

This package contains Pydantic models for everything services accept:
- BaseDataModel: Base class with common configuration
- Enumerations: invoice status, payment terms, frequencies, roles
- Invoice payloads: line items, create/update, payments, filters
- Recurring schedule payloads
- Form template and agency form payloads
- Agency and profile payloads
"""

from agency_billing.models.agency import AgencyCreate, AgencyProfileUpdate
from agency_billing.models.base import BaseDataModel
from agency_billing.models.enums import (
    AgencyRole,
    EmailStatus,
    EmailType,
    FormType,
    InvoiceStatus,
    PaymentMethod,
    PaymentTerms,
    RecurringFrequency,
    RecurringStatus,
    TemplateCategory,
)
from agency_billing.models.forms import (
    AgencyFormFromTemplate,
    AgencyFormUpdate,
    FormTemplateCreate,
    FormTemplateUpdate,
    TemplateOrder,
    TemplateReorder,
)
from agency_billing.models.invoice import (
    InvoiceCreate,
    InvoiceEmailRequest,
    InvoiceFilters,
    InvoiceUpdate,
    LineItemInput,
    PaymentRecord,
    StatusChangeReason,
)
from agency_billing.models.recurring import (
    RecurringInvoiceCreate,
    RecurringInvoiceUpdate,
)

__all__ = [
    "AgencyCreate",
    "AgencyFormFromTemplate",
    "AgencyFormUpdate",
    "AgencyProfileUpdate",
    "AgencyRole",
    "BaseDataModel",
    "EmailStatus",
    "EmailType",
    "FormTemplateCreate",
    "FormTemplateUpdate",
    "FormType",
    "InvoiceCreate",
    "InvoiceEmailRequest",
    "InvoiceFilters",
    "InvoiceStatus",
    "InvoiceUpdate",
    "LineItemInput",
    "PaymentMethod",
    "PaymentRecord",
    "PaymentTerms",
    "RecurringFrequency",
    "RecurringInvoiceCreate",
    "RecurringInvoiceUpdate",
    "RecurringStatus",
    "StatusChangeReason",
    "TemplateCategory",
    "TemplateOrder",
    "TemplateReorder",
]
