"""Enumerations shared by payload models, ORM tables and services."""

from enum import Enum


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Invoices in these states can still be edited
EDITABLE_STATUSES = frozenset(
    {InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE}
)

# Invoices in these states are awaiting payment and can become overdue
AWAITING_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.VIEWED})


class PaymentTerms(str, Enum):
    DUE_ON_RECEIPT = "DUE_ON_RECEIPT"
    NET_7 = "NET_7"
    NET_14 = "NET_14"
    NET_30 = "NET_30"
    CUSTOM = "CUSTOM"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    CASH = "cash"
    OTHER = "other"


class RecurringFrequency(str, Enum):
    """How often a recurring schedule produces an invoice."""

    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class RecurringStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class TemplateCategory(str, Enum):
    QUESTIONNAIRE = "questionnaire"
    CONSULTATION = "consultation"
    FEEDBACK = "feedback"
    INTAKE = "intake"
    GENERAL = "general"


class FormType(str, Enum):
    QUESTIONNAIRE = "questionnaire"
    CONSULTATION = "consultation"
    FEEDBACK = "feedback"
    INTAKE = "intake"
    CUSTOM = "custom"


class AgencyRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class EmailType(str, Enum):
    INVOICE_SENT = "invoice_sent"
    PAYMENT_REMINDER = "payment_reminder"


class EmailStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
