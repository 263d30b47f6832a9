"""SQLAlchemy ORM tables.

Money columns are ``Numeric(10, 2)`` and come back as ``Decimal``. Status
columns store the enum value as a short string (no native DB enum) and
come back as the Python enum.
"""

import datetime as dt
import enum
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from agency_billing.models.enums import (
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

Base = declarative_base()


def new_id() -> str:
    return str(uuid4())


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def enum_column(enum_cls, **kwargs) -> Any:
    """String-backed enum column storing member values."""
    return mapped_column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


def money(**kwargs) -> Any:
    return mapped_column(Numeric(10, 2), **kwargs)


class SerializableMixin:
    """Plain-dict rendering of a row for JSON responses, logs and reports."""

    def to_dict(self, exclude: tuple = ()) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for column in self.__table__.columns:  # type: ignore[attr-defined]
            if column.key in exclude:
                continue
            data[column.key] = _json_value(getattr(self, column.key))
        return data


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


class TimestampMixin:
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class Agency(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    logo_url: Mapped[Optional[str]] = mapped_column(Text)
    primary_color: Mapped[str] = mapped_column(
        String(20), nullable=False, default="#4f46e5"
    )

    profile: Mapped[Optional["AgencyProfile"]] = relationship(
        back_populates="agency",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class AgencyProfile(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "agency_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agencies.id", ondelete="CASCADE"), unique=True
    )
    abn: Mapped[Optional[str]] = mapped_column(String(20))
    trading_name: Mapped[Optional[str]] = mapped_column(String(255))
    address_line_1: Mapped[Optional[str]] = mapped_column(String(255))
    address_line_2: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(50))
    postcode: Mapped[Optional[str]] = mapped_column(String(20))
    bank_name: Mapped[Optional[str]] = mapped_column(String(100))
    bsb: Mapped[Optional[str]] = mapped_column(String(10))
    account_number: Mapped[Optional[str]] = mapped_column(String(30))
    account_name: Mapped[Optional[str]] = mapped_column(String(255))
    gst_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    gst_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("10.00")
    )
    default_payment_terms: Mapped[PaymentTerms] = enum_column(
        PaymentTerms, nullable=False, default=PaymentTerms.NET_14
    )
    invoice_prefix: Mapped[str] = mapped_column(
        String(20), nullable=False, default="INV"
    )
    invoice_footer: Mapped[Optional[str]] = mapped_column(Text)
    next_invoice_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )

    agency: Mapped[Agency] = relationship(back_populates="profile")


class Invoice(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("agency_id", "invoice_number", name="uq_invoice_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agencies.id", ondelete="CASCADE"), index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[InvoiceStatus] = enum_column(
        InvoiceStatus, nullable=False, default=InvoiceStatus.DRAFT, index=True
    )

    # Client snapshot
    client_business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[Optional[str]] = mapped_column(String(50))
    client_address: Mapped[Optional[str]] = mapped_column(Text)
    client_abn: Mapped[Optional[str]] = mapped_column(String(20))

    issue_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    subtotal: Mapped[Decimal] = money(nullable=False, default=Decimal("0.00"))
    discount_amount: Mapped[Decimal] = money(nullable=False, default=Decimal("0.00"))
    discount_description: Mapped[Optional[str]] = mapped_column(String(255))
    gst_amount: Mapped[Decimal] = money(nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = money(nullable=False, default=Decimal("0.00"))

    # GST settings at the time the invoice was created
    gst_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    gst_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("10.00")
    )

    payment_terms: Mapped[PaymentTerms] = enum_column(
        PaymentTerms, nullable=False, default=PaymentTerms.NET_14
    )
    payment_terms_custom: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    public_notes: Mapped[Optional[str]] = mapped_column(Text)

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_viewed_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    sent_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    payment_method: Mapped[Optional[PaymentMethod]] = enum_column(
        PaymentMethod, nullable=True
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255))
    payment_notes: Mapped[Optional[str]] = mapped_column(Text)
    pdf_generated_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True)
    )

    recurring_invoice_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("recurring_invoices.id", ondelete="SET NULL")
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(36))

    line_items: Mapped[List["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.sort_order",
        lazy="selectin",
    )


class InvoiceLineItem(Base, SerializableMixin):
    __tablename__ = "invoice_line_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    invoice_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="CASCADE"), index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_price: Mapped[Decimal] = money(nullable=False)
    amount: Mapped[Decimal] = money(nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    invoice: Mapped[Invoice] = relationship(back_populates="line_items")


class RecurringInvoice(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "recurring_invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agencies.id", ondelete="CASCADE"), index=True
    )
    client_business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[Optional[str]] = mapped_column(String(50))
    client_address: Mapped[Optional[str]] = mapped_column(Text)
    client_abn: Mapped[Optional[str]] = mapped_column(String(20))

    # List of {description, quantity, unit_price, is_taxable, category}
    line_items: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    frequency: Mapped[RecurringFrequency] = enum_column(
        RecurringFrequency, nullable=False
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    next_run_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    max_occurrences: Mapped[Optional[int]] = mapped_column(Integer)
    occurrences_generated: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_run_date: Mapped[Optional[dt.date]] = mapped_column(Date)

    payment_terms: Mapped[Optional[PaymentTerms]] = enum_column(
        PaymentTerms, nullable=True
    )
    payment_terms_custom: Mapped[Optional[str]] = mapped_column(String(255))
    discount_amount: Mapped[Decimal] = money(nullable=False, default=Decimal("0.00"))
    discount_description: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    public_notes: Mapped[Optional[str]] = mapped_column(Text)
    auto_send: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[RecurringStatus] = enum_column(
        RecurringStatus, nullable=False, default=RecurringStatus.ACTIVE, index=True
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(36))


class FormTemplate(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "form_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[TemplateCategory] = enum_column(
        TemplateCategory, nullable=False, default=TemplateCategory.GENERAL
    )
    schema: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    ui_config: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    preview_image_url: Mapped[Optional[str]] = mapped_column(Text)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    new_until: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AgencyForm(Base, TimestampMixin, SerializableMixin):
    __tablename__ = "agency_forms"
    __table_args__ = (
        UniqueConstraint("agency_id", "slug", name="uq_agency_form_slug"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agencies.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    form_type: Mapped[FormType] = enum_column(FormType, nullable=False)
    schema: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    ui_config: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    branding: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_auth: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    source_template_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("form_templates.id", ondelete="SET NULL"),
        index=True,
    )
    is_customized: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Single-level rollback slot; SQL NULL (not JSON null) when empty
    previous_schema: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[Optional[str]] = mapped_column(String(36))


class EmailLog(Base, SerializableMixin):
    __tablename__ = "email_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agencies.id", ondelete="CASCADE"), index=True
    )
    invoice_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="SET NULL"), index=True
    )
    email_type: Mapped[EmailType] = enum_column(EmailType, nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body_html: Mapped[str] = mapped_column(Text, nullable=False)
    has_attachment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attachment_filename: Mapped[Optional[str]] = mapped_column(String(255))
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[EmailStatus] = enum_column(
        EmailStatus, nullable=False, default=EmailStatus.PENDING
    )
    sent_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_by: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ActivityLog(Base, SerializableMixin):
    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    agency_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(36))
    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON(none_as_null=True)
    )
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON(none_as_null=True)
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


__all__ = [
    "ActivityLog",
    "Agency",
    "AgencyForm",
    "AgencyProfile",
    "Base",
    "EmailLog",
    "FormTemplate",
    "Invoice",
    "InvoiceLineItem",
    "RecurringInvoice",
    "new_id",
    "utcnow",
]
