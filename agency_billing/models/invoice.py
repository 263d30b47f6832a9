"""Invoice payload models.

This module defines the inputs accepted by the invoice service:

- ``LineItemInput``: one billable line (description, quantity, unit price)
- ``InvoiceCreate`` / ``InvoiceUpdate``: full and partial invoice payloads
- ``PaymentRecord``: details captured when an invoice is marked paid
- ``InvoiceFilters``: list filters (status, issue-date range, search)
- ``EmailLogFilters``: filters for the email delivery log

Money values are Decimals; amounts and totals are never accepted from the
caller, they are always derived by ``calculators.invoice_calculator``.
"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from agency_billing.models.base import BaseDataModel, to_decimal
from agency_billing.models.enums import (
    EmailStatus,
    EmailType,
    InvoiceStatus,
    PaymentMethod,
    PaymentTerms,
)


class LineItemInput(BaseDataModel):
    """A single line item as submitted by the caller.

    Attributes:
        description: What is being billed
        quantity: Number of units (hours, items)
        unit_price: Price per unit, excluding GST
        is_taxable: Whether GST applies to this line
        category: Optional grouping label (e.g. "Design", "Hosting")

    Example:
        >>> item = LineItemInput(description="Website build", quantity=1,
        ...                      unit_price="4500.00")
        >>> item.unit_price
        Decimal('4500.00')
    """

    description: str = Field(..., min_length=1, description="Line description")
    quantity: Decimal = Field(default=Decimal("1"), description="Quantity")
    unit_price: Decimal = Field(..., description="Unit price excluding GST")
    is_taxable: bool = Field(default=True, description="Whether GST applies")
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("description")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v)


class _ClientFields(BaseDataModel):
    client_business_name: str = Field(..., min_length=1, max_length=255)
    client_contact_name: Optional[str] = Field(default=None, max_length=255)
    client_email: EmailStr
    client_phone: Optional[str] = Field(default=None, max_length=50)
    client_address: Optional[str] = None
    client_abn: Optional[str] = Field(default=None, max_length=20)


class InvoiceCreate(_ClientFields):
    """Payload for creating a draft invoice.

    ``issue_date`` defaults to today and ``payment_terms`` to the agency
    profile's default terms. When ``due_date`` is omitted it is derived from
    the payment terms.
    """

    issue_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    payment_terms: Optional[PaymentTerms] = None
    payment_terms_custom: Optional[str] = Field(default=None, max_length=255)
    line_items: List[LineItemInput] = Field(default_factory=list)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_description: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    public_notes: Optional[str] = None

    @field_validator("discount_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v if v is not None else 0)

    @field_validator("client_business_name")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()


class InvoiceUpdate(BaseDataModel):
    """Partial update of an invoice; only provided fields are applied.

    Passing ``line_items`` replaces the full list of line items.
    """

    client_business_name: Optional[str] = Field(default=None, min_length=1)
    client_contact_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    client_abn: Optional[str] = None
    issue_date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    payment_terms: Optional[PaymentTerms] = None
    payment_terms_custom: Optional[str] = None
    line_items: Optional[List[LineItemInput]] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    discount_description: Optional[str] = None
    notes: Optional[str] = None
    public_notes: Optional[str] = None

    @field_validator("discount_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v)


class PaymentRecord(BaseDataModel):
    """Details recorded when an invoice is paid."""

    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(default=None, max_length=255)
    payment_notes: Optional[str] = None
    paid_at: Optional[dt.datetime] = None


class StatusChangeReason(BaseDataModel):
    """Optional reason supplied with a cancel or refund."""

    reason: Optional[str] = Field(default=None, max_length=1000)


class InvoiceEmailRequest(BaseDataModel):
    """Optional custom message for invoice and reminder emails."""

    custom_message: Optional[str] = Field(default=None, max_length=5000)


class InvoiceFilters(BaseDataModel):
    """Filters for listing invoices.

    Attributes:
        status: Only invoices with this status
        from_date: Issue date on or after this date
        to_date: Issue date on or before this date
        search: Case-insensitive match on number, client name or email
    """

    status: Optional[InvoiceStatus] = None
    from_date: Optional[dt.date] = None
    to_date: Optional[dt.date] = None
    search: Optional[str] = None
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_date_range(self) -> "InvoiceFilters":
        if self.from_date and self.to_date and self.to_date < self.from_date:
            raise ValueError(
                f"to_date ({self.to_date}) must not be before from_date "
                f"({self.from_date})"
            )
        return self


class EmailLogFilters(BaseDataModel):
    """Filters for the agency's email log, newest first."""

    invoice_id: Optional[str] = None
    status: Optional[EmailStatus] = None
    email_type: Optional[EmailType] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)
