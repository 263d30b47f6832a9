"""Recurring invoice schedule payloads."""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from agency_billing.models.base import BaseDataModel, to_decimal
from agency_billing.models.enums import PaymentTerms, RecurringFrequency
from agency_billing.models.invoice import LineItemInput, _ClientFields


class RecurringInvoiceCreate(_ClientFields):
    """Definition of a schedule that generates invoices automatically.

    The first invoice is generated on ``start_date``; later ones follow the
    frequency. The schedule completes after ``end_date`` or once
    ``max_occurrences`` invoices have been generated, whichever comes first.
    """

    frequency: RecurringFrequency
    start_date: dt.date
    end_date: Optional[dt.date] = None
    max_occurrences: Optional[int] = None
    payment_terms: Optional[PaymentTerms] = None
    payment_terms_custom: Optional[str] = Field(default=None, max_length=255)
    line_items: List[LineItemInput] = Field(default_factory=list)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_description: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    public_notes: Optional[str] = None
    auto_send: bool = False

    @field_validator("discount_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v if v is not None else 0)


class RecurringInvoiceUpdate(BaseDataModel):
    """Partial update of a schedule.

    Changing ``frequency`` or ``next_run_date`` only affects future runs;
    invoices already generated are left untouched.
    """

    client_business_name: Optional[str] = Field(default=None, min_length=1)
    client_contact_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    client_abn: Optional[str] = None
    frequency: Optional[RecurringFrequency] = None
    next_run_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    max_occurrences: Optional[int] = None
    payment_terms: Optional[PaymentTerms] = None
    payment_terms_custom: Optional[str] = None
    line_items: Optional[List[LineItemInput]] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    discount_description: Optional[str] = None
    notes: Optional[str] = None
    public_notes: Optional[str] = None
    auto_send: Optional[bool] = None

    @field_validator("discount_amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v)
