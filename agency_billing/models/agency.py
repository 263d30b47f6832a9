"""Agency and agency profile payloads."""

from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from agency_billing.models.base import BaseDataModel, to_decimal
from agency_billing.models.enums import PaymentTerms


class AgencyProfileUpdate(BaseDataModel):
    """Business details printed on invoices and used for GST and numbering.

    Attributes:
        abn: Australian Business Number shown on invoices
        gst_registered: Whether GST is charged on taxable lines
        gst_rate: GST percentage (10.00 in Australia)
        invoice_prefix: Prefix of invoice numbers, e.g. ``INV``
        next_invoice_number: Next sequence number to allocate
    """

    abn: Optional[str] = Field(default=None, max_length=20)
    trading_name: Optional[str] = Field(default=None, max_length=255)
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    bank_name: Optional[str] = None
    bsb: Optional[str] = Field(default=None, max_length=10)
    account_number: Optional[str] = Field(default=None, max_length=30)
    account_name: Optional[str] = None
    gst_registered: Optional[bool] = None
    gst_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    default_payment_terms: Optional[PaymentTerms] = None
    invoice_prefix: Optional[str] = Field(default=None, min_length=1, max_length=20)
    invoice_footer: Optional[str] = None
    next_invoice_number: Optional[int] = Field(default=None, ge=1)

    @field_validator("gst_rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return to_decimal(v)

    @field_validator("invoice_prefix")
    @classmethod
    def normalize_prefix(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("invoice_prefix cannot be empty or whitespace")
        return v


class AgencyCreate(BaseDataModel):
    """A new agency together with its initial profile."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: str = Field(default="#4f46e5", max_length=20)
    profile: AgencyProfileUpdate = Field(default_factory=AgencyProfileUpdate)
