import enum
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, date
from typing import Optional
from decimal import Decimal


class PaymentStatus(str, enum.Enum):
    CLEAR = "Clear"
    PENDING = "Pending"
    PARTIAL = "Partial"


class InvoiceResponse(BaseModel):
    id: int
    company: str
    campaign_name: str
    date_from: date
    date_to: date

    customer_invoice_number: str
    customer_amount_without_tax: Decimal
    customer_amount_with_tax: Decimal
    customer_received_amount_without_tax: Decimal
    customer_received_amount_with_tax: Decimal
    customer_payment_status: PaymentStatus
    customer_payment_date: Optional[date] = None
    customer_remarks: Optional[str] = None

    vendor_name: Optional[str] = None
    vendor_invoice_number: Optional[str] = None
    vendor_amount_without_tax: Decimal
    vendor_amount_with_tax: Decimal
    vendor_paid_amount_without_tax: Decimal
    vendor_paid_amount_with_tax: Decimal
    vendor_payment_status: PaymentStatus
    vendor_payment_date: Optional[date] = None
    vendor_remarks: Optional[str] = None

    profit: Decimal
    margin: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    company: str
    campaign_name: str
    date_from: date
    date_to: date

    customer_invoice_number: str
    customer_amount_without_tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    customer_received_amount_without_tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    customer_payment_status: PaymentStatus = PaymentStatus.PENDING
    customer_payment_date: Optional[date] = None
    customer_remarks: Optional[str] = None

    vendor_name: Optional[str] = None
    vendor_invoice_number: Optional[str] = None
    vendor_amount_without_tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    vendor_paid_amount_without_tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    vendor_payment_status: PaymentStatus = PaymentStatus.PENDING
    vendor_payment_date: Optional[date] = None
    vendor_remarks: Optional[str] = None

    class Config:
        # tax-inclusive amounts, profit and margin are always derived
        extra = "forbid"
        use_enum_values = True
        validate_default = True


class InvoiceUpdate(BaseModel):
    company: Optional[str] = None
    campaign_name: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    customer_invoice_number: Optional[str] = None
    customer_amount_without_tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    customer_received_amount_without_tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    customer_payment_status: Optional[PaymentStatus] = None
    customer_payment_date: Optional[date] = None
    customer_remarks: Optional[str] = None

    vendor_name: Optional[str] = None
    vendor_invoice_number: Optional[str] = None
    vendor_amount_without_tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    vendor_paid_amount_without_tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    vendor_payment_status: Optional[PaymentStatus] = None
    vendor_payment_date: Optional[date] = None
    vendor_remarks: Optional[str] = None

    @field_validator(
        "company", "campaign_name", "date_from", "date_to", "customer_invoice_number",
        "customer_amount_without_tax", "customer_received_amount_without_tax",
        "customer_payment_status", "vendor_amount_without_tax",
        "vendor_paid_amount_without_tax", "vendor_payment_status",
    )
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value

    class Config:
        extra = "forbid"
        use_enum_values = True


class InvoiceDraft(BaseModel):
    company: str
    campaign_name: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    customer_invoice_number: str
    customer_amount_without_tax: Decimal
    customer_received_amount_without_tax: Decimal
    customer_payment_status: PaymentStatus
    vendor_amount_without_tax: Decimal
    vendor_paid_amount_without_tax: Decimal
    vendor_payment_status: PaymentStatus


class ImportSummary(BaseModel):
    total_rows: int
    imported: int
    skipped_duplicates: int
    errors: list[str]
