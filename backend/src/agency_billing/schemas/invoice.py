"""Pydantic schemas for Invoice model."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from agency_billing.models.invoice import InvoiceStatus, TransactionType


class Invoice(BaseModel):
    """Schema for returning invoice data."""

    id: UUID
    invoice_number: str
    user_id: UUID
    subscription_id: UUID | None
    transaction_type: TransactionType
    description: str | None
    subtotal: int
    tax: int
    total: int
    hours_purchased: int | None
    currency: str
    status: InvoiceStatus
    invoice_date: datetime
    due_date: datetime
    paid_at: datetime | None
    payment_method_id: UUID | None
    external_payment_reference_id: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceMarkPaid(BaseModel):
    """Schema for recording a successful payment."""

    external_payment_reference_id: str | None = Field(default=None, description="Processor payment reference")
    paid_at: datetime | None = Field(default=None, description="Payment time (defaults to now)")


class InvoiceMarkFailed(BaseModel):
    """Schema for recording a failed payment."""

    reason: str | None = Field(default=None, description="Failure reason shown to the client")


class BillingSummary(BaseModel):
    """Client billing overview in major currency units."""

    total_paid: Decimal
    total_pending: Decimal
    total_failed: int
    recent_invoices: list[Invoice]


class InvoiceDocumentClient(BaseModel):
    """Bill-to block of a printable invoice."""

    name: str
    company: str
    email: str


class InvoiceDocumentItem(BaseModel):
    """One printable invoice line."""

    description: str
    amount: int


class InvoiceDocument(BaseModel):
    """Printable view of an invoice."""

    invoice_number: str
    date: datetime
    due_date: datetime
    amount: int
    formatted_amount: str
    currency: str
    status: InvoiceStatus
    client: InvoiceDocumentClient
    items: list[InvoiceDocumentItem]
