# sppbilling/schemas/billing.py
#
# Amounts are plain integers in Rupiah. Range checks on payment
# and discount amounts are left to billing_service so the caller
# gets the InvalidAmount / OverpaymentRejected kinds rather than
# a generic validation failure.

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime

from sppbilling.models.billing import BillingStatus, PaymentMethod, PaymentStatus


# ── Billing records ──────────────────────────────────────────
class BillingCreate(BaseModel):
    """Bill ONE student with a fee structure."""
    fee_structure_id: str
    student_id: str
    special_notes: Optional[str] = Field(default=None, max_length=500)


class BillingResponse(BaseModel):
    id: str
    student_id: str
    student_name: Optional[str] = None
    nis: Optional[str] = None
    institution_id: str
    academic_year_id: str
    class_id: Optional[str]
    fee_structure_id: str
    total_fees: int
    paid_amount: int
    outstanding_amount: int
    discount_amount: int
    late_fee_amount: int
    payment_ids: List[str] = []
    next_due_date: Optional[date]
    status: BillingStatus
    special_notes: Optional[str]
    outstanding_formatted: Optional[str] = None   # "Rp 4.800.000"
    created_at: datetime
    updated_at: datetime


# ── Payments ─────────────────────────────────────────────────
class PaymentCreate(BaseModel):
    """
    Body of POST /billing/{student_id}/payments.
    processed_by is taken from the logged-in operator, never the body.
    """
    amount: int = Field(examples=[2000000])
    method: PaymentMethod = PaymentMethod.cash
    fee_item_ids: List[str] = []
    notes: Optional[str] = Field(default=None, max_length=500)
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    academic_year_id: Optional[str] = None    # defaults to the active year


class PaymentResponse(BaseModel):
    id: str
    student_billing_id: str
    student_id: str
    amount: int
    amount_formatted: Optional[str] = None
    payment_method: PaymentMethod
    payment_date: datetime
    payment_date_display: Optional[str] = None    # "15 Januari 2025, 09:30 WIB"
    receipt_number: str
    fee_item_ids: List[str]
    processed_by: str
    status: PaymentStatus
    transaction_id: Optional[str]
    notes: Optional[str]


class PaymentResult(BaseModel):
    """What a successful payment returns: the record after it, and the receipt."""
    billing: BillingResponse
    payment: PaymentResponse


# ── Adjustments ──────────────────────────────────────────────
class DiscountRequest(BaseModel):
    amount: int = Field(examples=[500000])
    reason: str = Field(min_length=3, max_length=300)
    academic_year_id: Optional[str] = None


class RefreshStatusesResponse(BaseModel):
    changed_count: int
    billing_ids: List[str]
