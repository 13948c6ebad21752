# sppbilling/models/billing.py
#
# Fee structures, billing records and payments.
# Every amount is an integer in Rupiah (no minor unit scaling).
#
# StudentBillingRecord is the aggregate root for one student's
# money in one academic year. Payments point at it by id and are
# never changed after they are written.

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from sppbilling.core.time import utc_now


class FeeCategory(str, Enum):
    tuition     = "tuition"
    admission   = "admission"
    development = "development"
    transport   = "transport"
    library     = "library"
    lab         = "lab"
    sports      = "sports"
    other       = "other"


class FeeFrequency(str, Enum):
    monthly   = "monthly"
    quarterly = "quarterly"
    annually  = "annually"


class ApplicableFor(str, Enum):
    institution = "institution"
    classroom   = "class"
    student     = "student"


class FeeStructureStatus(str, Enum):
    active   = "active"
    inactive = "inactive"


class InstallmentStatus(str, Enum):
    upcoming = "upcoming"
    due      = "due"
    overdue  = "overdue"


class BillingStatus(str, Enum):
    current   = "current"
    overdue   = "overdue"
    paid      = "paid"
    defaulter = "defaulter"


class PaymentMethod(str, Enum):
    cash     = "cash"
    card     = "card"
    transfer = "transfer"
    cheque   = "cheque"
    online   = "online"


class PaymentStatus(str, Enum):
    completed = "completed"
    pending   = "pending"
    failed    = "failed"
    cancelled = "cancelled"


# ── Fee structures ───────────────────────────────────────────
class FeeItem(BaseModel):
    id: str
    name: str
    category: FeeCategory = FeeCategory.other
    amount: int
    is_recurring: bool = False
    frequency: Optional[FeeFrequency] = None
    due_date: Optional[date] = None
    is_optional: bool = False


class PaymentScheduleInstallment(BaseModel):
    id: str
    installment_number: int
    due_date: date
    amount: int
    fee_item_ids: List[str] = []
    status: InstallmentStatus = InstallmentStatus.upcoming


class FeeStructure(BaseModel):
    id: str
    name: str
    institution_id: str
    academic_year_id: str
    applicable_for: ApplicableFor = ApplicableFor.institution
    target_id: Optional[str] = None       # class id or student id
    fee_items: List[FeeItem] = []
    total_amount: int = 0
    payment_schedule: List[PaymentScheduleInstallment] = []
    status: FeeStructureStatus = FeeStructureStatus.active
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# ── Ledger ───────────────────────────────────────────────────
class StudentBillingRecord(BaseModel):
    id: str
    student_id: str
    institution_id: str
    academic_year_id: str
    class_id: Optional[str] = None
    fee_structure_id: str
    total_fees: int
    paid_amount: int = 0
    outstanding_amount: int
    discount_amount: int = 0
    late_fee_amount: int = 0
    payment_ids: List[str] = []          # ordered payment history
    next_due_date: Optional[date] = None
    status: BillingStatus = BillingStatus.current
    special_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def expected_outstanding(self) -> int:
        return balance_of(
            self.total_fees, self.paid_amount,
            self.discount_amount, self.late_fee_amount,
        )


class Payment(BaseModel):
    id: str
    student_billing_id: str
    student_id: str
    amount: int
    payment_method: PaymentMethod
    payment_date: datetime
    receipt_number: str
    fee_item_ids: List[str] = []
    processed_by: str
    status: PaymentStatus = PaymentStatus.completed
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


def balance_of(total_fees: int, paid: int, discount: int, late_fee: int) -> int:
    """outstanding = total − paid − discount + late fee. The only place the formula lives."""
    return total_fees - paid - discount + late_fee
