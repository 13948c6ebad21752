# sppbilling/schemas/fees.py

from pydantic import BaseModel, Field, model_validator
from typing import Annotated, Optional, List
from datetime import date, datetime

from sppbilling.models.billing import (
    ApplicableFor, FeeCategory, FeeFrequency, FeeStructureStatus, InstallmentStatus,
)


# ── Fee Items ────────────────────────────────────────────────
class FeeItemCreate(BaseModel):
    name: str = Field(min_length=2, examples=["SPP Bulanan", "Uang Gedung"])
    category: FeeCategory = FeeCategory.tuition
    amount: int = Field(ge=0, examples=[400000])      # Rupiah, no decimals
    is_recurring: bool = False
    frequency: Optional[FeeFrequency] = None
    due_date: Optional[date] = None
    is_optional: bool = False

    @model_validator(mode="after")
    def recurring_needs_frequency(self):
        if self.is_recurring and self.frequency is None:
            raise ValueError("frequency is required for recurring fee items")
        return self


class FeeItemResponse(BaseModel):
    id: str
    name: str
    category: FeeCategory
    amount: int
    is_recurring: bool
    frequency: Optional[FeeFrequency]
    due_date: Optional[date]
    is_optional: bool


# ── Payment schedule ─────────────────────────────────────────
class InstallmentCreate(BaseModel):
    due_date: date
    amount: int = Field(gt=0)
    # Positions in the structure's fee_items list
    fee_item_indexes: List[Annotated[int, Field(ge=0)]] = []


class InstallmentResponse(BaseModel):
    id: str
    installment_number: int
    due_date: date
    amount: int
    fee_item_ids: List[str]
    status: InstallmentStatus


# ── Fee Structures ───────────────────────────────────────────
class FeeStructureCreate(BaseModel):
    name: str = Field(min_length=3, examples=["Struktur Biaya Kelas X IPA"])
    institution_id: str
    academic_year_id: str
    applicable_for: ApplicableFor = ApplicableFor.institution
    target_id: Optional[str] = None
    fee_items: List[FeeItemCreate] = Field(min_length=1)
    # Leave empty to get one installment per month generated
    payment_schedule: Optional[List[InstallmentCreate]] = None
    status: FeeStructureStatus = FeeStructureStatus.active

    @model_validator(mode="after")
    def target_matches_scope(self):
        if self.applicable_for != ApplicableFor.institution and not self.target_id:
            raise ValueError("target_id is required unless applicable_for is 'institution'")
        return self


class FeeStructureUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3)
    applicable_for: Optional[ApplicableFor] = None
    target_id: Optional[str] = None
    fee_items: Optional[List[FeeItemCreate]] = Field(default=None, min_length=1)
    payment_schedule: Optional[List[InstallmentCreate]] = None
    status: Optional[FeeStructureStatus] = None


class FeeStructureResponse(BaseModel):
    id: str
    name: str
    institution_id: str
    academic_year_id: str
    applicable_for: ApplicableFor
    target_id: Optional[str]
    fee_items: List[FeeItemResponse] = []
    total_amount: int
    total_formatted: Optional[str] = None       # "Rp 6.800.000"
    payment_schedule: List[InstallmentResponse] = []
    status: FeeStructureStatus
    created_at: datetime
    updated_at: datetime


# ── Applying a structure to students ─────────────────────────
class ApplyFeeStructureRequest(BaseModel):
    """
    Bill every student in the structure's scope.
    Students who already have a record for the year are skipped.
    """
    student_ids: Optional[List[str]] = None     # narrow the scope further


class ApplyFeeStructureResponse(BaseModel):
    fee_structure_id: str
    created_count: int
    skipped_count: int
    total_billed: int
    billing_ids: List[str]
    message: str
