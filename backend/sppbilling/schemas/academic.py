# sppbilling/schemas/academic.py

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime

from sppbilling.models.academic import AcademicYearStatus, RecordStatus


# ── Academic Years ───────────────────────────────────────────
class AcademicYearCreate(BaseModel):
    name: str = Field(min_length=4, max_length=20, examples=["2024/2025"])
    start_date: date
    end_date: date
    status: AcademicYearStatus = AcademicYearStatus.upcoming
    is_default: bool = False

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class AcademicYearUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=4, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[AcademicYearStatus] = None
    is_default: Optional[bool] = None


class AcademicYearResponse(BaseModel):
    id: str
    name: str
    start_date: date
    end_date: date
    status: AcademicYearStatus
    is_default: bool
    label: Optional[str] = None          # "Tahun Ajaran 2024/2025"
    created_at: datetime
    updated_at: datetime


# ── Institutions ─────────────────────────────────────────────
class InstitutionSettingsSchema(BaseModel):
    currency: str = "IDR"
    timezone: str = "Asia/Jakarta"
    academic_year_start: int = Field(default=7, ge=1, le=12)
    payment_due_days: int = Field(default=10, ge=0, le=365)
    late_fee_percentage: float = Field(default=0, ge=0, le=100)
    enable_auto_reminders: bool = False


class InstitutionCreate(BaseModel):
    name: str = Field(min_length=3, max_length=200, examples=["SMA Negeri 1 Jakarta"])
    code: str = Field(min_length=2, max_length=20, examples=["SMAN1JKT"])
    address: str = ""
    phone: str = ""
    email: str = ""
    principal_name: str = ""
    established_year: Optional[int] = Field(default=None, ge=1800, le=2100)
    status: RecordStatus = RecordStatus.active
    settings: InstitutionSettingsSchema = Field(default_factory=InstitutionSettingsSchema)


class InstitutionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    code: Optional[str] = Field(default=None, min_length=2, max_length=20)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    principal_name: Optional[str] = None
    established_year: Optional[int] = Field(default=None, ge=1800, le=2100)
    status: Optional[RecordStatus] = None
    settings: Optional[InstitutionSettingsSchema] = None


class InstitutionResponse(BaseModel):
    id: str
    name: str
    code: str
    address: str
    phone: str
    email: str
    principal_name: str
    established_year: Optional[int]
    status: RecordStatus
    settings: InstitutionSettingsSchema
    class_count: Optional[int] = None     # populated when listing
    created_at: datetime
    updated_at: datetime


# ── Classes ──────────────────────────────────────────────────
class ClassCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50, examples=["X IPA 1", "XI IPS 2"])
    code: str = Field(min_length=2, max_length=20, examples=["X-IPA-1"])
    institution_id: str
    academic_year_id: str
    level: str = Field(examples=["X", "XI", "XII"])
    section: str = Field(examples=["IPA 1"])
    capacity: int = Field(default=36, ge=1, le=200)
    current_strength: int = Field(default=0, ge=0)
    class_teacher_id: Optional[str] = None
    status: RecordStatus = RecordStatus.active


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    code: Optional[str] = Field(default=None, min_length=2, max_length=20)
    level: Optional[str] = None
    section: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1, le=200)
    current_strength: Optional[int] = Field(default=None, ge=0)
    class_teacher_id: Optional[str] = None
    status: Optional[RecordStatus] = None


class ClassResponse(BaseModel):
    id: str
    name: str
    code: str
    institution_id: str
    academic_year_id: str
    level: str
    section: str
    capacity: int
    current_strength: int
    is_over_capacity: bool = False        # advisory, never enforced
    class_teacher_id: Optional[str]
    fee_structure_id: Optional[str]
    status: RecordStatus
    created_at: datetime
    updated_at: datetime
