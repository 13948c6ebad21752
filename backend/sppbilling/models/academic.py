# sppbilling/models/academic.py
#
# Entities held by the SchoolStore for the school directory:
# academic years, institutions, classes and students.
# Records are replaced (model_copy) on update, never edited in place.

from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum

from sppbilling.core.time import utc_now


class AcademicYearStatus(str, Enum):
    active   = "active"
    inactive = "inactive"
    upcoming = "upcoming"


class RecordStatus(str, Enum):
    active   = "active"
    inactive = "inactive"


class AcademicYear(BaseModel):
    id: str
    name: str                       # "2024/2025"
    start_date: date
    end_date: date
    status: AcademicYearStatus = AcademicYearStatus.upcoming
    is_default: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class InstitutionSettings(BaseModel):
    currency: str = "IDR"
    timezone: str = "Asia/Jakarta"
    academic_year_start: int = Field(default=7, ge=1, le=12)   # month
    payment_due_days: int = Field(default=10, ge=0)            # defaulter grace period
    late_fee_percentage: float = Field(default=0, ge=0, le=100)
    enable_auto_reminders: bool = False


class Institution(BaseModel):
    id: str
    name: str
    code: str
    address: str = ""
    phone: str = ""
    email: str = ""
    principal_name: str = ""
    established_year: Optional[int] = None
    status: RecordStatus = RecordStatus.active
    settings: InstitutionSettings = Field(default_factory=InstitutionSettings)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Classroom(BaseModel):
    id: str
    name: str                       # "X IPA 1"
    code: str
    institution_id: str
    academic_year_id: str
    level: str                      # X, XI, XII
    section: str                    # IPA 1, IPS 2
    capacity: int
    current_strength: int = 0
    class_teacher_id: Optional[str] = None
    fee_structure_id: Optional[str] = None
    status: RecordStatus = RecordStatus.active
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_over_capacity(self) -> bool:
        # Advisory only: enrollment past capacity is never blocked.
        return self.current_strength > self.capacity


class Student(BaseModel):
    id: str
    nis: str                        # Nomor Induk Siswa
    name: str
    institution_id: str
    class_id: Optional[str] = None
    academic_year_id: Optional[str] = None
    status: RecordStatus = RecordStatus.active
    phone: str = ""
    email: str = ""
    address: str = ""
    created_at: datetime = Field(default_factory=utc_now)
