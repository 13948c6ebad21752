# sppbilling/schemas/reports.py

from pydantic import BaseModel
from typing import Optional
from datetime import date


class CohortReport(BaseModel):
    total_students: int
    total_fees: int
    total_collected: int
    total_outstanding: int
    total_payments: int
    collection_rate: float          # percent, 0 for an empty cohort


class AcademicYearReport(CohortReport):
    academic_year_id: str
    academic_year_name: Optional[str] = None


class InstitutionReport(CohortReport):
    institution_id: str
    institution_name: Optional[str] = None
    overdue_count: int


class ClassReport(CohortReport):
    class_id: str
    class_name: Optional[str] = None


class DefaulterItem(BaseModel):
    billing_id: str
    student_id: str
    student_name: Optional[str] = None
    nis: Optional[str] = None
    class_name: Optional[str] = None
    institution_id: str
    outstanding_amount: int
    outstanding_formatted: str
    next_due_date: Optional[date]
    days_overdue: int
    status: str


class DailyStats(BaseModel):
    date: date
    date_display: str               # "Senin, 15 Januari 2025"
    payments_today: int
    payments_today_formatted: str
    payment_count: int
    total_outstanding: int
    active_students: int
