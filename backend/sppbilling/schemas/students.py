# sppbilling/schemas/students.py

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import re

from sppbilling.models.academic import RecordStatus


# ── Validators ───────────────────────────────────────────────
def validate_indonesian_phone(v: str) -> str:
    """
    Accepts: 081234567890, +6281234567890, 6281234567890
    Returns: 081234567890 (local format)
    """
    if not v:
        return v
    cleaned = re.sub(r"[\s\-\(\)]", "", v)
    if cleaned.startswith("+62"):
        cleaned = "0" + cleaned[3:]
    elif cleaned.startswith("62"):
        cleaned = "0" + cleaned[2:]
    if not re.match(r"^08\d{7,11}$", cleaned):
        raise ValueError("Invalid Indonesian phone number. Expected format: 081234567890")
    return cleaned


# ── Create ───────────────────────────────────────────────────
class StudentCreate(BaseModel):
    nis: str = Field(min_length=3, max_length=30, examples=["2021001"])
    name: str = Field(min_length=2, max_length=150)
    institution_id: str
    class_id: Optional[str] = None
    academic_year_id: Optional[str] = None
    status: RecordStatus = RecordStatus.active
    phone: str = ""
    email: str = ""
    address: str = ""

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_indonesian_phone(v)


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=150)
    class_id: Optional[str] = None
    academic_year_id: Optional[str] = None
    status: Optional[RecordStatus] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_indonesian_phone(v)
        return v


# ── Response ─────────────────────────────────────────────────
class StudentResponse(BaseModel):
    id: str
    nis: str
    name: str
    institution_id: str
    class_id: Optional[str]
    academic_year_id: Optional[str]
    status: RecordStatus
    phone: str
    email: str
    address: str
    created_at: datetime
    # Joined for list views
    class_name: Optional[str] = None
    outstanding_amount: Optional[int] = None
