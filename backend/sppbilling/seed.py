# ============================================================
# sppbilling/seed.py
#
# Demo data for a fresh console: two Jakarta high schools,
# the 2023/2024 and 2024/2025 academic years, three classes,
# the X IPA fee structure, three students and the three
# operator accounts (admin, kasir1, kasir2).
#
# Loaded on startup when SEED_DEMO_DATA is true. Tests call
# seed_demo_data() on their own SchoolStore.
# ============================================================

from datetime import date, datetime, timezone
from typing import Optional
import logging

from sppbilling.core.config import settings
from sppbilling.core.store import SchoolStore
from sppbilling.models.academic import (
    AcademicYear, AcademicYearStatus, Classroom, Institution,
    InstitutionSettings, Student,
)
from sppbilling.models.billing import ApplicableFor, FeeCategory, FeeFrequency, PaymentMethod
from sppbilling.models.operator import OperatorRole
from sppbilling.schemas.fees import FeeItemCreate, FeeStructureCreate
from sppbilling.services import auth_service, billing_service, fee_service

logger = logging.getLogger(__name__)


def seed_demo_data(store: SchoolStore, today: Optional[date] = None) -> dict:
    """
    Fill `store` with the demo school. Returns the ids tests and
    the startup log care about.
    """
    # ── Academic years ───────────────────────────────────────
    year_old = store.insert("academic_years", AcademicYear(
        id=store.new_id(), name="2023/2024",
        start_date=date(2023, 7, 1), end_date=date(2024, 6, 30),
        status=AcademicYearStatus.inactive, is_default=False,
    ))
    year = store.insert("academic_years", AcademicYear(
        id=store.new_id(), name="2024/2025",
        start_date=date(2024, 7, 1), end_date=date(2025, 6, 30),
        status=AcademicYearStatus.active, is_default=True,
    ))

    # ── Institutions ─────────────────────────────────────────
    sman1 = store.insert("institutions", Institution(
        id=store.new_id(),
        name="SMA Negeri 1 Jakarta", code="SMAN1JKT",
        address="Jl. Budi Kemuliaan I No.2, Gambir, Jakarta Pusat",
        phone="021-3441805", email="info@sman1jakarta.sch.id",
        principal_name="Dr. Ahmad Suryadi, M.Pd", established_year=1950,
        settings=InstitutionSettings(
            payment_due_days=10, late_fee_percentage=5, enable_auto_reminders=True,
        ),
    ))
    store.insert("institutions", Institution(
        id=store.new_id(),
        name="SMA Negeri 2 Jakarta", code="SMAN2JKT",
        address="Jl. Gajah Mada No.175, Jakarta Pusat",
        phone="021-6260038", email="info@sman2jakarta.sch.id",
        principal_name="Dra. Siti Nurhasanah, M.Pd", established_year=1952,
        settings=InstitutionSettings(
            payment_due_days=15, late_fee_percentage=3, enable_auto_reminders=True,
        ),
    ))

    # ── Classes ──────────────────────────────────────────────
    classes = {}
    for name, code, level, section, strength in (
        ("X IPA 1",  "X-IPA-1",  "X",  "IPA 1", 34),
        ("X IPA 2",  "X-IPA-2",  "X",  "IPA 2", 35),
        ("XI IPS 1", "XI-IPS-1", "XI", "IPS 1", 32),
    ):
        classes[name] = store.insert("classes", Classroom(
            id=store.new_id(), name=name, code=code,
            institution_id=sman1.id, academic_year_id=year.id,
            level=level, section=section,
            capacity=36, current_strength=strength,
        ))

    # ── Students ─────────────────────────────────────────────
    students = {}
    for nis, name, class_name, phone, email, address in (
        ("2021001", "Ahmad Fauzi",    "X IPA 1",  "081234567890",
         "ahmad.fauzi@email.com",    "Jl. Sudirman No. 123, Jakarta"),
        ("2021002", "Siti Nurhaliza", "X IPA 2",  "081234567891",
         "siti.nurhaliza@email.com", "Jl. Thamrin No. 456, Jakarta"),
        ("2021003", "Budi Santoso",   "XI IPS 1", "081234567892",
         "budi.santoso@email.com",   "Jl. Gatot Subroto No. 789, Jakarta"),
    ):
        students[nis] = store.insert("students", Student(
            id=store.new_id(), nis=nis, name=name,
            institution_id=sman1.id, class_id=classes[class_name].id,
            academic_year_id=year.id,
            phone=phone, email=email, address=address,
        ))

    # ── Operators ────────────────────────────────────────────
    for username, name, role, password in (
        ("admin",  "Administrator", OperatorRole.admin,  settings.DEMO_ADMIN_PASSWORD),
        ("kasir1", "Kasir Satu",    OperatorRole.kasir1, settings.DEMO_CASHIER_PASSWORD),
        ("kasir2", "Kasir Dua",     OperatorRole.kasir2, settings.DEMO_CASHIER_PASSWORD),
    ):
        auth_service.create_operator(
            store, username=username, password=password, name=name, role=role,
            institution=sman1.name, email=f"{username}@sman1jkt.edu",
        )

    # ── Fee structure for X IPA 1 ────────────────────────────
    # 400.000 × 12 + 2.000.000 + 500.000 + 300.000 = 7.600.000
    structure = fee_service.create_fee_structure(store, FeeStructureCreate(
        name="Struktur Biaya Kelas X IPA",
        institution_id=sman1.id,
        academic_year_id=year.id,
        applicable_for=ApplicableFor.classroom,
        target_id=classes["X IPA 1"].id,
        fee_items=[
            FeeItemCreate(name="SPP Bulanan", category=FeeCategory.tuition, amount=400000,
                          is_recurring=True, frequency=FeeFrequency.monthly),
            FeeItemCreate(name="Uang Gedung", category=FeeCategory.development, amount=2000000),
            FeeItemCreate(name="Uang Buku", category=FeeCategory.library, amount=500000),
            FeeItemCreate(name="Uang Seragam", category=FeeCategory.other, amount=300000),
        ],
    ))

    # Ahmad is billed and has paid his first month's SPP
    created, _ = billing_service.apply_fee_structure(store, structure.id)
    ahmad_billing = created[0]
    spp_item = structure.fee_items[0]
    billing_service.apply_payment(
        store, ahmad_billing.id, 400000, PaymentMethod.cash,
        processed_by="Kasir Satu",
        fee_item_ids=[spp_item.id],
        notes="Pembayaran SPP bulan Juli",
        payment_date=datetime(2024, 7, 15, 2, 30, tzinfo=timezone.utc),
        today=today,
    )

    logger.info(
        f"Demo data loaded: {len(store.all('institutions'))} institutions, "
        f"{len(store.all('students'))} students, {len(store.all('operators'))} operators"
    )
    return {
        "academic_year_id": year.id,
        "previous_academic_year_id": year_old.id,
        "institution_id": sman1.id,
        "class_ids": {name: cls.id for name, cls in classes.items()},
        "student_ids": {nis: s.id for nis, s in students.items()},
        "fee_structure_id": structure.id,
        "billing_id": ahmad_billing.id,
    }
