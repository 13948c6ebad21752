import os
import sys
from datetime import date
from pathlib import Path

import pytest


# Ensure `import sppbilling...` resolves when tests run from repo root.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


# Minimal defaults so settings can initialize in test environments.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("FEE_TOTAL_INCLUDES_OPTIONAL", "true")


# Inside the 2024/2025 year, before the first installment (10 July) is late.
SCHOOL_DAY = date(2024, 7, 5)


@pytest.fixture
def store():
    from sppbilling.core.store import SchoolStore
    return SchoolStore()


@pytest.fixture
def demo(store):
    """The demo school loaded into a fresh store. Returns (store, ids)."""
    from sppbilling.seed import seed_demo_data
    ids = seed_demo_data(store, today=SCHOOL_DAY)
    return store, ids


@pytest.fixture
def client(demo):
    from fastapi.testclient import TestClient
    from sppbilling.main import create_app

    store, _ = demo
    with TestClient(create_app(store=store, seed=False)) as test_client:
        yield test_client


def _login(client, username, password):
    res = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['data']['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return _login(client, "admin", "admin123")


@pytest.fixture
def cashier_headers(client):
    return _login(client, "kasir1", "kasir123")


@pytest.fixture
def world(store):
    """
    One school, one active year, one class with one student and the
    classic structure: SPP 400.000/month + Uang Gedung 2.000.000 once.
    """
    from sppbilling.models.billing import ApplicableFor, FeeCategory, FeeFrequency
    from sppbilling.schemas.academic import (
        AcademicYearCreate, ClassCreate, InstitutionCreate, InstitutionSettingsSchema,
    )
    from sppbilling.schemas.fees import FeeItemCreate, FeeStructureCreate
    from sppbilling.schemas.students import StudentCreate
    from sppbilling.services import (
        academic_service, fee_service, institution_service, student_service,
    )

    institution = institution_service.create_institution(store, InstitutionCreate(
        name="SMA Uji Coba", code="SMAUJI",
        settings=InstitutionSettingsSchema(payment_due_days=10, late_fee_percentage=5),
    ))
    year = academic_service.create_academic_year(store, AcademicYearCreate(
        name="2024/2025", start_date=date(2024, 7, 1), end_date=date(2025, 6, 30),
        status="active",
    ))
    cls = academic_service.create_class(store, ClassCreate(
        name="X IPA 1", code="X-IPA-1", institution_id=institution.id,
        academic_year_id=year.id, level="X", section="IPA 1",
    ))
    student = student_service.create_student(store, StudentCreate(
        nis="2024001", name="Rina Wulandari", institution_id=institution.id,
        class_id=cls.id, academic_year_id=year.id,
    ))
    structure = fee_service.create_fee_structure(store, FeeStructureCreate(
        name="Biaya Kelas X", institution_id=institution.id, academic_year_id=year.id,
        applicable_for=ApplicableFor.classroom, target_id=cls.id,
        fee_items=[
            FeeItemCreate(name="SPP Bulanan", category=FeeCategory.tuition, amount=400000,
                          is_recurring=True, frequency=FeeFrequency.monthly),
            FeeItemCreate(name="Uang Gedung", category=FeeCategory.development, amount=2000000),
        ],
    ))
    return {
        "store": store,
        "institution": institution,
        "year": year,
        "class": store.require_one("classes", cls.id),
        "student": store.require_one("students", student.id),
        "structure": structure,
    }
