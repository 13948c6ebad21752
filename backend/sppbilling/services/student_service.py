# sppbilling/services/student_service.py
#
# Student directory. NIS is unique across the whole console.
# A class's current_strength follows its active students, and a
# student's billing records move with them when they change class;
# going over capacity is allowed (the UI only flags it).
#
# A student with a billing record that already carries payments
# cannot be deleted: the payments are a financial record.

from typing import Optional, List
import logging

from sppbilling.core import errors
from sppbilling.core.store import SchoolStore
from sppbilling.models.academic import RecordStatus, Student
from sppbilling.schemas.common import PaginationParams
from sppbilling.schemas.students import StudentCreate, StudentUpdate, StudentResponse
from sppbilling.services.activity_service import log_activity

logger = logging.getLogger(__name__)


def create_student(store: SchoolStore, data: StudentCreate, created_by: Optional[str] = None) -> StudentResponse:
    store.require_one("institutions", data.institution_id)
    if data.academic_year_id:
        store.require_one("academic_years", data.academic_year_id)
    if data.class_id:
        _check_class(store, data.class_id, data.institution_id)

    nis = data.nis.strip()
    if store.exists("students", nis=nis):
        raise errors.Conflict(f"NIS '{nis}' already exists.")

    student = store.insert("students", Student(
        id=store.new_id(),
        nis=nis,
        name=data.name.strip(),
        institution_id=data.institution_id,
        class_id=data.class_id,
        academic_year_id=data.academic_year_id,
        status=data.status,
        phone=data.phone,
        email=data.email,
        address=data.address,
    ))
    _adjust_strength(store, _counted_class(student), +1)

    log_activity(
        store, "student.created", user_id=created_by,
        entity_type="student", entity_id=student.id,
        metadata={"nis": nis, "name": student.name},
    )
    return _to_response(store, student)


def get_student(store: SchoolStore, student_id: str) -> StudentResponse:
    return _to_response(store, store.require_one("students", student_id))


def list_students(
    store: SchoolStore,
    params: PaginationParams,
    institution_id: Optional[str] = None,
    class_id: Optional[str] = None,
    status_filter: Optional[str] = None,
) -> tuple[List[StudentResponse], int, int]:
    """Search matches name or NIS. Returns (page, total, total_pages)."""
    needle = (params.search or "").strip().lower()
    rows = store.select(
        "students",
        where=(lambda s: needle in s.name.lower() or needle in s.nis.lower()) if needle else None,
        institution_id=institution_id,
        class_id=class_id,
        status=status_filter,
    )
    rows.sort(key=lambda s: s.name.lower())

    page, total, total_pages = params.paginate(rows)
    return [_to_response(store, s) for s in page], total, total_pages


def update_student(
    store: SchoolStore, student_id: str, data: StudentUpdate, updated_by: Optional[str] = None
) -> StudentResponse:
    current = store.require_one("students", student_id)
    payload = data.model_dump(exclude_unset=True)
    if not payload:
        raise errors.ValidationError("No fields to update")

    if "name" in payload and payload["name"]:
        payload["name"] = payload["name"].strip()
    if payload.get("academic_year_id"):
        store.require_one("academic_years", payload["academic_year_id"])
    moved = "class_id" in payload and payload["class_id"] != current.class_id
    if moved and payload["class_id"]:
        _check_class(store, payload["class_id"], current.institution_id)

    student = store.update("students", student_id, **payload)
    if _counted_class(current) != _counted_class(student):
        _adjust_strength(store, _counted_class(current), -1)
        _adjust_strength(store, _counted_class(student), +1)
    if moved:
        _move_billings(store, student_id, current.class_id, student.class_id)

    log_activity(
        store, "student.updated", user_id=updated_by,
        entity_type="student", entity_id=student_id,
        metadata={"fields_changed": list(payload.keys())},
    )
    return _to_response(store, student)


def delete_student(store: SchoolStore, student_id: str, deleted_by: Optional[str] = None) -> Student:
    student = store.require_one("students", student_id)
    billings = store.select("billings", student_id=student_id)
    if any(b.payment_ids for b in billings):
        raise errors.Conflict(
            "Student has recorded payments and cannot be deleted. Set the student to inactive instead."
        )

    for billing in billings:
        store.delete("billings", billing.id)
    store.delete("students", student_id)
    _adjust_strength(store, _counted_class(student), -1)

    log_activity(
        store, "student.deleted", user_id=deleted_by,
        entity_type="student", entity_id=student_id,
        metadata={"nis": student.nis, "billings_removed": len(billings)},
    )
    return student


# ── Helpers ──────────────────────────────────────────────────

def _check_class(store: SchoolStore, class_id: str, institution_id: str) -> None:
    cls = store.require_one("classes", class_id)
    if cls.institution_id != institution_id:
        raise errors.ValidationError("Class does not belong to the student's institution")


def _counted_class(student: Student) -> Optional[str]:
    # Only active students count towards a class's strength
    return student.class_id if student.status == RecordStatus.active else None


def _move_billings(store: SchoolStore, student_id: str, old_class_id: Optional[str], new_class_id: Optional[str]) -> None:
    """Billing records follow the student so class reports count them in the new class."""
    for billing in store.select("billings", student_id=student_id):
        if billing.class_id != old_class_id:
            continue
        with store.record_lock(billing.id):
            store.update("billings", billing.id, class_id=new_class_id)


def _adjust_strength(store: SchoolStore, class_id: Optional[str], delta: int) -> None:
    cls = store.select_one("classes", class_id)
    if cls is None:
        return
    updated = store.update("classes", cls.id, current_strength=max(0, cls.current_strength + delta))
    if updated.is_over_capacity:
        logger.warning(
            f"Class {updated.name} is over capacity: {updated.current_strength}/{updated.capacity}"
        )


def _to_response(store: SchoolStore, student: Student) -> StudentResponse:
    cls = store.select_one("classes", student.class_id)
    billings = store.select("billings", student_id=student.id)
    return StudentResponse(
        **student.model_dump(),
        class_name=cls.name if cls else None,
        outstanding_amount=sum(b.outstanding_amount for b in billings) if billings else None,
    )
