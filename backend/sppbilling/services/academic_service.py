# sppbilling/services/academic_service.py
#
# Academic years and classes. Admin-only operations.
#
# Activation rule: at most ONE year is active. Activating a year
# sets every other active year to inactive and moves the
# is_default flag to the newly active one.
#
# Deletes are refused (Conflict) while anything still points at
# the row. Billing records are financial history.

from typing import Optional, List
import logging

from sppbilling.core import errors
from sppbilling.core.store import SchoolStore
from sppbilling.models.academic import AcademicYear, AcademicYearStatus, Classroom
from sppbilling.schemas.academic import (
    AcademicYearCreate, AcademicYearUpdate, ClassCreate, ClassUpdate,
)
from sppbilling.services.activity_service import log_activity

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# ACADEMIC YEARS
# ═══════════════════════════════════════════════════════════

def create_academic_year(store: SchoolStore, data: AcademicYearCreate, created_by: Optional[str] = None) -> AcademicYear:
    name = data.name.strip()
    if store.exists("academic_years", name=name):
        raise errors.Conflict(f"Academic year '{name}' already exists.")

    year = store.insert("academic_years", AcademicYear(
        id=store.new_id(),
        name=name,
        start_date=data.start_date,
        end_date=data.end_date,
        status=AcademicYearStatus.upcoming if data.status == AcademicYearStatus.active else data.status,
        is_default=False,
    ))
    if data.status == AcademicYearStatus.active:
        year = activate_academic_year(store, year.id, activated_by=created_by)
    elif data.is_default:
        year = _make_default(store, year.id)

    log_activity(
        store, "academic_year.created", user_id=created_by,
        entity_type="academic_year", entity_id=year.id,
        metadata={"name": name},
    )
    return year


def list_academic_years(store: SchoolStore, status: Optional[str] = None) -> List[AcademicYear]:
    """Newest first, like the admin screen lists them."""
    return sorted(
        store.select("academic_years", status=status),
        key=lambda y: y.start_date, reverse=True,
    )


def get_academic_year(store: SchoolStore, year_id: str) -> AcademicYear:
    return store.require_one("academic_years", year_id)


def current_academic_year(store: SchoolStore) -> Optional[AcademicYear]:
    """The active year, else the default one, else None."""
    active = store.select("academic_years", status=AcademicYearStatus.active)
    if active:
        return active[0]
    default = store.select("academic_years", is_default=True)
    return default[0] if default else None


def update_academic_year(
    store: SchoolStore, year_id: str, data: AcademicYearUpdate, updated_by: Optional[str] = None
) -> AcademicYear:
    current = store.require_one("academic_years", year_id)
    payload = data.model_dump(exclude_unset=True)
    if not payload:
        raise errors.ValidationError("Nothing to update")

    start = payload.get("start_date") or current.start_date
    end = payload.get("end_date") or current.end_date
    if end <= start:
        raise errors.ValidationError("end_date must be after start_date")
    if payload.get("name"):
        payload["name"] = payload["name"].strip()
        if store.exists("academic_years", where=lambda y: y.id != year_id, name=payload["name"]):
            raise errors.Conflict(f"Academic year '{payload['name']}' already exists.")

    # Activation goes through activate_academic_year() so the
    # one-active-year rule is applied in a single place.
    status = payload.pop("status", None)
    make_default = payload.pop("is_default", None)
    activate = status == AcademicYearStatus.active
    if status is not None and not activate:
        payload["status"] = status

    year = store.update("academic_years", year_id, **payload) if payload else current
    if activate:
        year = activate_academic_year(store, year_id, activated_by=updated_by)
    elif make_default:
        year = _make_default(store, year_id)

    log_activity(
        store, "academic_year.updated", user_id=updated_by,
        entity_type="academic_year", entity_id=year_id,
        metadata={"fields": sorted(data.model_fields_set)},
    )
    return year


def activate_academic_year(store: SchoolStore, year_id: str, activated_by: Optional[str] = None) -> AcademicYear:
    store.require_one("academic_years", year_id)
    for other in store.all("academic_years"):
        if other.id == year_id:
            continue
        if other.status == AcademicYearStatus.active or other.is_default:
            store.update(
                "academic_years", other.id,
                status=AcademicYearStatus.inactive if other.status == AcademicYearStatus.active else other.status,
                is_default=False,
            )
    year = store.update("academic_years", year_id, status=AcademicYearStatus.active, is_default=True)

    log_activity(
        store, "academic_year.activated", user_id=activated_by,
        entity_type="academic_year", entity_id=year_id,
        metadata={"name": year.name},
    )
    logger.info(f"Academic year {year.name} is now active")
    return year


def delete_academic_year(store: SchoolStore, year_id: str, deleted_by: Optional[str] = None) -> AcademicYear:
    year = store.require_one("academic_years", year_id)
    if store.exists("billings", academic_year_id=year_id):
        raise errors.Conflict("Academic year has billing records and cannot be deleted.")
    if store.exists("fee_structures", academic_year_id=year_id) or store.exists("classes", academic_year_id=year_id):
        raise errors.Conflict("Academic year still has classes or fee structures. Remove them first.")

    store.delete("academic_years", year_id)
    log_activity(
        store, "academic_year.deleted", user_id=deleted_by,
        entity_type="academic_year", entity_id=year_id,
        metadata={"name": year.name},
    )
    return year


def _make_default(store: SchoolStore, year_id: str) -> AcademicYear:
    for other in store.select("academic_years", is_default=True):
        if other.id != year_id:
            store.update("academic_years", other.id, is_default=False)
    return store.update("academic_years", year_id, is_default=True)


# ═══════════════════════════════════════════════════════════
# CLASSES
# ═══════════════════════════════════════════════════════════

def create_class(store: SchoolStore, data: ClassCreate, created_by: Optional[str] = None) -> Classroom:
    store.require_one("institutions", data.institution_id)
    store.require_one("academic_years", data.academic_year_id)
    code = data.code.strip()
    if store.exists("classes", institution_id=data.institution_id, code=code):
        raise errors.Conflict(f"Class code '{code}' already exists in this institution.")

    cls = store.insert("classes", Classroom(
        id=store.new_id(),
        name=data.name.strip(),
        code=code,
        institution_id=data.institution_id,
        academic_year_id=data.academic_year_id,
        level=data.level,
        section=data.section,
        capacity=data.capacity,
        current_strength=data.current_strength,
        class_teacher_id=data.class_teacher_id,
        status=data.status,
    ))
    log_activity(
        store, "class.created", user_id=created_by,
        entity_type="class", entity_id=cls.id,
        metadata={"name": cls.name},
    )
    return cls


def list_classes(
    store: SchoolStore,
    institution_id: Optional[str] = None,
    academic_year_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Classroom]:
    return store.select(
        "classes",
        institution_id=institution_id,
        academic_year_id=academic_year_id,
        status=status,
    )


def get_class(store: SchoolStore, class_id: str) -> Classroom:
    return store.require_one("classes", class_id)


def update_class(store: SchoolStore, class_id: str, data: ClassUpdate, updated_by: Optional[str] = None) -> Classroom:
    current = store.require_one("classes", class_id)
    payload = data.model_dump(exclude_unset=True)
    if not payload:
        raise errors.ValidationError("Nothing to update")
    if "code" in payload:
        payload["code"] = payload["code"].strip()
        clash = store.select(
            "classes",
            where=lambda c: c.id != class_id,
            institution_id=current.institution_id, code=payload["code"],
        )
        if clash:
            raise errors.Conflict(f"Class code '{payload['code']}' already exists in this institution.")

    cls = store.update("classes", class_id, **payload)
    if cls.is_over_capacity:
        logger.warning(f"Class {cls.name} is over capacity: {cls.current_strength}/{cls.capacity}")
    log_activity(
        store, "class.updated", user_id=updated_by,
        entity_type="class", entity_id=class_id,
        metadata={"fields": sorted(payload)},
    )
    return cls


def delete_class(store: SchoolStore, class_id: str, deleted_by: Optional[str] = None) -> Classroom:
    cls = store.require_one("classes", class_id)
    if store.exists("billings", class_id=class_id):
        raise errors.Conflict("Class has billing records and cannot be deleted.")
    if store.exists("students", class_id=class_id):
        raise errors.Conflict("Class still has students. Move them to another class first.")

    store.delete("classes", class_id)
    log_activity(
        store, "class.deleted", user_id=deleted_by,
        entity_type="class", entity_id=class_id,
        metadata={"name": cls.name},
    )
    return cls
