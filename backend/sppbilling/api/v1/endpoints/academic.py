# sppbilling/api/v1/endpoints/academic.py
#
# Academic years (admin only) and classes (any operator).
# The one-active-year rule lives in academic_service.

from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query

from sppbilling.api.deps import get_store
from sppbilling.core.security import CurrentUser, admin_only, any_operator
from sppbilling.core.store import SchoolStore
from sppbilling.models.academic import AcademicYear, Classroom
from sppbilling.schemas.academic import (
    AcademicYearCreate, AcademicYearUpdate, AcademicYearResponse,
    ClassCreate, ClassUpdate, ClassResponse,
)
from sppbilling.schemas.common import APIResponse
from sppbilling.services import academic_service

router = APIRouter(tags=["Academic Structure"])


def _year_out(year: AcademicYear) -> dict:
    return {**year.model_dump(), "label": f"Tahun Ajaran {year.name}"}


def _class_out(cls: Classroom) -> dict:
    return {**cls.model_dump(), "is_over_capacity": cls.is_over_capacity}


# ═══════════════════════════════════════════════════════════
# ACADEMIC YEARS
# ═══════════════════════════════════════════════════════════

@router.post("/academic-years", response_model=APIResponse[AcademicYearResponse], status_code=201)
async def create_academic_year(
    body: AcademicYearCreate,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    year = academic_service.create_academic_year(store, body, created_by=user.user_id)
    return APIResponse(data=_year_out(year), message=f"Academic year '{year.name}' created")


@router.get("/academic-years", response_model=APIResponse[List[AcademicYearResponse]])
async def list_academic_years(
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    years = academic_service.list_academic_years(store, status=status)
    return APIResponse(data=[_year_out(y) for y in years])


@router.get("/academic-years/current", response_model=APIResponse[AcademicYearResponse])
async def get_current_academic_year(
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """Every screen needs the active year, so cashiers may read it too."""
    year = academic_service.current_academic_year(store)
    if year is None:
        raise HTTPException(status_code=404, detail="No active academic year. Please activate one.")
    return APIResponse(data=_year_out(year))


@router.get("/academic-years/{year_id}", response_model=APIResponse[AcademicYearResponse])
async def get_academic_year(
    year_id: str,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    return APIResponse(data=_year_out(academic_service.get_academic_year(store, year_id)))


@router.put("/academic-years/{year_id}", response_model=APIResponse[AcademicYearResponse])
async def update_academic_year(
    year_id: str,
    body: AcademicYearUpdate,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    year = academic_service.update_academic_year(store, year_id, body, updated_by=user.user_id)
    return APIResponse(data=_year_out(year), message="Academic year updated")


@router.post("/academic-years/{year_id}/activate", response_model=APIResponse[AcademicYearResponse])
async def activate_academic_year(
    year_id: str,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    """Makes this the only active year. Every other year becomes inactive."""
    year = academic_service.activate_academic_year(store, year_id, activated_by=user.user_id)
    return APIResponse(data=_year_out(year), message=f"Academic year '{year.name}' is now active")


@router.delete("/academic-years/{year_id}", response_model=APIResponse[None])
async def delete_academic_year(
    year_id: str,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    year = academic_service.delete_academic_year(store, year_id, deleted_by=user.user_id)
    return APIResponse(message=f"Academic year '{year.name}' deleted")


# ═══════════════════════════════════════════════════════════
# CLASSES
# ═══════════════════════════════════════════════════════════

@router.post("/classes", response_model=APIResponse[ClassResponse], status_code=201)
async def create_class(
    body: ClassCreate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    cls = academic_service.create_class(store, body, created_by=user.user_id)
    return APIResponse(data=_class_out(cls), message=f"Class '{cls.name}' created")


@router.get("/classes", response_model=APIResponse[List[ClassResponse]])
async def list_classes(
    institution_id: Optional[str] = Query(default=None),
    academic_year_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    classes = academic_service.list_classes(
        store, institution_id=institution_id, academic_year_id=academic_year_id, status=status,
    )
    return APIResponse(data=[_class_out(c) for c in classes])


@router.get("/classes/{class_id}", response_model=APIResponse[ClassResponse])
async def get_class(
    class_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    return APIResponse(data=_class_out(academic_service.get_class(store, class_id)))


@router.put("/classes/{class_id}", response_model=APIResponse[ClassResponse])
async def update_class(
    class_id: str,
    body: ClassUpdate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    cls = academic_service.update_class(store, class_id, body, updated_by=user.user_id)
    message = "Class updated"
    if cls.is_over_capacity:
        message += f". Note: {cls.current_strength} students exceeds capacity {cls.capacity}"
    return APIResponse(data=_class_out(cls), message=message)


@router.delete("/classes/{class_id}", response_model=APIResponse[None])
async def delete_class(
    class_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    cls = academic_service.delete_class(store, class_id, deleted_by=user.user_id)
    return APIResponse(message=f"Class '{cls.name}' deleted")
