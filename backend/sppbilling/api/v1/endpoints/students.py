# sppbilling/api/v1/endpoints/students.py
# ============================================================
# Students endpoints:
#   GET    /students        → paginated list (search by name / NIS)
#   POST   /students        → create student
#   GET    /students/{id}   → single student detail
#   PUT    /students/{id}   → update student info / move class
#   DELETE /students/{id}   → refused once payments exist
# ============================================================

from typing import Optional
from fastapi import APIRouter, Depends, Query

from sppbilling.api.deps import get_store
from sppbilling.core.security import CurrentUser, any_operator
from sppbilling.core.store import SchoolStore
from sppbilling.schemas.common import APIResponse, PaginatedResponse, PaginationParams
from sppbilling.schemas.students import StudentCreate, StudentUpdate, StudentResponse
from sppbilling.services import student_service

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=PaginatedResponse[StudentResponse])
async def list_students(
    params: PaginationParams = Depends(),
    institution_id: Optional[str] = Query(default=None),
    class_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    items, total, total_pages = student_service.list_students(
        store, params,
        institution_id=institution_id, class_id=class_id, status_filter=status,
    )
    return PaginatedResponse(
        data=items,
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=total_pages,
    )


@router.post("", response_model=APIResponse[StudentResponse], status_code=201)
async def create_student(
    body: StudentCreate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    student = student_service.create_student(store, body, created_by=user.user_id)
    return APIResponse(data=student, message=f"Student '{student.name}' created")


@router.get("/{student_id}", response_model=APIResponse[StudentResponse])
async def get_student(
    student_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    return APIResponse(data=student_service.get_student(store, student_id))


@router.put("/{student_id}", response_model=APIResponse[StudentResponse])
async def update_student(
    student_id: str,
    body: StudentUpdate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    student = student_service.update_student(store, student_id, body, updated_by=user.user_id)
    return APIResponse(data=student, message="Student updated")


@router.delete("/{student_id}", response_model=APIResponse[None])
async def delete_student(
    student_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    student = student_service.delete_student(store, student_id, deleted_by=user.user_id)
    return APIResponse(message=f"Student '{student.name}' deleted")
