# sppbilling/api/v1/endpoints/institutions.py
#
# Institutions and their billing settings. Admin only.

from typing import Optional, List
from fastapi import APIRouter, Depends, Query

from sppbilling.api.deps import get_store
from sppbilling.core.security import CurrentUser, admin_only
from sppbilling.core.store import SchoolStore
from sppbilling.schemas.academic import InstitutionCreate, InstitutionUpdate, InstitutionResponse
from sppbilling.schemas.common import APIResponse
from sppbilling.services import institution_service

router = APIRouter(prefix="/institutions", tags=["Institutions"])


@router.post("", response_model=APIResponse[InstitutionResponse], status_code=201)
async def create_institution(
    body: InstitutionCreate,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    institution = institution_service.create_institution(store, body, created_by=user.user_id)
    return APIResponse(data=institution, message=f"Institution '{institution.name}' created")


@router.get("", response_model=APIResponse[List[InstitutionResponse]])
async def list_institutions(
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    rows = []
    for institution in institution_service.list_institutions(store, status=status):
        row = institution.model_dump()
        row["class_count"] = institution_service.class_count(store, institution.id)
        rows.append(row)
    return APIResponse(data=rows)


@router.get("/{institution_id}", response_model=APIResponse[InstitutionResponse])
async def get_institution(
    institution_id: str,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    return APIResponse(data=institution_service.get_institution(store, institution_id))


@router.put("/{institution_id}", response_model=APIResponse[InstitutionResponse])
async def update_institution(
    institution_id: str,
    body: InstitutionUpdate,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    institution = institution_service.update_institution(store, institution_id, body, updated_by=user.user_id)
    return APIResponse(data=institution, message="Institution updated")


@router.delete("/{institution_id}", response_model=APIResponse[None])
async def delete_institution(
    institution_id: str,
    user: CurrentUser = Depends(admin_only),
    store: SchoolStore = Depends(get_store),
):
    institution = institution_service.delete_institution(store, institution_id, deleted_by=user.user_id)
    return APIResponse(message=f"Institution '{institution.name}' deleted")
