# sppbilling/api/v1/endpoints/fees.py
#
# Fee structures, and applying one to the students in its scope
# (which opens their billing records for the year).

from typing import Optional, List
from fastapi import APIRouter, Depends, Query

from sppbilling.api.deps import get_store
from sppbilling.core.security import CurrentUser, any_operator
from sppbilling.core.store import SchoolStore
from sppbilling.models.billing import FeeStructure
from sppbilling.schemas.fees import (
    FeeStructureCreate, FeeStructureUpdate, FeeStructureResponse,
    ApplyFeeStructureRequest, ApplyFeeStructureResponse,
)
from sppbilling.schemas.common import APIResponse
from sppbilling.services import billing_service, fee_service
from sppbilling.utils.formatting import format_currency

router = APIRouter(prefix="/fee-structures", tags=["Fee Structures"])


def _structure_out(fs: FeeStructure) -> dict:
    return {**fs.model_dump(), "total_formatted": format_currency(fs.total_amount)}


@router.post("", response_model=APIResponse[FeeStructureResponse], status_code=201)
async def create_fee_structure(
    body: FeeStructureCreate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    fs = fee_service.create_fee_structure(store, body, created_by=user.user_id)
    return APIResponse(
        data=_structure_out(fs),
        message=f"Fee structure created. Total per year: {format_currency(fs.total_amount)}",
    )


@router.get("", response_model=APIResponse[List[FeeStructureResponse]])
async def list_fee_structures(
    institution_id: Optional[str] = Query(default=None),
    academic_year_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    structures = fee_service.list_fee_structures(
        store, institution_id=institution_id, academic_year_id=academic_year_id, status=status,
    )
    return APIResponse(data=[_structure_out(fs) for fs in structures])


@router.get("/{structure_id}", response_model=APIResponse[FeeStructureResponse])
async def get_fee_structure(
    structure_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    return APIResponse(data=_structure_out(fee_service.get_fee_structure(store, structure_id)))


@router.put("/{structure_id}", response_model=APIResponse[FeeStructureResponse])
async def update_fee_structure(
    structure_id: str,
    body: FeeStructureUpdate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """
    Changing fee items recomputes the total and regenerates the schedule.
    Billing records that already exist keep the total they were opened with.
    """
    fs = fee_service.update_fee_structure(store, structure_id, body, updated_by=user.user_id)
    return APIResponse(data=_structure_out(fs), message="Fee structure updated")


@router.delete("/{structure_id}", response_model=APIResponse[None])
async def delete_fee_structure(
    structure_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    fs = fee_service.delete_fee_structure(store, structure_id, deleted_by=user.user_id)
    return APIResponse(message=f"Fee structure '{fs.name}' deleted")


# ═══════════════════════════════════════════════════════════
# BILLING GENERATION
# ═══════════════════════════════════════════════════════════

@router.post("/{structure_id}/apply", response_model=APIResponse[ApplyFeeStructureResponse])
async def apply_fee_structure(
    structure_id: str,
    body: Optional[ApplyFeeStructureRequest] = None,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """
    Opens a billing record for every active student in the structure's
    scope (institution, class or single student). Students already
    billed for the academic year are skipped.
    """
    student_ids = body.student_ids if body else None
    created, skipped = billing_service.apply_fee_structure(
        store, structure_id, student_ids=student_ids, created_by=user.user_id,
    )
    total_billed = sum(r.total_fees for r in created)
    message = (
        f"{len(created)} billing record(s) created, {skipped} skipped. "
        f"Total billed: {format_currency(total_billed)}"
    )
    return APIResponse(
        data=ApplyFeeStructureResponse(
            fee_structure_id=structure_id,
            created_count=len(created),
            skipped_count=skipped,
            total_billed=total_billed,
            billing_ids=[r.id for r in created],
            message=message,
        ),
        message=message,
    )
