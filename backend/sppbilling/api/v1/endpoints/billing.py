# ============================================================
# sppbilling/api/v1/endpoints/billing.py
#
# Billing records and payments.
#
# Payment flow:
#   1. Cashier looks up the student → GET /billing/{student_id}
#   2. Cashier takes the money      → POST /billing/{student_id}/payments
#   3. The ledger checks the amount against the outstanding
#      balance, appends the payment with a receipt number and
#      returns the updated record together with the receipt.
#
# processed_by is ALWAYS the logged-in operator's name.
# ============================================================

from typing import Optional, List
from fastapi import APIRouter, Depends, Query

from sppbilling.api.deps import get_store
from sppbilling.core import errors
from sppbilling.core.security import CurrentUser, any_operator
from sppbilling.core.store import SchoolStore
from sppbilling.models.billing import Payment, StudentBillingRecord
from sppbilling.schemas.billing import (
    BillingCreate, BillingResponse, DiscountRequest,
    PaymentCreate, PaymentResponse, PaymentResult, RefreshStatusesResponse,
)
from sppbilling.schemas.common import APIResponse, ErrorResponse
from sppbilling.services import billing_service, report_service
from sppbilling.utils.formatting import format_currency, format_datetime_wib

router = APIRouter(prefix="/billing", tags=["Billing & Payments"])


def billing_out(store: SchoolStore, record: StudentBillingRecord) -> dict:
    student = store.select_one("students", record.student_id)
    return {
        **record.model_dump(),
        "student_name": student.name if student else None,
        "nis": student.nis if student else None,
        "outstanding_formatted": format_currency(record.outstanding_amount),
    }


def payment_out(payment: Payment) -> dict:
    return {
        **payment.model_dump(),
        "amount_formatted": format_currency(payment.amount),
        "payment_date_display": format_datetime_wib(payment.payment_date),
    }


def _record_for(store: SchoolStore, student_id: str, academic_year_id: Optional[str]) -> StudentBillingRecord:
    store.require_one("students", student_id)
    record = billing_service.get_billing_by_student(store, student_id, academic_year_id)
    if record is None:
        raise errors.NotFound(
            "Student has no billing record for this academic year",
            student_id=student_id, academic_year_id=academic_year_id,
        )
    return record


# ═══════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════

@router.post("", response_model=APIResponse[BillingResponse], status_code=201)
async def create_billing(
    body: BillingCreate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """Bill one student. Use POST /fee-structures/{id}/apply for a whole class."""
    fee_structure = store.require_one("fee_structures", body.fee_structure_id)
    student = store.require_one("students", body.student_id)
    classroom = store.select_one("classes", student.class_id)
    record = billing_service.create_billing(
        store, fee_structure, student, classroom,
        created_by=user.user_id, special_notes=body.special_notes,
    )
    return APIResponse(
        data=billing_out(store, record),
        message=f"Billing created for {student.name}: {format_currency(record.total_fees)}",
    )


@router.get("", response_model=APIResponse[List[BillingResponse]])
async def list_billings(
    institution_id: Optional[str] = Query(default=None),
    academic_year_id: Optional[str] = Query(default=None),
    class_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    records = billing_service.list_billings(
        store,
        institution_id=institution_id, academic_year_id=academic_year_id,
        class_id=class_id, status=status,
    )
    return APIResponse(data=[billing_out(store, r) for r in records])


@router.post("/refresh-statuses", response_model=APIResponse[RefreshStatusesResponse])
async def refresh_statuses(
    apply_late_fees: bool = Query(default=False),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """
    Re-derive every record's status (current / overdue / defaulter / paid).
    With apply_late_fees=true, overdue records also get their
    institution's late fee (once per record).
    """
    changed = billing_service.refresh_statuses(store)
    if apply_late_fees:
        for record in billing_service.overdue_billings(store):
            updated = billing_service.apply_late_fee(store, record.id)
            if updated.late_fee_amount != record.late_fee_amount and record.id not in changed:
                changed.append(record.id)
    return APIResponse(
        data=RefreshStatusesResponse(changed_count=len(changed), billing_ids=changed),
        message=f"{len(changed)} billing record(s) updated",
    )


@router.get("/{student_id}", response_model=APIResponse[BillingResponse])
async def get_student_billing(
    student_id: str,
    academic_year_id: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """The student's record for the given year (the active year by default)."""
    return APIResponse(data=billing_out(store, _record_for(store, student_id, academic_year_id)))


# ═══════════════════════════════════════════════════════════
# PAYMENTS
# ═══════════════════════════════════════════════════════════

@router.post(
    "/{student_id}/payments",
    response_model=APIResponse[PaymentResult],
    status_code=201,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def record_payment(
    student_id: str,
    body: PaymentCreate,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """
    Errors (the record is left untouched in every case):
      422 InvalidAmount        amount ≤ 0
      409 OverpaymentRejected  amount > outstanding
      404 NotFound             unknown student / no billing record
    """
    record = _record_for(store, student_id, body.academic_year_id)
    updated, payment = billing_service.apply_payment(
        store, record.id, body.amount, body.method,
        processed_by=user.name,
        fee_item_ids=body.fee_item_ids,
        notes=body.notes,
        transaction_id=body.transaction_id,
    )
    return APIResponse(
        data=PaymentResult(
            billing=billing_out(store, updated),
            payment=payment_out(payment),
        ),
        message=(
            f"Payment of {format_currency(payment.amount)} recorded. "
            f"Receipt: {payment.receipt_number}"
        ),
    )


@router.get("/{student_id}/payments", response_model=APIResponse[List[PaymentResponse]])
async def list_student_payments(
    student_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """Payment history across every academic year, newest first."""
    store.require_one("students", student_id)
    payments = report_service.payment_history(store, student_id)
    return APIResponse(data=[payment_out(p) for p in payments])


@router.post("/{student_id}/discount", response_model=APIResponse[BillingResponse])
async def grant_discount(
    student_id: str,
    body: DiscountRequest,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    record = _record_for(store, student_id, body.academic_year_id)
    updated = billing_service.apply_discount(
        store, record.id, body.amount, reason=body.reason, granted_by=user.user_id,
    )
    return APIResponse(
        data=billing_out(store, updated),
        message=f"Discount of {format_currency(body.amount)} applied",
    )
