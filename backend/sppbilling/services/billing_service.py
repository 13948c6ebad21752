# sppbilling/services/billing_service.py
#
# The ledger. A StudentBillingRecord is only ever changed here.
#
#   create_billing      fee structure → new record for one student
#   apply_fee_structure fee structure → records for its whole scope
#   apply_payment       money in, append a completed Payment
#   apply_discount      reduce what is owed
#   apply_late_fee      institution's late fee on an overdue record
#   refresh_statuses    periodic re-derivation incl. defaulters
#
# Invariant, after every write:
#   outstanding = total_fees − paid − discount + late_fee
# It is enforced by recomputing outstanding through balance_of()
# rather than adding/subtracting on the stored value.
#
# Every mutation of one record happens under that record's lock
# and validates BEFORE writing, so a rejected call leaves the
# record exactly as it was.
#
# Double submission: the ledger does NOT deduplicate payments.
# Callers that retry must check receipt numbers themselves.

from typing import Optional, List, Sequence, Union
from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
import logging

from sppbilling.core import errors
from sppbilling.core.store import SchoolStore
from sppbilling.core.time import today_local, utc_now
from sppbilling.models.academic import Classroom, Student, RecordStatus
from sppbilling.models.billing import (
    ApplicableFor, BillingStatus, FeeStructure, FeeStructureStatus, Payment,
    PaymentMethod, PaymentScheduleInstallment, PaymentStatus,
    StudentBillingRecord, balance_of,
)
from sppbilling.services.activity_service import log_activity
from sppbilling.utils.receipt import generate_receipt_number

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# STATUS
# ═══════════════════════════════════════════════════════════

def derive_status(record: StudentBillingRecord, today: Optional[date] = None) -> BillingStatus:
    """paid → overdue → current. Defaulters are decided by reclassify()."""
    if record.outstanding_amount <= 0:
        return BillingStatus.paid
    today = today or today_local()
    if record.next_due_date and today > record.next_due_date:
        return BillingStatus.overdue
    return BillingStatus.current


def reclassify(
    record: StudentBillingRecord,
    grace_days: int,
    today: Optional[date] = None,
) -> BillingStatus:
    """
    derive_status() plus the defaulter rule: still owing more than
    `grace_days` (institution.settings.payment_due_days) after the due date.
    """
    today = today or today_local()
    status = derive_status(record, today)
    if status == BillingStatus.overdue and (today - record.next_due_date).days > grace_days:
        return BillingStatus.defaulter
    return status


def refresh_statuses(store: SchoolStore, today: Optional[date] = None) -> List[str]:
    """Re-derive every record's status. Returns ids of records that changed."""
    today = today or today_local()
    changed = []
    for record in store.all("billings"):
        institution = store.select_one("institutions", record.institution_id)
        grace = institution.settings.payment_due_days if institution else 0
        with store.record_lock(record.id):
            current = store.require_one("billings", record.id)
            status = reclassify(current, grace, today)
            if status != current.status:
                store.update("billings", current.id, status=status)
                changed.append(current.id)
    if changed:
        logger.info(f"Billing status refresh: {len(changed)} record(s) changed")
    return changed


def next_due_date(
    schedule: Sequence[PaymentScheduleInstallment],
    covered: int,
) -> Optional[date]:
    """
    Due date of the first installment not yet covered by `covered`
    (money paid plus discounts). Once every installment is covered the
    last due date is kept so a late fee on top can still go overdue.
    """
    if not schedule:
        return None
    ordered = sorted(schedule, key=lambda inst: inst.due_date)
    running = 0
    for inst in ordered:
        running += inst.amount
        if running > covered:
            return inst.due_date
    return ordered[-1].due_date


# ═══════════════════════════════════════════════════════════
# CREATE
# ═══════════════════════════════════════════════════════════

def create_billing(
    store: SchoolStore,
    fee_structure: FeeStructure,
    student: Student,
    classroom: Optional[Classroom] = None,
    created_by: Optional[str] = None,
    special_notes: Optional[str] = None,
) -> StudentBillingRecord:
    """
    Open a student's ledger for the structure's academic year:
    total = structure total, nothing paid, due on the earliest installment.
    """
    if fee_structure.status != FeeStructureStatus.active:
        raise errors.ValidationError("Fee structure is inactive")
    if student.institution_id != fee_structure.institution_id:
        raise errors.ValidationError("Student does not belong to the fee structure's institution")
    if classroom is not None and classroom.institution_id != fee_structure.institution_id:
        raise errors.ValidationError("Class does not belong to the fee structure's institution")

    existing = store.select(
        "billings",
        student_id=student.id,
        academic_year_id=fee_structure.academic_year_id,
    )
    if existing:
        raise errors.Conflict(
            "Student already has a billing record for this academic year",
            billing_id=existing[0].id,
        )

    due = next_due_date(fee_structure.payment_schedule, covered=0)
    record = StudentBillingRecord(
        id=store.new_id(),
        student_id=student.id,
        institution_id=fee_structure.institution_id,
        academic_year_id=fee_structure.academic_year_id,
        class_id=classroom.id if classroom else student.class_id,
        fee_structure_id=fee_structure.id,
        total_fees=fee_structure.total_amount,
        paid_amount=0,
        outstanding_amount=balance_of(fee_structure.total_amount, 0, 0, 0),
        next_due_date=due,
        special_notes=special_notes,
    )
    # New records start "current"; refresh_statuses() catches up overdue ones
    if record.outstanding_amount <= 0:
        record = record.model_copy(update={"status": BillingStatus.paid})
    store.insert("billings", record)

    log_activity(
        store, "billing.created", user_id=created_by,
        entity_type="billing", entity_id=record.id,
        metadata={"student_id": student.id, "total": record.total_fees},
    )
    return record


def students_in_scope(store: SchoolStore, fee_structure: FeeStructure) -> List[Student]:
    """Active students a structure applies to."""
    if fee_structure.applicable_for == ApplicableFor.student:
        student = store.require_one("students", fee_structure.target_id)
        return [student] if student.status == RecordStatus.active else []
    return store.select(
        "students",
        institution_id=fee_structure.institution_id,
        class_id=fee_structure.target_id if fee_structure.applicable_for == ApplicableFor.classroom else None,
        status=RecordStatus.active,
    )


def apply_fee_structure(
    store: SchoolStore,
    fee_structure_id: str,
    student_ids: Optional[Sequence[str]] = None,
    created_by: Optional[str] = None,
) -> tuple[List[StudentBillingRecord], int]:
    """
    Bill every student in scope. Students already billed for the year
    are skipped, not failed. Returns (created records, skipped count).
    """
    fee_structure = store.require_one("fee_structures", fee_structure_id)
    students = students_in_scope(store, fee_structure)
    if student_ids is not None:
        wanted = set(student_ids)
        students = [s for s in students if s.id in wanted]

    created, skipped = [], 0
    for student in students:
        if store.exists("billings", student_id=student.id, academic_year_id=fee_structure.academic_year_id):
            skipped += 1
            continue
        classroom = store.select_one("classes", student.class_id)
        created.append(create_billing(
            store, fee_structure, student, classroom,
            created_by=created_by,
        ))

    logger.info(
        f"Applied fee structure {fee_structure_id}: "
        f"{len(created)} created, {skipped} skipped"
    )
    return created, skipped


# ═══════════════════════════════════════════════════════════
# PAYMENTS
# ═══════════════════════════════════════════════════════════

def apply_payment(
    store: SchoolStore,
    billing_id: str,
    amount: int,
    method: Union[PaymentMethod, str],
    processed_by: str,
    fee_item_ids: Optional[Sequence[str]] = None,
    notes: Optional[str] = None,
    transaction_id: Optional[str] = None,
    payment_date: Optional[datetime] = None,
    today: Optional[date] = None,
) -> tuple[StudentBillingRecord, Payment]:
    """
    Apply money to one billing record.

    Raises (record untouched in every case):
        ValidationError     amount not an integer, unknown method or fee item
        InvalidAmount       amount ≤ 0
        OverpaymentRejected amount > outstanding
        NotFound            unknown billing id
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise errors.ValidationError("Payment amount must be a whole number of Rupiah")
    if amount <= 0:
        raise errors.InvalidAmount("Payment amount must be greater than zero", amount=amount)
    try:
        method = PaymentMethod(method)
    except ValueError:
        raise errors.ValidationError(f"Unknown payment method '{method}'")

    with store.record_lock(billing_id):
        record = store.require_one("billings", billing_id)

        if amount > record.outstanding_amount:
            raise errors.OverpaymentRejected(
                "Payment exceeds the outstanding balance",
                amount=amount, outstanding=record.outstanding_amount,
            )
        item_ids = list(fee_item_ids or [])
        _check_fee_items(store, record, item_ids)

        paid_at = payment_date or utc_now()
        payment = Payment(
            id=store.new_id(),
            student_billing_id=record.id,
            student_id=record.student_id,
            amount=amount,
            payment_method=method,
            payment_date=paid_at,
            receipt_number=generate_receipt_number(store, paid_at),
            fee_item_ids=item_ids,
            processed_by=processed_by,
            status=PaymentStatus.completed,
            transaction_id=transaction_id,
            notes=notes,
        )
        store.insert("payments", payment)
        updated = _rebalance(
            store, record,
            paid_amount=record.paid_amount + amount,
            payment_ids=[*record.payment_ids, payment.id],
            today=today,
        )

    log_activity(
        store, "payment.recorded", user_id=processed_by,
        entity_type="payment", entity_id=payment.id,
        metadata={"amount": amount, "receipt": payment.receipt_number,
                  "method": method.value, "billing_id": billing_id},
    )
    logger.info(
        f"Payment {payment.receipt_number} of {amount} applied to billing {billing_id}; "
        f"outstanding now {updated.outstanding_amount}"
    )
    return updated, payment


def apply_discount(
    store: SchoolStore,
    billing_id: str,
    amount: int,
    reason: Optional[str] = None,
    granted_by: Optional[str] = None,
    today: Optional[date] = None,
) -> StudentBillingRecord:
    """Reduce what is owed. A discount may not push the balance below zero."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise errors.ValidationError("Discount must be a whole number of Rupiah")
    if amount <= 0:
        raise errors.InvalidAmount("Discount must be greater than zero", amount=amount)

    with store.record_lock(billing_id):
        record = store.require_one("billings", billing_id)
        if amount > record.outstanding_amount:
            raise errors.OverpaymentRejected(
                "Discount exceeds the outstanding balance",
                amount=amount, outstanding=record.outstanding_amount,
            )
        updated = _rebalance(
            store, record,
            discount_amount=record.discount_amount + amount,
            today=today,
        )

    log_activity(
        store, "billing.discounted", user_id=granted_by,
        entity_type="billing", entity_id=billing_id,
        metadata={"amount": amount, "reason": reason},
    )
    return updated


def apply_late_fee(
    store: SchoolStore,
    billing_id: str,
    today: Optional[date] = None,
) -> StudentBillingRecord:
    """
    Charge the institution's late_fee_percentage of the current balance,
    once per record, and only while the record is overdue or a defaulter.
    Anything else returns the record unchanged.
    """
    today = today or today_local()
    with store.record_lock(billing_id):
        record = store.require_one("billings", billing_id)
        institution = store.require_one("institutions", record.institution_id)
        pct = Decimal(str(institution.settings.late_fee_percentage))

        status = reclassify(record, institution.settings.payment_due_days, today)
        if record.late_fee_amount > 0 or pct <= 0:
            return record
        if status not in (BillingStatus.overdue, BillingStatus.defaulter):
            return record

        fee = int((Decimal(record.outstanding_amount) * pct / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if fee <= 0:
            return record
        keep = {"status": record.status} if record.status == BillingStatus.defaulter else {}
        updated = _rebalance(store, record, late_fee_amount=fee, today=today, **keep)

    log_activity(
        store, "billing.late_fee_applied",
        entity_type="billing", entity_id=billing_id,
        metadata={"amount": fee, "percentage": float(pct)},
    )
    return updated


# ═══════════════════════════════════════════════════════════
# LOOKUPS
# ═══════════════════════════════════════════════════════════

def get_billing_by_student(
    store: SchoolStore,
    student_id: str,
    academic_year_id: Optional[str] = None,
) -> Optional[StudentBillingRecord]:
    """
    The student's record for the given year, or for the active year
    when none is given. None when the student has not been billed.
    """
    if academic_year_id is None:
        active = store.select("academic_years", status="active")
        academic_year_id = active[0].id if active else None
    matches = store.select("billings", student_id=student_id, academic_year_id=academic_year_id)
    if matches:
        return matches[0]
    if academic_year_id is None:
        # No active year: fall back to the student's latest record
        records = store.select("billings", student_id=student_id)
        return records[-1] if records else None
    return None


def list_billings(
    store: SchoolStore,
    institution_id: Optional[str] = None,
    academic_year_id: Optional[str] = None,
    class_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[StudentBillingRecord]:
    return store.select(
        "billings",
        institution_id=institution_id,
        academic_year_id=academic_year_id,
        class_id=class_id,
        status=status,
    )


def overdue_billings(store: SchoolStore) -> List[StudentBillingRecord]:
    return store.select(
        "billings",
        where=lambda b: b.status in (BillingStatus.overdue, BillingStatus.defaulter),
    )


# ── Internal helpers ─────────────────────────────────────────

def _rebalance(store: SchoolStore, record: StudentBillingRecord, today: Optional[date] = None, **changes) -> StudentBillingRecord:
    """
    Write `changes` to the record with outstanding, next due date and
    status recomputed. Caller must hold the record's lock.

    Status comes from derive_status(): a write never promotes a record
    to defaulter, that is refresh_statuses()' job. Pass status= to keep
    one the caller already decided.
    """
    status = changes.pop("status", None)
    merged = record.model_copy(update=changes)
    outstanding = balance_of(
        merged.total_fees, merged.paid_amount,
        merged.discount_amount, merged.late_fee_amount,
    )
    structure = store.select_one("fee_structures", record.fee_structure_id)
    due = merged.next_due_date
    if structure is not None:
        due = next_due_date(structure.payment_schedule, merged.paid_amount + merged.discount_amount)
    merged = merged.model_copy(update={"outstanding_amount": outstanding, "next_due_date": due})
    return store.update(
        "billings", record.id,
        **changes,
        outstanding_amount=outstanding,
        next_due_date=due,
        status=status or derive_status(merged, today),
    )


def _check_fee_items(store: SchoolStore, record: StudentBillingRecord, item_ids: List[str]) -> None:
    if not item_ids:
        return
    structure = store.select_one("fee_structures", record.fee_structure_id)
    known = {item.id for item in structure.fee_items} if structure else set()
    unknown = [item_id for item_id in item_ids if item_id not in known]
    if unknown:
        raise errors.ValidationError(
            "Fee items do not belong to this billing record's fee structure",
            fee_item_ids=unknown,
        )
