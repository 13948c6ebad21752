# sppbilling/services/fee_service.py
#
# Fee structures: the yearly bundle of charges for an institution,
# one class, or one student.
#
# total_amount rule (the same one the billing screens always used):
#   monthly recurring item  → amount × 12  (a full academic year)
#   anything else           → amount       (quarterly and annual
#                                           items are counted once)
# Optional items are counted too unless FEE_TOTAL_INCLUDES_OPTIONAL
# is switched off. Whether "optional" should be billed at all is
# still an open question for the finance office.

from typing import Optional, List, Sequence
from datetime import date
import logging

from sppbilling.core import errors
from sppbilling.core.config import settings
from sppbilling.core.store import SchoolStore
from sppbilling.core.time import today_local
from sppbilling.models.billing import (
    ApplicableFor, FeeFrequency, FeeItem, FeeStructure,
    InstallmentStatus, PaymentScheduleInstallment,
)
from sppbilling.schemas.fees import (
    FeeItemCreate, FeeStructureCreate, FeeStructureUpdate, InstallmentCreate,
)
from sppbilling.services.activity_service import log_activity

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


# ═══════════════════════════════════════════════════════════
# TOTALS & SCHEDULE
# ═══════════════════════════════════════════════════════════

def is_monthly(item: FeeItem) -> bool:
    return item.is_recurring and item.frequency == FeeFrequency.monthly


def item_contribution(item: FeeItem) -> int:
    """What one item adds to a year's total."""
    if is_monthly(item):
        return item.amount * MONTHS_PER_YEAR
    return item.amount


def billable_items(items: Sequence[FeeItem], include_optional: Optional[bool] = None) -> List[FeeItem]:
    if include_optional is None:
        include_optional = settings.FEE_TOTAL_INCLUDES_OPTIONAL
    return [item for item in items if include_optional or not item.is_optional]


def compute_total_amount(items: Sequence[FeeItem], include_optional: Optional[bool] = None) -> int:
    """Sum of item contributions. Amount validation is the caller's job."""
    return sum(item_contribution(item) for item in billable_items(items, include_optional))


def installment_status(due_date: date, today: Optional[date] = None) -> InstallmentStatus:
    today = today or today_local()
    if today > due_date:
        return InstallmentStatus.overdue
    if (due_date - today).days <= settings.SCHEDULE_DUE_WINDOW_DAYS:
        return InstallmentStatus.due
    return InstallmentStatus.upcoming


def build_payment_schedule(
    items: Sequence[FeeItem],
    start_date: date,
    include_optional: Optional[bool] = None,
    due_day: Optional[int] = None,
    today: Optional[date] = None,
) -> List[PaymentScheduleInstallment]:
    """
    One installment per month of the academic year.

    Installment 1 carries every one-off / quarterly / annual item plus
    the first month of each monthly item. The remaining eleven carry one
    month of each monthly item. Empty months are skipped, numbering
    stays 1..n, and the amounts always add up to compute_total_amount().
    """
    due_day = due_day or settings.PAYMENT_DUE_DAY
    billed = billable_items(items, include_optional)
    monthly = [item for item in billed if is_monthly(item)]
    once = [item for item in billed if not is_monthly(item)]

    schedule: List[PaymentScheduleInstallment] = []
    for month_index in range(MONTHS_PER_YEAR):
        covered = list(monthly) + (once if month_index == 0 else [])
        amount = sum(item.amount for item in covered)
        if amount <= 0:
            continue
        due = _add_months(start_date.replace(day=1), month_index).replace(day=due_day)
        schedule.append(PaymentScheduleInstallment(
            id=SchoolStore.new_id(),
            installment_number=len(schedule) + 1,
            due_date=due,
            amount=amount,
            fee_item_ids=[item.id for item in covered],
            status=installment_status(due, today),
        ))
    return schedule


def with_schedule_status(structure: FeeStructure, today: Optional[date] = None) -> FeeStructure:
    """Copy of the structure with installment statuses re-derived for `today`."""
    return structure.model_copy(update={
        "payment_schedule": [
            inst.model_copy(update={"status": installment_status(inst.due_date, today)})
            for inst in structure.payment_schedule
        ],
    })


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    return d.replace(year=d.year + month_index // 12, month=month_index % 12 + 1)


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════

def create_fee_structure(
    store: SchoolStore,
    data: FeeStructureCreate,
    created_by: Optional[str] = None,
) -> FeeStructure:
    year = _validate_scope(
        store, data.institution_id, data.academic_year_id,
        data.applicable_for, data.target_id,
    )
    items = _build_items(data.fee_items)
    schedule = _resolve_schedule(items, data.payment_schedule, year.start_date)

    structure = store.insert("fee_structures", FeeStructure(
        id=store.new_id(),
        name=data.name.strip(),
        institution_id=data.institution_id,
        academic_year_id=data.academic_year_id,
        applicable_for=data.applicable_for,
        target_id=data.target_id if data.applicable_for != ApplicableFor.institution else None,
        fee_items=items,
        total_amount=compute_total_amount(items),
        payment_schedule=schedule,
        status=data.status,
    ))

    if structure.applicable_for == ApplicableFor.classroom:
        store.update("classes", structure.target_id, fee_structure_id=structure.id)

    log_activity(
        store, "fee_structure.created", user_id=created_by,
        entity_type="fee_structure", entity_id=structure.id,
        metadata={"name": structure.name, "total": structure.total_amount},
    )
    logger.info(f"Fee structure '{structure.name}' created, total {structure.total_amount}")
    return structure


def update_fee_structure(
    store: SchoolStore,
    structure_id: str,
    data: FeeStructureUpdate,
    updated_by: Optional[str] = None,
) -> FeeStructure:
    current = store.require_one("fee_structures", structure_id)
    payload = data.model_dump(exclude_unset=True)
    if not payload:
        raise errors.ValidationError("Nothing to update")

    applicable_for = payload.get("applicable_for", current.applicable_for)
    target_id = payload.get("target_id", current.target_id)
    year = _validate_scope(
        store, current.institution_id, current.academic_year_id,
        applicable_for, target_id,
    )

    changes = {
        "applicable_for": applicable_for,
        "target_id": target_id if applicable_for != ApplicableFor.institution else None,
    }
    if "name" in payload:
        changes["name"] = payload["name"].strip()
    if "status" in payload:
        changes["status"] = payload["status"]

    items = current.fee_items
    if data.fee_items is not None:
        items = _build_items(data.fee_items)
        changes["fee_items"] = items
        changes["total_amount"] = compute_total_amount(items)
    if data.fee_items is not None or data.payment_schedule is not None:
        changes["payment_schedule"] = _resolve_schedule(items, data.payment_schedule, year.start_date)

    structure = store.update("fee_structures", structure_id, **changes)
    log_activity(
        store, "fee_structure.updated", user_id=updated_by,
        entity_type="fee_structure", entity_id=structure_id,
        metadata={"fields": sorted(payload)},
    )
    return structure


def delete_fee_structure(store: SchoolStore, structure_id: str, deleted_by: Optional[str] = None) -> FeeStructure:
    store.require_one("fee_structures", structure_id)
    if store.exists("billings", fee_structure_id=structure_id):
        raise errors.Conflict(
            "Fee structure is already billed to students and cannot be deleted. "
            "Set it to inactive instead."
        )
    for cls in store.select("classes", fee_structure_id=structure_id):
        store.update("classes", cls.id, fee_structure_id=None)

    structure = store.delete("fee_structures", structure_id)
    log_activity(
        store, "fee_structure.deleted", user_id=deleted_by,
        entity_type="fee_structure", entity_id=structure_id,
        metadata={"name": structure.name},
    )
    return structure


def list_fee_structures(
    store: SchoolStore,
    institution_id: Optional[str] = None,
    academic_year_id: Optional[str] = None,
    status: Optional[str] = None,
    today: Optional[date] = None,
) -> List[FeeStructure]:
    rows = store.select(
        "fee_structures",
        institution_id=institution_id,
        academic_year_id=academic_year_id,
        status=status,
    )
    return [with_schedule_status(fs, today) for fs in rows]


def get_fee_structure(store: SchoolStore, structure_id: str, today: Optional[date] = None) -> FeeStructure:
    return with_schedule_status(store.require_one("fee_structures", structure_id), today)


# ── Internal helpers ─────────────────────────────────────────

def _validate_scope(store, institution_id, academic_year_id, applicable_for, target_id):
    """Institution, year and target must exist and agree with each other."""
    store.require_one("institutions", institution_id)
    year = store.require_one("academic_years", academic_year_id)

    if applicable_for == ApplicableFor.institution:
        return year
    if not target_id:
        raise errors.ValidationError(
            f"target_id is required when applicable_for is '{ApplicableFor(applicable_for).value}'"
        )
    if applicable_for == ApplicableFor.classroom:
        cls = store.require_one("classes", target_id)
        if cls.institution_id != institution_id:
            raise errors.ValidationError("Class does not belong to this institution")
    else:
        student = store.require_one("students", target_id)
        if student.institution_id != institution_id:
            raise errors.ValidationError("Student does not belong to this institution")
    return year


def _build_items(items: Sequence[FeeItemCreate]) -> List[FeeItem]:
    return [
        FeeItem(
            id=SchoolStore.new_id(),
            name=item.name.strip(),
            category=item.category,
            amount=item.amount,
            is_recurring=item.is_recurring,
            frequency=item.frequency if item.is_recurring else None,
            due_date=item.due_date,
            is_optional=item.is_optional,
        )
        for item in items
    ]


def _resolve_schedule(
    items: List[FeeItem],
    explicit: Optional[Sequence[InstallmentCreate]],
    start_date: date,
) -> List[PaymentScheduleInstallment]:
    if not explicit:
        return build_payment_schedule(items, start_date)

    # Explicit installments reference items by their position in fee_items.
    schedule = []
    for number, inst in enumerate(sorted(explicit, key=lambda i: i.due_date), start=1):
        try:
            item_ids = [items[index].id for index in inst.fee_item_indexes]
        except IndexError:
            raise errors.ValidationError(
                f"Installment {number} references a fee item that does not exist"
            )
        schedule.append(PaymentScheduleInstallment(
            id=SchoolStore.new_id(),
            installment_number=number,
            due_date=inst.due_date,
            amount=inst.amount,
            fee_item_ids=item_ids,
            status=installment_status(inst.due_date),
        ))
    return schedule
