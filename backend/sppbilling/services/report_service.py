# sppbilling/services/report_service.py
#
# Read-only aggregation over billing records and payments.
# Nothing in here writes to the store; endpoints call
# billing_service.refresh_statuses() first when they want
# statuses re-derived for "today".
#
# collection_rate() is the ONLY place the percentage is computed.

from typing import Optional, List, Sequence
from datetime import date
import logging

from sppbilling.core.store import SchoolStore
from sppbilling.core.time import to_local, today_local
from sppbilling.models.academic import RecordStatus
from sppbilling.models.billing import (
    BillingStatus, Payment, PaymentStatus, StudentBillingRecord,
)

logger = logging.getLogger(__name__)

DEFAULTER_STATUSES = (BillingStatus.overdue, BillingStatus.defaulter)


def collection_rate(total_collected: int, total_fees: int) -> float:
    """Collected as a percentage of fees. An empty cohort collects 0%."""
    if total_fees <= 0:
        return 0.0
    return total_collected / total_fees * 100


def summarize(records: Sequence[StudentBillingRecord]) -> dict:
    """The totals every cohort report shares."""
    total_fees = sum(r.total_fees for r in records)
    total_collected = sum(r.paid_amount for r in records)
    return {
        "total_students": len({r.student_id for r in records}),
        "total_fees": total_fees,
        "total_collected": total_collected,
        "total_outstanding": sum(r.outstanding_amount for r in records),
        "total_payments": sum(len(r.payment_ids) for r in records),
        "collection_rate": collection_rate(total_collected, total_fees),
    }


def academic_year_report(store: SchoolStore, academic_year_id: str) -> dict:
    records = store.select("billings", academic_year_id=academic_year_id)
    return {"academic_year_id": academic_year_id, **summarize(records)}


def institution_report(store: SchoolStore, institution_id: str) -> dict:
    records = store.select("billings", institution_id=institution_id)
    return {
        "institution_id": institution_id,
        **summarize(records),
        "overdue_count": sum(1 for r in records if r.status == BillingStatus.overdue),
    }


def class_report(store: SchoolStore, class_id: str) -> dict:
    records = store.select("billings", class_id=class_id)
    return {"class_id": class_id, **summarize(records)}


def defaulters_list(
    store: SchoolStore,
    institution_id: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[StudentBillingRecord]:
    """
    Overdue and defaulter records, optionally for one institution.
    Insertion order unless sort='outstanding' (largest balance first).
    """
    records = store.select(
        "billings",
        where=lambda r: r.status in DEFAULTER_STATUSES,
        institution_id=institution_id,
    )
    if sort == "outstanding":
        records = sorted(records, key=lambda r: r.outstanding_amount, reverse=True)
    return records


def daily_stats(store: SchoolStore, day: Optional[date] = None) -> dict:
    """Dashboard numbers: today's takings (WIB day) and the open balance."""
    day = day or today_local()
    todays = [
        p for p in store.all("payments")
        if p.status == PaymentStatus.completed and to_local(p.payment_date).date() == day
    ]
    return {
        "date": day,
        "payments_today": sum(p.amount for p in todays),
        "payment_count": len(todays),
        "total_outstanding": sum(r.outstanding_amount for r in store.all("billings")),
        "active_students": len(store.select("students", status=RecordStatus.active)),
    }


def payment_history(store: SchoolStore, student_id: str) -> List[Payment]:
    """All of a student's payments, newest first."""
    payments = store.select("payments", student_id=student_id)
    return sorted(payments, key=lambda p: p.payment_date, reverse=True)
