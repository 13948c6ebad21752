# sppbilling/api/v1/endpoints/reports.py
#
# Every report re-derives billing statuses for today before
# aggregating, so "overdue" always means overdue as of now.
# The aggregation itself lives in report_service.

from typing import Optional, List, Literal
from datetime import date
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from sppbilling.api.deps import get_store
from sppbilling.core.security import CurrentUser, any_operator
from sppbilling.core.store import SchoolStore
from sppbilling.core.time import today_local
from sppbilling.schemas.common import APIResponse
from sppbilling.schemas.reports import (
    AcademicYearReport, InstitutionReport, ClassReport, DefaulterItem, DailyStats,
)
from sppbilling.services import billing_service, report_service
from sppbilling.utils.formatting import format_currency, format_date_wib

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/academic-year/{year_id}", response_model=APIResponse[AcademicYearReport])
async def academic_year_report(
    year_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    year = store.require_one("academic_years", year_id)
    billing_service.refresh_statuses(store)
    report = report_service.academic_year_report(store, year_id)
    return APIResponse(data={**report, "academic_year_name": year.name})


@router.get("/institution/{institution_id}", response_model=APIResponse[InstitutionReport])
async def institution_report(
    institution_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    institution = store.require_one("institutions", institution_id)
    billing_service.refresh_statuses(store)
    report = report_service.institution_report(store, institution_id)
    return APIResponse(data={**report, "institution_name": institution.name})


@router.get("/class/{class_id}", response_model=APIResponse[ClassReport])
async def class_report(
    class_id: str,
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    cls = store.require_one("classes", class_id)
    billing_service.refresh_statuses(store)
    report = report_service.class_report(store, class_id)
    return APIResponse(data={**report, "class_name": cls.name})


@router.get("/defaulters", response_model=APIResponse[List[DefaulterItem]])
async def defaulters(
    institution_id: Optional[str] = Query(default=None),
    sort: Optional[Literal["outstanding"]] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """Overdue and defaulter records. sort=outstanding puts the largest balances first."""
    today = today_local()
    billing_service.refresh_statuses(store, today)
    items = []
    for record in report_service.defaulters_list(store, institution_id=institution_id, sort=sort):
        student = store.select_one("students", record.student_id)
        cls = store.select_one("classes", record.class_id)
        items.append(DefaulterItem(
            billing_id=record.id,
            student_id=record.student_id,
            student_name=student.name if student else None,
            nis=student.nis if student else None,
            class_name=cls.name if cls else None,
            institution_id=record.institution_id,
            outstanding_amount=record.outstanding_amount,
            outstanding_formatted=format_currency(record.outstanding_amount),
            next_due_date=record.next_due_date,
            days_overdue=(today - record.next_due_date).days if record.next_due_date else 0,
            status=record.status.value,
        ))
    return APIResponse(data=items, message=f"{len(items)} student(s) overdue")


@router.get("/daily", response_model=APIResponse[DailyStats])
async def daily(
    day: Optional[date] = Query(default=None),
    user: CurrentUser = Depends(any_operator),
    store: SchoolStore = Depends(get_store),
):
    """Dashboard numbers for one WIB calendar day (today by default)."""
    stats = report_service.daily_stats(store, day)
    return APIResponse(data={
        **stats,
        "date_display": format_date_wib(stats["date"], with_day=True),
        "payments_today_formatted": format_currency(stats["payments_today"]),
    })


@router.get("/export")
async def export_report(user: CurrentUser = Depends(any_operator)):
    """PDF / print export is not available in this console."""
    return JSONResponse(
        status_code=501,
        content={
            "success": False,
            "message": "Report export is not implemented.",
            "error": "NotImplemented",
        },
    )
