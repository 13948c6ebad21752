# sppbilling/utils/formatting.py
#
# Display helpers for the Indonesian console.
#   Money: "Rp 6.800.000"   (IDR, no decimals, '.' groups thousands)
#   Dates: "15 Januari 2025", always in WIB
# Stored values never go through here; these only build strings.

from datetime import date, datetime
from typing import Optional, Union

from sppbilling.core.time import to_local, today_local

MONTHS_ID = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)
DAYS_ID = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")

ACADEMIC_YEAR_START_MONTH = 7     # July


def format_currency(amount: int) -> str:
    """6800000 → 'Rp 6.800.000', -500 → '-Rp 500'"""
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(int(amount)):,}".replace(",", ".")
    return f"{sign}Rp {grouped}"


def format_date_wib(value: Union[date, datetime], with_day: bool = False) -> str:
    """'15 Januari 2025', or 'Rabu, 15 Januari 2025' with with_day=True."""
    if isinstance(value, datetime):
        value = to_local(value).date()
    text = f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"
    if with_day:
        return f"{DAYS_ID[value.weekday()]}, {text}"
    return text


def format_time_wib(value: datetime) -> str:
    return to_local(value).strftime("%H:%M")


def format_datetime_wib(value: datetime) -> str:
    """'15 Januari 2025, 09:30 WIB'"""
    local = to_local(value)
    return f"{format_date_wib(local.date())}, {local.strftime('%H:%M')} WIB"


def academic_year_label(on: Optional[date] = None, start_month: int = ACADEMIC_YEAR_START_MONTH) -> str:
    """
    The school year a date falls in. Years start in July:
    2024-08-01 → '2024/2025', 2025-03-01 → '2024/2025'
    """
    on = on or today_local()
    first = on.year if on.month >= start_month else on.year - 1
    return f"{first}/{first + 1}"


def semester_label(on: Optional[date] = None, start_month: int = ACADEMIC_YEAR_START_MONTH) -> str:
    """Ganjil (first half of the school year) or Genap."""
    on = on or today_local()
    months_in = (on.month - start_month) % 12
    return "Ganjil" if months_in < 6 else "Genap"
