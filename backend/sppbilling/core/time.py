"""Time helpers: aware UTC timestamps for records, WIB calendar dates for due-date checks."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sppbilling.core.config import settings


def utc_now() -> datetime:
    """Timezone-aware UTC datetime for created_at/updated_at defaults."""
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def to_local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(local_tz())


def today_local() -> date:
    """Today's date in the school's timezone (WIB by default)."""
    return datetime.now(local_tz()).date()
