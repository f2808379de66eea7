# agenda/services/scheduling/clock.py
"""
Appointments are stored as naive wall-clock time of the business timezone.
Aware datetimes coming from the API are converted on the way in.
"""
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from agenda.config.settings import get_settings


def business_zone() -> tzinfo:
    name = get_settings().DEFAULT_TIMEZONE
    return timezone.utc if name.upper() == "UTC" else ZoneInfo(name)


def to_local_naive(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(business_zone()).replace(tzinfo=None)


def now_local() -> datetime:
    return datetime.now(business_zone()).replace(tzinfo=None)
