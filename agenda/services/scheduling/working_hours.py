# agenda/services/scheduling/working_hours.py
"""
Working hours, breaks and time off of a professional.

Times of day are compared as zero-padded "HH:MM" strings. That ordering is only
valid while both operands share the exact format, so configured values are
normalised first. Shifts crossing midnight are not supported, and conflict
lookups only see bookings that start on the same calendar day; an override
booked late in the evening is not checked against the next morning.
"""
from datetime import date, datetime
from typing import Iterable, List, Mapping, Optional, Tuple
import logging
import re

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class WorkingHoursPolicy:
    """Pure predicates over a professional's configured schedule"""

    @staticmethod
    def weekday_name(moment: datetime) -> str:
        return WEEKDAY_NAMES[moment.weekday()]

    @staticmethod
    def clock_time(moment: datetime) -> str:
        return f"{moment.hour:02d}:{moment.minute:02d}"

    @staticmethod
    def normalize_clock(value) -> Optional[str]:
        """'9:00' -> '09:00'; None for anything that is not a valid time of day"""
        if not isinstance(value, str):
            return None
        match = _CLOCK_RE.match(value.strip())
        if not match:
            return None
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @staticmethod
    def get_day_hours(working_hours: Optional[Mapping], moment: datetime) -> Optional[Tuple[str, str]]:
        """(start, end) for the moment's weekday, or None when not working that day"""
        if not working_hours:
            return None

        day = working_hours.get(WorkingHoursPolicy.weekday_name(moment))
        if not day:
            return None

        start = WorkingHoursPolicy.normalize_clock(day.get("start"))
        end = WorkingHoursPolicy.normalize_clock(day.get("end"))
        if not start or not end:
            if day.get("start") or day.get("end"):
                logger.warning(f"Ignoring malformed working hours entry: {day}")
            return None

        return start, end

    @staticmethod
    def is_within_working_hours(working_hours: Optional[Mapping], moment: datetime) -> bool:
        hours = WorkingHoursPolicy.get_day_hours(working_hours, moment)
        if hours is None:
            return False

        start, end = hours
        current = WorkingHoursPolicy.clock_time(moment)
        return start <= current <= end

    @staticmethod
    def breaks_for_day(breaks: Optional[Iterable[Mapping]], day: date) -> List[Mapping]:
        """Breaks scoped to the day's weekday or to that exact date"""
        weekday = WEEKDAY_NAMES[day.weekday()]
        iso_day = day.isoformat()
        return [
            entry for entry in (breaks or [])
            if entry.get("date") == iso_day or (entry.get("weekday") or "").lower() == weekday
        ]

    @staticmethod
    def is_on_break(
            breaks: Optional[Iterable[Mapping]],
            start: datetime,
            end: Optional[datetime] = None
    ) -> Optional[Mapping]:
        """
        Return the break overlapping [start, end), or None.
        Without `end` only the start point is tested.
        """
        proposed_start = WorkingHoursPolicy.clock_time(start)
        if end is not None and end.date() > start.date():
            proposed_end = "24:00"
        elif end is not None:
            proposed_end = WorkingHoursPolicy.clock_time(end)
        else:
            proposed_end = None

        for entry in WorkingHoursPolicy.breaks_for_day(breaks, start.date()):
            break_start = WorkingHoursPolicy.normalize_clock(entry.get("start"))
            break_end = WorkingHoursPolicy.normalize_clock(entry.get("end"))
            if not break_start or not break_end:
                continue

            if proposed_end is None:
                if break_start <= proposed_start < break_end:
                    return entry
            elif proposed_start < break_end and proposed_end > break_start:
                return entry

        return None

    @staticmethod
    def is_time_off(time_off_dates: Optional[Iterable], moment: datetime) -> bool:
        day = moment.date()
        for value in time_off_dates or []:
            if isinstance(value, datetime):
                value = value.date()
            elif isinstance(value, str):
                try:
                    value = date.fromisoformat(value[:10])
                except ValueError:
                    logger.warning(f"Ignoring malformed time-off date: {value}")
                    continue
            if value == day:
                return True
        return False
