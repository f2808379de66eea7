# ===== agenda/services/availability/availability_service.py =====
from typing import List, Optional
from datetime import date, datetime, time, timedelta
from uuid import UUID
from sqlalchemy.orm import Session
import logging

from agenda.config.settings import get_settings
from agenda.models.professional import Professional
from agenda.models.schedule_settings import ScheduleSettings
from agenda.schemas.availability import AvailabilityResult, SlotAvailability
from agenda.services.appointment.appointment_repository import AppointmentRepository
from agenda.services.directory.directory_service import DirectoryService
from agenda.services.scheduling.conflict_detector import ConflictDetector
from agenda.services.scheduling.errors import (
    AvailabilityError,
    InvalidAppointment,
    OnBreak,
    OutsideWorkingHours,
    OverrideCapExceeded,
    ScheduleNotConfigured,
    SlotConflict,
    TimeOff,
)
from agenda.services.scheduling.working_hours import WorkingHoursPolicy

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Decides whether a professional can take a booking at a given time"""

    @staticmethod
    def check_availability(
            db: Session,
            professional_id: UUID,
            proposed_start: datetime,
            duration_minutes: int,
            exclude_appointment_id: Optional[UUID] = None,
            allow_override: bool = False,
            account_id: Optional[UUID] = None,
            max_overrides_per_day: Optional[int] = None,
            pending_series_ids: Optional[List[UUID]] = None
    ) -> AvailabilityResult:
        """
        Check a proposed slot against working hours, time off, breaks,
        existing bookings and the daily override cap.

        Raises an AvailabilityError subclass when the slot cannot be booked.
        The returned `is_override` says whether the booking only succeeds
        because an override was allowed.

        `pending_series_ids` are series members that will be moved by the
        same operation; they are left out of the conflict and cap checks.
        """
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidAppointment("Duration must be greater than zero", duration_minutes=duration_minutes)

        professional = DirectoryService.get_professional(db, professional_id, account_id)
        if not professional.is_active:
            raise ScheduleNotConfigured("Professional is inactive", professional_id=professional_id)

        weekday = WorkingHoursPolicy.weekday_name(proposed_start)
        if WorkingHoursPolicy.get_day_hours(professional.working_hours, proposed_start) is None:
            raise ScheduleNotConfigured(
                "Professional not working on this day", professional_id=professional_id, weekday=weekday
            )

        schedule = DirectoryService.get_schedule_settings(db, professional_id)
        breaks = schedule.breaks if schedule else []
        time_off_dates = schedule.time_off_dates if schedule else []
        proposed_end = proposed_start + timedelta(minutes=duration_minutes)

        is_outside_hours = False

        if WorkingHoursPolicy.is_time_off(time_off_dates, proposed_start):
            if not allow_override:
                raise TimeOff("Professional is off on this day", day=proposed_start.date())
            is_outside_hours = True

        if not WorkingHoursPolicy.is_within_working_hours(professional.working_hours, proposed_start):
            if not allow_override:
                raise OutsideWorkingHours(
                    "Time outside working hours", time=WorkingHoursPolicy.clock_time(proposed_start)
                )
            is_outside_hours = True

        on_break = WorkingHoursPolicy.is_on_break(breaks, proposed_start, proposed_end)
        if on_break:
            if not allow_override:
                raise OnBreak(
                    "Time overlaps a break", break_start=on_break.get("start"), break_end=on_break.get("end")
                )
            is_outside_hours = True

        repository = AppointmentRepository(db)
        same_day = repository.active_on_day(
            professional_id, proposed_start.date(), exclude_appointment_id,
            exclude_ids=pending_series_ids,
        )
        conflict = ConflictDetector.find_conflict(
            same_day, proposed_start, proposed_end, exclude_appointment_id
        )

        if conflict and not allow_override:
            raise SlotConflict(
                "Time slot conflicts with existing appointment", conflicting_appointment_id=conflict.id
            )

        if allow_override:
            cap = max_overrides_per_day
            if cap is None:
                cap = get_settings().MAX_OVERRIDES_PER_DAY

            overrides_count = repository.count_overrides_on_day(
                professional_id, proposed_start.date(), exclude_appointment_id,
                exclude_ids=pending_series_ids,
            )
            if overrides_count >= cap:
                raise OverrideCapExceeded(
                    f"Maximum number of overrides ({cap}) for this day has been reached",
                    cap=cap, day=proposed_start.date()
                )

        logger.debug(
            f"Slot {proposed_start.isoformat()} for professional {professional_id} available "
            f"(outside_hours={is_outside_hours}, conflict={conflict is not None})"
        )

        return AvailabilityResult(
            is_available=True,
            is_outside_hours=is_outside_hours,
            is_override=conflict is not None or is_outside_hours,
        )

    @staticmethod
    def list_available_slots(
            db: Session,
            professional_id: UUID,
            day: date,
            service_id: UUID,
            account_id: Optional[UUID] = None
    ) -> List[SlotAvailability]:
        """Every candidate start of the working day, each with its verdict"""
        professional = DirectoryService.get_professional(db, professional_id, account_id)
        service = DirectoryService.get_service(db, service_id, account_id)
        schedule = DirectoryService.get_schedule_settings(db, professional_id)

        day_start = datetime.combine(day, time.min)
        hours = WorkingHoursPolicy.get_day_hours(professional.working_hours, day_start)
        if hours is None or not professional.is_active:
            return []
        if schedule and WorkingHoursPolicy.is_time_off(schedule.time_off_dates, day_start):
            return []

        step_minutes = (schedule.slot_duration_minutes if schedule else None) or get_settings().DEFAULT_SLOT_MINUTES
        step = timedelta(minutes=step_minutes)

        current = datetime.combine(day, time.fromisoformat(hours[0]))
        day_end = datetime.combine(day, time.fromisoformat(hours[1]))

        slots = []
        while current < day_end:
            try:
                result = AvailabilityService.check_availability(
                    db, professional_id, current, service.duration_minutes, account_id=account_id
                )
                slots.append(SlotAvailability(
                    time=current,
                    available=result.is_available,
                    is_outside_working_hours=result.is_outside_hours,
                    is_override=result.is_override,
                ))
            except AvailabilityError as e:
                slots.append(SlotAvailability(
                    time=current,
                    available=False,
                    error_code=e.code,
                    error=e.message,
                ))
            current += step

        return slots

    @staticmethod
    def is_outside_working_hours(
            professional: Professional,
            moment: datetime,
            schedule: Optional[ScheduleSettings] = None
    ) -> bool:
        """Display flag for listings: not within hours, on time off, or on a break"""
        if not WorkingHoursPolicy.is_within_working_hours(professional.working_hours, moment):
            return True
        if schedule is None:
            return False
        if WorkingHoursPolicy.is_time_off(schedule.time_off_dates, moment):
            return True
        return WorkingHoursPolicy.is_on_break(schedule.breaks, moment) is not None
