# ============================================================================
# agenda/services/appointment/recurrence_service.py
# Persists recurring series and propagates changes to future occurrences
# ============================================================================
"""
Series members are written one at a time, each under its own day lock.
A member that cannot be written is logged and skipped; the batch goes on.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.config.settings import get_settings
from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.schemas.appointment import CascadeResult, RecurrenceRule, SeriesResult
from agenda.services.appointment.appointment_repository import AppointmentFilter, AppointmentRepository
from agenda.services.appointment.schedule_lock import (
    ScheduleLockManager, get_schedule_lock_manager, lock_key
)
from agenda.services.availability.availability_service import AvailabilityService
from agenda.services.scheduling.errors import AppointmentInPast, SchedulingError
from agenda.services.scheduling.recurrence import RecurrenceExpander
from agenda.services.scheduling.state_machine import AppointmentStateMachine

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = [
    status for status in AppointmentStatus if AppointmentStateMachine.is_terminal(status)
]


class RecurrenceService:
    """Handles recurring series operations"""

    @staticmethod
    def generate_series(
            db: Session,
            root: Appointment,
            rule: RecurrenceRule,
            allow_override: bool = False,
            now: Optional[datetime] = None,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> SeriesResult:
        """
        Create the children of a persisted root; partial success is expected.

        With `allow_override`, occurrences falling before `now` are kept and
        flagged as overrides.
        """
        locks = lock_manager or get_schedule_lock_manager()
        repository = AppointmentRepository(db)
        drafts = RecurrenceExpander.expand(root, rule, get_settings().RECURRENCE_MAX_OCCURRENCES)

        result = SeriesResult()
        for draft in drafts:
            try:
                with locks.hold([lock_key(draft.professional_id, draft.start_at)]):
                    availability = AvailabilityService.check_availability(
                        db,
                        draft.professional_id,
                        draft.start_at,
                        draft.duration_minutes,
                        allow_override=allow_override,
                        account_id=draft.account_id,
                    )
                    in_past = now is not None and draft.start_at < now
                    child = Appointment(
                        **draft.model_dump(),
                        is_recurring=True,
                        is_override=availability.is_override or in_past,
                    )
                    repository.save(child)
                result.created.append(child)
            except SchedulingError as e:
                result.skipped += 1
                logger.warning(f"Could not create recurring appointment at {draft.start_at}: {e.message}")
            except SQLAlchemyError as e:
                db.rollback()
                result.skipped += 1
                logger.error(f"Could not create recurring appointment at {draft.start_at}: {e}")

        logger.info(
            f"Series {root.id}: {len(result.created)} occurrences created, {result.skipped} skipped"
        )
        return result

    @staticmethod
    def find_future_siblings(
            db: Session,
            appointment: Appointment,
            cutoff: Optional[datetime] = None,
            exclude_statuses: Optional[List[AppointmentStatus]] = None
    ) -> List[Appointment]:
        """
        Children of the same series starting at or after `cutoff`
        (defaults to the appointment's own start), oldest first.
        """
        criteria = AppointmentFilter(
            account_id=appointment.account_id,
            parent_appointment_id=appointment.series_root_id,
            start_from=cutoff if cutoff is not None else appointment.start_at,
            exclude_id=appointment.id,
            exclude_statuses=exclude_statuses,
        )
        return AppointmentRepository(db).find(criteria, limit=get_settings().RECURRENCE_MAX_OCCURRENCES)

    @staticmethod
    def cascade_status(
            db: Session,
            appointment: Appointment,
            target: AppointmentStatus,
            cutoff: Optional[datetime] = None,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> int:
        """Apply a status to future siblings where the transition is legal; returns how many changed"""
        if not appointment.is_recurring:
            return 0

        locks = lock_manager or get_schedule_lock_manager()
        repository = AppointmentRepository(db)
        affected = 0

        for sibling in RecurrenceService.find_future_siblings(db, appointment, cutoff):
            if not AppointmentStateMachine.can_transition_to(sibling.status, target):
                continue
            try:
                with locks.hold([lock_key(sibling.professional_id, sibling.start_at)]):
                    sibling.status = target
                    repository.save(sibling)
                affected += 1
            except SchedulingError as e:
                db.rollback()
                logger.warning(f"Skipped status change of series member {sibling.id}: {e.message}")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Skipped status change of series member {sibling.id}: {e}")

        logger.info(f"Series {appointment.series_root_id}: {affected} future occurrences set to {target.value}")
        return affected

    @staticmethod
    def cascade_update(
            db: Session,
            appointment: Appointment,
            changes: Dict[str, Any],
            date_delta: Optional[timedelta] = None,
            cutoff: Optional[datetime] = None,
            now: Optional[datetime] = None,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> CascadeResult:
        """
        Copy changed fields to future, non-terminal siblings.

        A moved start is applied as a shift by `date_delta` so every sibling
        keeps its own offset. Siblings whose time, professional or duration
        change are re-checked and skipped when no longer available; members
        still waiting to move do not count against them.
        """
        result = CascadeResult()
        if not appointment.is_recurring:
            return result

        locks = lock_manager or get_schedule_lock_manager()
        repository = AppointmentRepository(db)
        field_changes = {key: value for key, value in changes.items() if key not in ("start_at", "status")}
        target_status = changes.get("status")

        siblings = RecurrenceService.find_future_siblings(
            db, appointment, cutoff, exclude_statuses=TERMINAL_STATUSES
        )
        for index, sibling in enumerate(siblings):
            pending_ids = [pending.id for pending in siblings[index + 1:]]
            new_start = sibling.start_at + date_delta if date_delta else sibling.start_at
            new_professional_id = field_changes.get("professional_id", sibling.professional_id)
            new_duration = field_changes.get("duration_minutes", sibling.duration_minutes)
            rescheduled = (
                new_start != sibling.start_at
                or new_professional_id != sibling.professional_id
                or new_duration != sibling.duration_minutes
            )

            try:
                keys = [
                    lock_key(sibling.professional_id, sibling.start_at),
                    lock_key(new_professional_id, new_start),
                ]
                with locks.hold(keys):
                    if rescheduled:
                        moved_into_past = now is not None and new_start != sibling.start_at and new_start < now
                        if moved_into_past and not sibling.is_override:
                            raise AppointmentInPast("Appointment date cannot be in the past", start_at=new_start)
                        availability = AvailabilityService.check_availability(
                            db,
                            new_professional_id,
                            new_start,
                            new_duration,
                            exclude_appointment_id=sibling.id,
                            allow_override=sibling.is_override,
                            account_id=sibling.account_id,
                            pending_series_ids=pending_ids,
                        )
                        sibling.is_override = availability.is_override or moved_into_past

                    for key, value in field_changes.items():
                        setattr(sibling, key, value)
                    sibling.start_at = new_start
                    if target_status and AppointmentStateMachine.can_transition_to(sibling.status, target_status):
                        sibling.status = target_status

                    repository.save(sibling)
                result.affected += 1
            except SchedulingError as e:
                db.rollback()
                result.skipped += 1
                logger.warning(f"Skipped update of series member {sibling.id}: {e.message}")
            except SQLAlchemyError as e:
                db.rollback()
                result.skipped += 1
                logger.error(f"Skipped update of series member {sibling.id}: {e}")

        logger.info(
            f"Series {appointment.series_root_id}: {result.affected} future occurrences updated, "
            f"{result.skipped} skipped"
        )
        return result
