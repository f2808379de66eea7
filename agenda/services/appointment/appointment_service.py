# ============================================================================
# agenda/services/appointment/appointment_service.py
# ============================================================================
"""Service for managing appointments"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.schemas.appointment import (
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
    CascadeResult,
    CreateResult,
    SeriesResult,
    StatusChangeResult,
    UpdateResult,
)
from agenda.schemas.auth_context import AuthContext
from agenda.services.appointment.appointment_repository import AppointmentRepository
from agenda.services.appointment.recurrence_service import RecurrenceService, TERMINAL_STATUSES
from agenda.services.appointment.schedule_lock import (
    ScheduleLockManager, get_schedule_lock_manager, lock_key
)
from agenda.services.availability.availability_service import AvailabilityService
from agenda.services.directory.directory_service import DirectoryService
from agenda.services.notification.notification_service import NotificationService
from agenda.services.scheduling.clock import now_local, to_local_naive
from agenda.services.scheduling.errors import (
    AppointmentInPast,
    EntityNotFound,
    InvalidTransition,
    NotPermitted,
    SchedulingError,
)
from agenda.services.scheduling.state_machine import AppointmentStateMachine

logger = logging.getLogger(__name__)

# Fields that may not be cleared through an update
_REQUIRED_FIELDS = (
    "start_at", "status", "duration_minutes", "color", "send_reminder",
    "client_id", "professional_id", "service_id",
)


class AppointmentService:
    """Handles appointment operations"""

    @staticmethod
    def create_appointment(
            db: Session,
            actor: AuthContext,
            request: AppointmentCreateRequest,
            now: Optional[datetime] = None,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> CreateResult:
        """Book an appointment and, when requested, its recurring series"""
        locks = lock_manager or get_schedule_lock_manager()
        now = now or now_local()

        if not actor.can_manage(request.professional_id):
            raise NotPermitted("You can only manage your own appointments")

        client = DirectoryService.get_client(db, request.client_id, actor.account_id)
        professional = DirectoryService.get_professional(db, request.professional_id, actor.account_id)
        service = DirectoryService.get_service(db, request.service_id, actor.account_id)

        start_at = to_local_naive(request.start_at)
        if start_at < now and not request.allow_override:
            raise AppointmentInPast("Appointment date cannot be in the past", start_at=start_at)

        logger.info(
            f"Creating appointment for professional {professional.id} at {start_at.isoformat()} "
            f"({service.duration_minutes} min)"
        )

        recurrence = request.recurrence if request.recurrence and request.recurrence.is_recurring else None

        with locks.hold([lock_key(professional.id, start_at)]):
            availability = AvailabilityService.check_availability(
                db,
                professional.id,
                start_at,
                service.duration_minutes,
                allow_override=request.allow_override,
                account_id=actor.account_id,
            )

            appointment = Appointment(
                account_id=actor.account_id,
                client_id=client.id,
                professional_id=professional.id,
                service_id=service.id,
                start_at=start_at,
                duration_minutes=service.duration_minutes,
                status=AppointmentStateMachine.INITIAL,
                notes=request.notes,
                color=request.color,
                send_reminder=request.send_reminder,
                is_override=availability.is_override or start_at < now,
            )
            if recurrence:
                appointment.is_recurring = True
                appointment.recurrence_pattern = recurrence.pattern
                appointment.recurrence_interval = recurrence.interval
                appointment.recurrence_end_date = recurrence.end_date
                appointment.recurrence_occurrences = recurrence.occurrences

            AppointmentRepository(db).save(appointment)

        series = SeriesResult()
        if recurrence:
            series = RecurrenceService.generate_series(
                db, appointment, recurrence, allow_override=request.allow_override, now=now, lock_manager=locks
            )

        AppointmentService._notify_professional(
            db, appointment, "New appointment", "Appointment with {client} on {when}", "appointment"
        )

        return CreateResult(
            appointment=appointment,
            is_outside_working_hours=availability.is_outside_hours,
            recurring_appointments=series.created,
            recurring_skipped=series.skipped,
        )

    @staticmethod
    def update_appointment(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID,
            request: AppointmentUpdateRequest,
            apply_to_future: bool = False,
            now: Optional[datetime] = None,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> UpdateResult:
        """
        Change an appointment, re-checking availability when its time,
        professional, service or duration moves. With `apply_to_future`
        the same change is applied to later occurrences of the series.
        """
        locks = lock_manager or get_schedule_lock_manager()
        now = now or now_local()
        appointment = AppointmentService._get_for_actor(db, actor, appointment_id)

        changes = request.changes()
        for field in _REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                changes.pop(field)

        if "client_id" in changes:
            DirectoryService.get_client(db, changes["client_id"], actor.account_id)
        if "professional_id" in changes:
            if not actor.can_manage(changes["professional_id"]):
                raise NotPermitted("You can only manage your own appointments")
            DirectoryService.get_professional(db, changes["professional_id"], actor.account_id)
        if "service_id" in changes:
            service = DirectoryService.get_service(db, changes["service_id"], actor.account_id)
            changes.setdefault("duration_minutes", service.duration_minutes)
        if "start_at" in changes:
            changes["start_at"] = to_local_naive(changes["start_at"])

        if "status" in changes:
            if changes["status"] == appointment.status:
                changes.pop("status")
            elif not AppointmentStateMachine.can_transition_to(appointment.status, changes["status"]):
                raise AppointmentService._invalid_transition(appointment.status, changes["status"])

        old_start = appointment.start_at
        old_professional_id = appointment.professional_id
        new_start = changes.get("start_at", old_start)
        new_professional_id = changes.get("professional_id", old_professional_id)
        new_duration = changes.get("duration_minutes", appointment.duration_minutes)
        rescheduled = (
            new_start != old_start
            or new_professional_id != old_professional_id
            or new_duration != appointment.duration_minutes
        )
        allow_override = bool(appointment.is_override) or request.allow_override
        moved_into_past = new_start != old_start and new_start < now

        pending_series_ids = None
        if apply_to_future and appointment.is_recurring and rescheduled:
            siblings = RecurrenceService.find_future_siblings(
                db, appointment, old_start, exclude_statuses=TERMINAL_STATUSES
            )
            pending_series_ids = [sibling.id for sibling in siblings]

        with locks.hold([lock_key(old_professional_id, old_start), lock_key(new_professional_id, new_start)]):
            if rescheduled:
                if moved_into_past and not allow_override:
                    raise AppointmentInPast("Appointment date cannot be in the past", start_at=new_start)

                availability = AvailabilityService.check_availability(
                    db,
                    new_professional_id,
                    new_start,
                    new_duration,
                    exclude_appointment_id=appointment.id,
                    allow_override=allow_override,
                    account_id=actor.account_id,
                    pending_series_ids=pending_series_ids,
                )
                appointment.is_override = availability.is_override or moved_into_past

            for key, value in changes.items():
                setattr(appointment, key, value)
            AppointmentRepository(db).save(appointment)

        cascade = CascadeResult()
        if apply_to_future and appointment.is_recurring and changes:
            cascade = RecurrenceService.cascade_update(
                db,
                appointment,
                changes,
                date_delta=new_start - old_start,
                cutoff=old_start,
                now=now,
                lock_manager=locks,
            )

        return UpdateResult(
            appointment=appointment,
            future_updates=cascade.affected,
            future_skipped=cascade.skipped,
        )

    @staticmethod
    def cancel_appointment(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID,
            apply_to_future: bool = False,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> StatusChangeResult:
        result = AppointmentService._transition(
            db, actor, appointment_id, AppointmentStatus.CANCELLED, apply_to_future, lock_manager
        )
        AppointmentService._notify_professional(
            db, result.appointment, "Appointment cancelled",
            "Appointment with {client} on {when} was cancelled", "appointment_cancelled"
        )
        return result

    @staticmethod
    def confirm_appointment(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID,
            apply_to_future: bool = False,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> StatusChangeResult:
        result = AppointmentService._transition(
            db, actor, appointment_id, AppointmentStatus.CONFIRMED, apply_to_future, lock_manager
        )
        AppointmentService._notify_professional(
            db, result.appointment, "Appointment confirmed",
            "Appointment with {client} on {when} was confirmed", "appointment_confirmed"
        )
        return result

    @staticmethod
    def change_status(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID,
            status: AppointmentStatus,
            apply_to_future: bool = False,
            lock_manager: Optional[ScheduleLockManager] = None
    ) -> StatusChangeResult:
        return AppointmentService._transition(
            db, actor, appointment_id, status, apply_to_future, lock_manager
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_for_actor(db: Session, actor: AuthContext, appointment_id: UUID) -> Appointment:
        appointment = AppointmentRepository(db).get(appointment_id, actor.account_id)
        if not appointment:
            raise EntityNotFound("Appointment", appointment_id)
        if not actor.can_manage(appointment.professional_id):
            raise NotPermitted("You can only manage your own appointments")
        return appointment

    @staticmethod
    def _invalid_transition(current, target) -> InvalidTransition:
        current = AppointmentStateMachine.coerce(current)
        target = AppointmentStateMachine.coerce(target)
        return InvalidTransition(
            f"Invalid status transition from {current.value} to {target.value}",
            current=current.value, target=target.value
        )

    @staticmethod
    def _transition(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID,
            target: AppointmentStatus,
            apply_to_future: bool,
            lock_manager: Optional[ScheduleLockManager]
    ) -> StatusChangeResult:
        locks = lock_manager or get_schedule_lock_manager()
        target = AppointmentStateMachine.coerce(target)
        appointment = AppointmentService._get_for_actor(db, actor, appointment_id)

        if not AppointmentStateMachine.can_transition_to(appointment.status, target):
            raise AppointmentService._invalid_transition(appointment.status, target)

        with locks.hold([lock_key(appointment.professional_id, appointment.start_at)]):
            appointment.status = target
            AppointmentRepository(db).save(appointment)

        future_changes = 0
        if apply_to_future and appointment.is_recurring:
            future_changes = RecurrenceService.cascade_status(db, appointment, target, lock_manager=locks)

        return StatusChangeResult(appointment=appointment, future_changes=future_changes)

    @staticmethod
    def _notify_professional(db: Session, appointment: Appointment, title: str, template: str, type: str):
        """Best effort; a missing record or a failed write never reaches the caller"""
        try:
            professional = DirectoryService.get_professional(db, appointment.professional_id)
            client = DirectoryService.get_client(db, appointment.client_id)
        except SchedulingError as e:
            logger.warning(f"Skipping '{type}' notification for {appointment.id}: {e.message}")
            return

        NotificationService.notify(
            db,
            recipient_id=professional.notification_recipient_id,
            title=title,
            message=template.format(client=client.name, when=appointment.start_at.strftime("%Y-%m-%d %H:%M")),
            type=type,
            related_entity=("Appointment", appointment.id),
            account_id=appointment.account_id,
        )
