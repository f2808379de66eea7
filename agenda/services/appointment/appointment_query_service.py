# ============================================================================
# agenda/services/appointment/appointment_query_service.py
# Pure business logic - no FastAPI dependencies, fully testable
# ============================================================================
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.professional import Professional
from agenda.models.schedule_settings import ScheduleSettings
from agenda.schemas.auth_context import AuthContext
from agenda.services.appointment.appointment_repository import AppointmentFilter, AppointmentRepository
from agenda.services.availability.availability_service import AvailabilityService

logger = logging.getLogger(__name__)


class AppointmentQueryService:
    """Read side of the appointment book."""

    @staticmethod
    def list_appointments(
            db: Session,
            actor: AuthContext,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            status: Optional[AppointmentStatus] = None,
            client_id: Optional[UUID] = None,
            professional_id: Optional[UUID] = None,
            skip: int = 0,
            limit: int = 50
    ) -> Dict[str, Any]:
        """Get paginated list of appointments with filters."""
        restricted = actor.restricted_professional_id
        if restricted is not None:
            # Professionals without view-all permission only see their own book
            professional_id = restricted

        criteria = AppointmentFilter(
            account_id=actor.account_id,
            professional_id=professional_id,
            client_id=client_id,
            statuses=[status] if status else None,
            start_from=datetime.combine(start_date, time.min) if start_date else None,
            start_before=datetime.combine(end_date + timedelta(days=1), time.min) if end_date else None,
        )

        repository = AppointmentRepository(db)
        total = repository.count_where(criteria)
        appointments = repository.find(criteria, skip=skip, limit=limit)
        outside_hours = AppointmentQueryService._outside_hours_flags(db, appointments)

        return {
            "account_id": str(actor.account_id),
            "total_appointments": total,
            "page": {
                "skip": skip,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit if total > 0 else 0
            },
            "filters": {
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
                "status": status.value if status else None,
                "client_id": str(client_id) if client_id else None,
                "professional_id": str(professional_id) if professional_id else None
            },
            "appointments": [
                AppointmentQueryService.serialize_appointment(
                    appt, is_outside_working_hours=outside_hours.get(appt.id, False)
                )
                for appt in appointments
            ]
        }

    @staticmethod
    def get_appointment_by_id(
            db: Session,
            actor: AuthContext,
            appointment_id: UUID
    ) -> Optional[Dict[str, Any]]:
        """Get a single appointment by ID. Returns None if not found or not visible."""
        appointment = AppointmentRepository(db).get(appointment_id, actor.account_id)
        if not appointment or not actor.can_manage(appointment.professional_id):
            return None

        outside_hours = AppointmentQueryService._outside_hours_flags(db, [appointment])
        return AppointmentQueryService.serialize_appointment(
            appointment, detailed=True, is_outside_working_hours=outside_hours.get(appointment.id, False)
        )

    @staticmethod
    def _outside_hours_flags(db: Session, appointments) -> Dict[UUID, bool]:
        """Display-only flag; a lookup failure marks the appointment as inside hours"""
        professionals: Dict[UUID, Optional[Professional]] = {}
        schedules: Dict[UUID, Optional[ScheduleSettings]] = {}
        flags = {}

        for appt in appointments:
            try:
                if appt.professional_id not in professionals:
                    professionals[appt.professional_id] = db.get(Professional, appt.professional_id)
                    schedules[appt.professional_id] = db.query(ScheduleSettings).filter(
                        ScheduleSettings.professional_id == appt.professional_id
                    ).first()

                professional = professionals[appt.professional_id]
                flags[appt.id] = bool(professional) and AvailabilityService.is_outside_working_hours(
                    professional, appt.start_at, schedules[appt.professional_id]
                )
            except Exception as e:
                logger.error(f"Error checking working hours for appointment {appt.id}: {e}")
                flags[appt.id] = False

        return flags

    @staticmethod
    def serialize_appointment(
            appointment: Appointment,
            detailed: bool = False,
            is_outside_working_hours: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Convert Appointment model to dictionary."""
        base = {
            "id": str(appointment.id),
            "client_id": str(appointment.client_id),
            "professional_id": str(appointment.professional_id),
            "service_id": str(appointment.service_id),
            "start_at": appointment.start_at.isoformat(),
            "end_at": appointment.end_at.isoformat(),
            "duration_minutes": appointment.duration_minutes,
            "status": AppointmentStatus(appointment.status).value,
            "notes": appointment.notes,
            "color": appointment.color,
            "is_override": appointment.is_override,
            "is_recurring": appointment.is_recurring,
            "parent_appointment_id": (
                str(appointment.parent_appointment_id) if appointment.parent_appointment_id else None
            ),
        }

        if is_outside_working_hours is not None:
            base["is_outside_working_hours"] = is_outside_working_hours

        if detailed:
            base.update({
                "account_id": str(appointment.account_id),
                "send_reminder": appointment.send_reminder,
                "reminder_sent": appointment.reminder_sent,
                "recurrence": {
                    "pattern": appointment.recurrence_pattern.value if appointment.recurrence_pattern else None,
                    "interval": appointment.recurrence_interval,
                    "end_date": (
                        appointment.recurrence_end_date.isoformat() if appointment.recurrence_end_date else None
                    ),
                    "occurrences": appointment.recurrence_occurrences,
                } if appointment.is_recurring else None,
                "created_at": appointment.created_at.isoformat() if appointment.created_at else None,
                "updated_at": appointment.updated_at.isoformat() if appointment.updated_at else None,
            })

        return base
