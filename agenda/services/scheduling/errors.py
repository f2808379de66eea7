# agenda/services/scheduling/errors.py
"""
Business-rule failures of the scheduling core.
All of them are user-correctable and surfaced to the caller as structured errors.
"""
from typing import Any, Dict


class SchedulingError(Exception):
    """Base class; `code` is stable and safe to expose to API clients"""
    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        data = {"status": "error", "code": self.code, "message": self.message}
        data.update({key: str(value) for key, value in self.context.items() if value is not None})
        return data


class AvailabilityError(SchedulingError):
    """The proposed slot cannot be booked"""
    code = "unavailable"


class ScheduleNotConfigured(AvailabilityError):
    code = "schedule_not_configured"


class OutsideWorkingHours(AvailabilityError):
    code = "outside_working_hours"


class OnBreak(AvailabilityError):
    code = "on_break"


class TimeOff(AvailabilityError):
    code = "time_off"


class SlotConflict(AvailabilityError):
    code = "slot_conflict"
    status_code = 409


class OverrideCapExceeded(AvailabilityError):
    code = "override_cap_exceeded"
    status_code = 409


class InvalidTransition(SchedulingError):
    code = "invalid_transition"


class EntityNotFound(SchedulingError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", entity=entity, entity_id=entity_id)
        self.entity = entity


class AppointmentInPast(SchedulingError):
    code = "appointment_in_past"


class InvalidAppointment(SchedulingError):
    code = "invalid_appointment"


class NotPermitted(SchedulingError):
    code = "not_permitted"
    status_code = 403


class ScheduleBusy(SchedulingError):
    """Another request holds the professional's day; safe to retry"""
    code = "schedule_busy"
    status_code = 409
