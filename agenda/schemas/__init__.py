from .auth_context import ActorRole, AuthContext

from .appointment import (
    RecurrenceRule,
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
    StatusChangeRequest,
    AppointmentDraft,
    SeriesResult,
    CreateResult,
    CascadeResult,
    UpdateResult,
    StatusChangeResult,
)

from .availability import AvailabilityResult, SlotAvailability

__all__ = [
    "ActorRole",
    "AuthContext",
    "RecurrenceRule",
    "AppointmentCreateRequest",
    "AppointmentUpdateRequest",
    "StatusChangeRequest",
    "AppointmentDraft",
    "SeriesResult",
    "CreateResult",
    "CascadeResult",
    "UpdateResult",
    "StatusChangeResult",
    "AvailabilityResult",
    "SlotAvailability",
]
