# agenda/schemas/appointment.py
"""
Pydantic schemas for appointment booking, updates and recurrence
"""
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from agenda.models.appointment import Appointment, AppointmentStatus, RecurrencePattern


class RecurrenceRule(BaseModel):
    """How a root appointment repeats"""
    is_recurring: bool = True
    pattern: RecurrencePattern = RecurrencePattern.WEEKLY
    interval: int = Field(default=1, ge=1)
    end_date: Optional[date] = Field(
        None, description="Last calendar date a repeat may fall on (inclusive, at any time of that day)"
    )
    occurrences: Optional[int] = Field(None, ge=1, description="Number of repeats after the root")


class AppointmentCreateRequest(BaseModel):
    """Booking request"""
    client_id: UUID
    professional_id: UUID
    service_id: UUID
    start_at: datetime
    notes: Optional[str] = None
    color: str = Field(default="default", max_length=30)
    send_reminder: bool = True
    allow_override: bool = Field(False, description="Accept outside hours or on top of another booking")
    recurrence: Optional[RecurrenceRule] = None


class AppointmentUpdateRequest(BaseModel):
    """
    Partial update. Only send what you want to change.
    """
    start_at: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    color: Optional[str] = Field(None, max_length=30)
    send_reminder: Optional[bool] = None
    client_id: Optional[UUID] = None
    professional_id: Optional[UUID] = None
    service_id: Optional[UUID] = None
    allow_override: bool = False

    def changes(self) -> dict:
        """Fields explicitly set by the caller, without control flags"""
        return self.model_dump(exclude_unset=True, exclude={"allow_override"})


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus


class AppointmentDraft(BaseModel):
    """Unsaved series occurrence produced from a root appointment"""
    account_id: UUID
    client_id: UUID
    professional_id: UUID
    service_id: UUID
    start_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    notes: Optional[str] = None
    color: Optional[str] = "default"
    send_reminder: bool = True
    recurrence_pattern: RecurrencePattern
    recurrence_interval: int
    recurrence_end_date: Optional[date] = None
    recurrence_occurrences: Optional[int] = None
    parent_appointment_id: UUID


# ============================================================================
# Operation results (hold ORM instances, not serialized directly)
# ============================================================================

class SeriesResult(BaseModel):
    """Outcome of persisting a recurring series"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    created: List[Appointment] = Field(default_factory=list)
    skipped: int = 0


class CreateResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    appointment: Appointment
    is_outside_working_hours: bool = False
    recurring_appointments: List[Appointment] = Field(default_factory=list)
    recurring_skipped: int = 0


class CascadeResult(BaseModel):
    affected: int = 0
    skipped: int = 0


class UpdateResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    appointment: Appointment
    future_updates: int = 0
    future_skipped: int = 0


class StatusChangeResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    appointment: Appointment
    future_changes: int = 0
