# agenda/models/appointment.py
"""
Appointment Model
One scheduled service occurrence. Recurring series are two-tier: a root
appointment plus children that point at the root through parent_appointment_id.
"""
from datetime import timedelta
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, Date, Boolean, ForeignKey, Uuid, Enum as SQLEnum
)
from sqlalchemy.sql import func
import uuid
import enum
from agenda.models.base import Base


class AppointmentStatus(str, enum.Enum):
    """Appointment lifecycle states."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class RecurrencePattern(str, enum.Enum):
    """Cadence of a recurring series."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # every `interval` days


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Statuses that occupy the professional's time
ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # References
    account_id = Column(Uuid, nullable=False, index=True)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=False)
    professional_id = Column(Uuid, ForeignKey("professionals.id"), nullable=False, index=True)
    service_id = Column(Uuid, ForeignKey("services.id"), nullable=False)

    # Appointment details
    start_at = Column(DateTime, nullable=False, index=True)  # business local time
    duration_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    color = Column(String(30), default="default")

    status = Column(
        SQLEnum(AppointmentStatus, name="appointment_status", values_callable=_enum_values),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True
    )

    # Reminders (reminder_sent is owned by the reminder job)
    send_reminder = Column(Boolean, default=True, nullable=False)
    reminder_sent = Column(Boolean, default=False, nullable=False)

    # Accepted outside hours or on top of another booking
    is_override = Column(Boolean, default=False, nullable=False)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(
        SQLEnum(RecurrencePattern, name="recurrence_pattern", values_callable=_enum_values),
        nullable=True
    )
    recurrence_interval = Column(Integer, nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    recurrence_occurrences = Column(Integer, nullable=True)
    parent_appointment_id = Column(Uuid, ForeignKey("appointments.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Appointment(id={self.id}, start_at={self.start_at}, status={self.status})>"

    @property
    def end_at(self):
        return self.start_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_series_root(self) -> bool:
        return bool(self.is_recurring) and self.parent_appointment_id is None

    @property
    def series_root_id(self):
        """Id of the series root, whether this is the root or a child"""
        return self.parent_appointment_id or self.id
