# agenda/models/__init__.py
from .base import Base
from .appointment import Appointment, AppointmentStatus, RecurrencePattern, ACTIVE_STATUSES
from .professional import Professional
from .schedule_settings import ScheduleSettings
from .service import Service
from .client import Client
from .notification import Notification

__all__ = [
    "Base",
    "Appointment",
    "AppointmentStatus",
    "RecurrencePattern",
    "ACTIVE_STATUSES",
    "Professional",
    "ScheduleSettings",
    "Service",
    "Client",
    "Notification",
]
