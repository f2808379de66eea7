# agenda/models/schedule_settings.py
from sqlalchemy import Column, Integer, DateTime, JSON, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid
from agenda.models.base import Base


class ScheduleSettings(Base):
    """Breaks, time off and slot size for one professional"""
    __tablename__ = "schedule_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id = Column(Uuid, ForeignKey("professionals.id"), nullable=False, unique=True)

    # [{"weekday": "monday" | "date": "2024-01-02", "start": "12:00", "end": "13:00", "description": ...}]
    breaks = Column(JSON, default=list)
    # ["2024-12-25", ...]
    time_off_dates = Column(JSON, default=list)

    slot_duration_minutes = Column(Integer, nullable=True)  # falls back to DEFAULT_SLOT_MINUTES

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
