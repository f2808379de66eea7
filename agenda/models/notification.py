# agenda/models/notification.py
from sqlalchemy import Column, String, Text, Boolean, DateTime, Uuid
from sqlalchemy.sql import func
import uuid
from agenda.models.base import Base


class Notification(Base):
    """In-app notification shown to a professional or account owner"""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, nullable=True, index=True)
    recipient_id = Column(Uuid, nullable=False, index=True)

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)  # appointment, appointment_cancelled, appointment_confirmed

    related_model = Column(String(50), nullable=True)
    related_id = Column(Uuid, nullable=True)

    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
