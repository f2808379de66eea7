# agenda/models/professional.py
"""
Professional directory record.
Only the fields the scheduling core reads are modelled here.
"""
from sqlalchemy import Column, String, DateTime, JSON, Uuid
from sqlalchemy.sql import func
import uuid
from agenda.models.base import Base


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, nullable=False, index=True)
    user_account_id = Column(Uuid, nullable=True)  # login of the professional, receives notifications

    name = Column(String(200), nullable=False)

    # {"monday": {"start": "09:00", "end": "18:00"}, ...}; missing day = not working
    working_hours = Column(JSON, default=dict)

    status = Column(String(20), default="active")  # active, inactive

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Professional(id={self.id}, name={self.name})>"

    @property
    def is_active(self) -> bool:
        return self.status != "inactive"

    @property
    def notification_recipient_id(self):
        return self.user_account_id or self.id
