# agenda/models/service.py
"""
Service Model - catalog entry that supplies the booking duration
"""
from sqlalchemy import Column, String, Numeric, Integer, Boolean, DateTime, Uuid
from sqlalchemy.sql import func
import uuid
from agenda.models.base import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, nullable=False, index=True)

    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    duration_minutes = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, duration={self.duration_minutes})>"
