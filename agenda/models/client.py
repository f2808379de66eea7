# agenda/models/client.py
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
import uuid
from agenda.models.base import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, nullable=False, index=True)

    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Client(id={self.id}, name={self.name})>"
