# agenda/services/directory/directory_service.py
"""Read-only lookups of the records a booking references"""
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.models import Client, Professional, ScheduleSettings, Service
from agenda.services.scheduling.errors import EntityNotFound


class DirectoryService:

    @staticmethod
    def _scoped(db: Session, model, entity_id: UUID, account_id: Optional[UUID]):
        query = db.query(model).filter(model.id == entity_id)
        if account_id is not None:
            query = query.filter(model.account_id == account_id)
        return query.first()

    @staticmethod
    def get_professional(db: Session, professional_id: UUID, account_id: Optional[UUID] = None) -> Professional:
        professional = DirectoryService._scoped(db, Professional, professional_id, account_id)
        if not professional:
            raise EntityNotFound("Professional", professional_id)
        return professional

    @staticmethod
    def get_service(db: Session, service_id: UUID, account_id: Optional[UUID] = None) -> Service:
        service = DirectoryService._scoped(db, Service, service_id, account_id)
        if not service:
            raise EntityNotFound("Service", service_id)
        return service

    @staticmethod
    def get_client(db: Session, client_id: UUID, account_id: Optional[UUID] = None) -> Client:
        client = DirectoryService._scoped(db, Client, client_id, account_id)
        if not client:
            raise EntityNotFound("Client", client_id)
        return client

    @staticmethod
    def get_schedule_settings(db: Session, professional_id: UUID) -> Optional[ScheduleSettings]:
        return db.query(ScheduleSettings).filter(
            ScheduleSettings.professional_id == professional_id
        ).first()
