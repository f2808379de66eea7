# agenda/services/appointment/appointment_repository.py
"""Appointment repository - the only storage contract the scheduling core needs"""
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from agenda.models.appointment import Appointment, AppointmentStatus, ACTIVE_STATUSES


class AppointmentFilter(BaseModel):
    """Conjunction of optional criteria; unset fields do not filter"""
    account_id: Optional[UUID] = None
    professional_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    statuses: Optional[Sequence[AppointmentStatus]] = None
    exclude_statuses: Optional[Sequence[AppointmentStatus]] = None
    start_from: Optional[datetime] = None  # inclusive
    start_before: Optional[datetime] = None  # exclusive
    parent_appointment_id: Optional[UUID] = None
    exclude_id: Optional[UUID] = None
    is_override: Optional[bool] = None
    exclude_ids: Optional[Sequence[UUID]] = None


def day_bounds(day: date):
    """[midnight, next midnight) of a calendar day"""
    day_start = datetime.combine(day, time.min)
    return day_start, day_start + timedelta(days=1)


class AppointmentRepository:
    """Repository for appointment database operations"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, criteria: AppointmentFilter):
        query = self.db.query(Appointment)

        if criteria.account_id is not None:
            query = query.filter(Appointment.account_id == criteria.account_id)
        if criteria.professional_id is not None:
            query = query.filter(Appointment.professional_id == criteria.professional_id)
        if criteria.client_id is not None:
            query = query.filter(Appointment.client_id == criteria.client_id)
        if criteria.statuses is not None:
            query = query.filter(Appointment.status.in_(list(criteria.statuses)))
        if criteria.exclude_statuses:
            query = query.filter(Appointment.status.notin_(list(criteria.exclude_statuses)))
        if criteria.start_from is not None:
            query = query.filter(Appointment.start_at >= criteria.start_from)
        if criteria.start_before is not None:
            query = query.filter(Appointment.start_at < criteria.start_before)
        if criteria.parent_appointment_id is not None:
            query = query.filter(Appointment.parent_appointment_id == criteria.parent_appointment_id)
        if criteria.exclude_id is not None:
            query = query.filter(Appointment.id != criteria.exclude_id)
        if criteria.is_override is not None:
            query = query.filter(Appointment.is_override == criteria.is_override)
        if criteria.exclude_ids:
            query = query.filter(Appointment.id.notin_(list(criteria.exclude_ids)))

        return query

    def find(
            self,
            criteria: AppointmentFilter,
            skip: int = 0,
            limit: Optional[int] = None
    ) -> List[Appointment]:
        query = self._query(criteria).order_by(Appointment.start_at.asc())
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_where(self, criteria: AppointmentFilter) -> int:
        return self._query(criteria).count()

    def get(self, appointment_id: UUID, account_id: Optional[UUID] = None) -> Optional[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if account_id is not None:
            query = query.filter(Appointment.account_id == account_id)
        return query.first()

    def save(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def active_on_day(
            self,
            professional_id: UUID,
            day: date,
            exclude_id: Optional[UUID] = None,
            exclude_ids: Optional[Sequence[UUID]] = None
    ) -> List[Appointment]:
        """
        Scheduled/confirmed bookings of a professional starting on one calendar day.

        Only bookings that start on `day` are returned; a booking started the
        evening before and running past midnight is not. Working hours never
        cross midnight, so in-hours bookings cannot overlap that way.

        `exclude_ids` leaves out series members that are about to be moved
        by the same operation.
        """
        day_start, day_end = day_bounds(day)
        return self.find(AppointmentFilter(
            professional_id=professional_id,
            statuses=ACTIVE_STATUSES,
            start_from=day_start,
            start_before=day_end,
            exclude_id=exclude_id,
            exclude_ids=exclude_ids,
        ))

    def count_overrides_on_day(
            self,
            professional_id: UUID,
            day: date,
            exclude_id: Optional[UUID] = None,
            exclude_ids: Optional[Sequence[UUID]] = None
    ) -> int:
        """Override bookings on the day, whatever their status"""
        day_start, day_end = day_bounds(day)
        return self.count_where(AppointmentFilter(
            professional_id=professional_id,
            start_from=day_start,
            start_before=day_end,
            exclude_id=exclude_id,
            is_override=True,
            exclude_ids=exclude_ids,
        ))
