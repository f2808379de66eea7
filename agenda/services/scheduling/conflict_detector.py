# agenda/services/scheduling/conflict_detector.py
from datetime import datetime, timedelta
from typing import Iterable, Optional

from agenda.models.appointment import Appointment, ACTIVE_STATUSES


class ConflictDetector:
    """Half-open interval overlap between a proposed slot and existing bookings"""

    @staticmethod
    def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
        # Touching endpoints do not overlap
        return start_a < end_b and end_a > start_b

    @staticmethod
    def find_conflict(
            existing: Iterable[Appointment],
            proposed_start: datetime,
            proposed_end: datetime,
            exclude_id=None
    ) -> Optional[Appointment]:
        """First blocking appointment in the order supplied, or None"""
        for appointment in existing:
            if exclude_id is not None and appointment.id == exclude_id:
                continue
            if appointment.status not in ACTIVE_STATUSES:
                continue

            appointment_end = appointment.start_at + timedelta(minutes=appointment.duration_minutes)
            if ConflictDetector.intervals_overlap(
                    proposed_start, proposed_end, appointment.start_at, appointment_end
            ):
                return appointment

        return None
