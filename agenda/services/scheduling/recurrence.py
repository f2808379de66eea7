# agenda/services/scheduling/recurrence.py
"""Expansion of a recurrence rule into series occurrences"""
from datetime import datetime, timedelta
from typing import Iterator, List

from dateutil.relativedelta import relativedelta

from agenda.models.appointment import Appointment, RecurrencePattern
from agenda.schemas.appointment import AppointmentDraft, RecurrenceRule

DEFAULT_MAX_OCCURRENCES = 52  # one year of weekly appointments


class RecurrenceExpander:
    """Builds child drafts for a persisted root appointment; never touches storage"""

    @staticmethod
    def occurrence_at(start: datetime, rule: RecurrenceRule, index: int) -> datetime:
        """Start of the index-th repeat (index 1 is the first one after the root)"""
        step = rule.interval * index
        if rule.pattern == RecurrencePattern.WEEKLY:
            return start + timedelta(days=7 * step)
        if rule.pattern == RecurrencePattern.MONTHLY:
            # Offset from the root so a 31st does not drift after a short month
            return start + relativedelta(months=step)
        # daily and custom both count whole days
        return start + timedelta(days=step)

    @staticmethod
    def iter_dates(
            start: datetime,
            rule: RecurrenceRule,
            max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    ) -> Iterator[datetime]:
        """Repeat starts after `start`; a repeat on `rule.end_date` itself is kept, whatever its time"""
        limit = max_occurrences
        if rule.occurrences:
            limit = min(rule.occurrences, max_occurrences)

        for index in range(1, limit + 1):
            candidate = RecurrenceExpander.occurrence_at(start, rule, index)
            if rule.end_date is not None and candidate.date() > rule.end_date:
                return
            yield candidate

    @staticmethod
    def expand(
            root: Appointment,
            rule: RecurrenceRule,
            max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    ) -> List[AppointmentDraft]:
        if not rule.is_recurring:
            return []

        return [
            AppointmentDraft(
                account_id=root.account_id,
                client_id=root.client_id,
                professional_id=root.professional_id,
                service_id=root.service_id,
                start_at=occurrence,
                duration_minutes=root.duration_minutes,
                status=root.status,
                notes=root.notes,
                color=root.color,
                send_reminder=root.send_reminder,
                recurrence_pattern=rule.pattern,
                recurrence_interval=rule.interval,
                recurrence_end_date=rule.end_date,
                recurrence_occurrences=rule.occurrences,
                parent_appointment_id=root.id,
            )
            for occurrence in RecurrenceExpander.iter_dates(root.start_at, rule, max_occurrences)
        ]
