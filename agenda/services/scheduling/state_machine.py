# agenda/services/scheduling/state_machine.py
"""Single source of truth for appointment status transitions"""
from typing import Dict, FrozenSet, Union

from agenda.models.appointment import AppointmentStatus

StatusLike = Union[AppointmentStatus, str]


class AppointmentStateMachine:
    """Pure predicate over the transition table; callers decide how to reject"""

    INITIAL = AppointmentStatus.SCHEDULED

    TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
        AppointmentStatus.SCHEDULED: frozenset({
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        }),
        AppointmentStatus.CONFIRMED: frozenset({
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }),
        AppointmentStatus.COMPLETED: frozenset(),
        AppointmentStatus.CANCELLED: frozenset(),
        AppointmentStatus.NO_SHOW: frozenset(),
    }

    @staticmethod
    def coerce(status: StatusLike) -> AppointmentStatus:
        return status if isinstance(status, AppointmentStatus) else AppointmentStatus(status)

    @classmethod
    def can_transition_to(cls, current: StatusLike, target: StatusLike) -> bool:
        try:
            current, target = cls.coerce(current), cls.coerce(target)
        except ValueError:
            return False
        return target in cls.TRANSITIONS[current]

    @classmethod
    def is_terminal(cls, status: StatusLike) -> bool:
        return not cls.TRANSITIONS[cls.coerce(status)]

    @classmethod
    def allowed_targets(cls, status: StatusLike) -> FrozenSet[AppointmentStatus]:
        return cls.TRANSITIONS[cls.coerce(status)]
