import uuid
from datetime import datetime, timedelta, timezone

import pytest

from agenda.models import Appointment, AppointmentStatus, Notification, RecurrencePattern, Service
from agenda.schemas.appointment import AppointmentCreateRequest, AppointmentUpdateRequest, RecurrenceRule
from agenda.schemas.auth_context import AuthContext
from agenda.services.appointment.appointment_service import AppointmentService
from agenda.services.appointment.schedule_lock import ScheduleLockManager, lock_key
from agenda.services.notification import notification_service
from agenda.services.scheduling.errors import (
    AppointmentInPast,
    EntityNotFound,
    InvalidTransition,
    NotPermitted,
    OutsideWorkingHours,
    ScheduleBusy,
    SlotConflict,
)

from conftest import NOW, at


@pytest.fixture()
def book(db, owner, professional, service, client, lock_manager):
    """Create through the service with the test clock and locks"""

    def _book(start_at, actor=None, **fields):
        request = AppointmentCreateRequest(
            client_id=client.id,
            professional_id=professional.id,
            service_id=service.id,
            start_at=start_at,
            **fields
        )
        return AppointmentService.create_appointment(
            db, actor or owner, request, now=NOW, lock_manager=lock_manager
        )

    return _book


@pytest.fixture()
def weekly_series(book):
    """Root on Monday 10:00 and three weekly repeats"""
    return book(at(10), recurrence=RecurrenceRule(pattern=RecurrencePattern.WEEKLY, occurrences=3))


def update(db, owner, appointment, lock_manager, apply_to_future=False, **fields):
    return AppointmentService.update_appointment(
        db, owner, appointment.id, AppointmentUpdateRequest(**fields),
        apply_to_future=apply_to_future, now=NOW, lock_manager=lock_manager
    )


def series_starts(db, root):
    children = db.query(Appointment).filter(
        Appointment.parent_appointment_id == root.id
    ).order_by(Appointment.start_at).all()
    return [(child.start_at, AppointmentStatus(child.status)) for child in children]


class TestCreate:

    def test_books_free_slot(self, db, book, professional, service):
        result = book(at(10), notes="First visit")

        appointment = result.appointment
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.duration_minutes == service.duration_minutes
        assert appointment.is_override is False
        assert appointment.is_recurring is False
        assert appointment.notes == "First visit"
        assert result.is_outside_working_hours is False
        assert result.recurring_appointments == []

    def test_notifies_professional(self, db, book, professional):
        book(at(10))

        notification = db.query(Notification).one()
        assert notification.recipient_id == professional.user_account_id
        assert notification.type == "appointment"
        assert notification.title == "New appointment"
        assert notification.message == "Appointment with Carla Dias on 2030-01-07 10:00"

    def test_failed_notification_does_not_abort_booking(self, db, book, monkeypatch):
        def broken(**kwargs):
            raise RuntimeError("notification store down")

        monkeypatch.setattr(notification_service, "Notification", broken)
        result = book(at(10))

        assert db.get(Appointment, result.appointment.id) is not None
        assert db.query(Notification).count() == 0

    def test_aware_start_is_stored_as_local_wall_clock(self, book):
        result = book(datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc))
        assert result.appointment.start_at == at(10)

    def test_past_start_is_rejected(self, db, owner, professional, service, client, lock_manager):
        request = AppointmentCreateRequest(
            client_id=client.id, professional_id=professional.id, service_id=service.id, start_at=at(10)
        )
        with pytest.raises(AppointmentInPast):
            AppointmentService.create_appointment(
                db, owner, request, now=at(12), lock_manager=lock_manager
            )
        assert db.query(Appointment).count() == 0

    def test_past_start_allowed_with_override(self, db, owner, professional, service, client, lock_manager):
        request = AppointmentCreateRequest(
            client_id=client.id, professional_id=professional.id, service_id=service.id,
            start_at=at(10), allow_override=True
        )
        result = AppointmentService.create_appointment(
            db, owner, request, now=at(12), lock_manager=lock_manager
        )
        assert result.appointment.start_at == at(10)
        assert result.appointment.is_override is True
        assert db.get(Appointment, result.appointment.id).is_override is True

    def test_conflict_is_rejected(self, db, book):
        book(at(10))
        with pytest.raises(SlotConflict):
            book(at(10, 30))
        assert db.query(Appointment).count() == 1

    def test_override_books_on_top_and_outside_hours(self, book):
        book(at(10))

        double = book(at(10, 30), allow_override=True)
        assert double.appointment.is_override is True
        assert double.is_outside_working_hours is False

        late = book(at(19), allow_override=True)
        assert late.appointment.is_override is True
        assert late.is_outside_working_hours is True

    def test_outside_hours_without_override(self, book):
        with pytest.raises(OutsideWorkingHours):
            book(at(7))

    def test_unknown_client(self, db, owner, professional, service, lock_manager):
        request = AppointmentCreateRequest(
            client_id=uuid.uuid4(), professional_id=professional.id, service_id=service.id, start_at=at(10)
        )
        with pytest.raises(EntityNotFound) as exc_info:
            AppointmentService.create_appointment(db, owner, request, now=NOW, lock_manager=lock_manager)
        assert exc_info.value.entity == "Client"

    def test_professional_cannot_book_for_colleague(self, book, account_id, other_professional):
        actor = AuthContext.professional(account_id, other_professional.id)
        with pytest.raises(NotPermitted):
            book(at(10), actor=actor)

    def test_professional_books_own_calendar(self, book, account_id, professional):
        actor = AuthContext.professional(account_id, professional.id)
        assert book(at(10), actor=actor).appointment.professional_id == professional.id

    def test_busy_day_is_reported(self, db, owner, professional, service, client):
        locks = ScheduleLockManager("local", blocking_timeout=0.1)
        request = AppointmentCreateRequest(
            client_id=client.id, professional_id=professional.id, service_id=service.id, start_at=at(10)
        )
        with locks.hold([lock_key(professional.id, at(10))]):
            with pytest.raises(ScheduleBusy):
                AppointmentService.create_appointment(db, owner, request, now=NOW, lock_manager=locks)


class TestRecurringCreate:

    def test_creates_weekly_children(self, db, weekly_series):
        root = weekly_series.appointment

        assert root.is_recurring is True
        assert root.parent_appointment_id is None
        assert root.recurrence_pattern == RecurrencePattern.WEEKLY
        assert weekly_series.recurring_skipped == 0
        assert [child.start_at for child in weekly_series.recurring_appointments] == [
            at(10, day_offset=7), at(10, day_offset=14), at(10, day_offset=21)
        ]
        for child in weekly_series.recurring_appointments:
            assert child.parent_appointment_id == root.id
            assert child.is_recurring is True
            assert child.series_root_id == root.id

    def test_unavailable_occurrence_is_skipped(self, book, make_appointment):
        make_appointment(at(10, day_offset=7))

        result = book(at(10), recurrence=RecurrenceRule(pattern=RecurrencePattern.WEEKLY, occurrences=3))

        assert result.recurring_skipped == 1
        assert [child.start_at for child in result.recurring_appointments] == [
            at(10, day_offset=14), at(10, day_offset=21)
        ]

    def test_children_inherit_override_permission(self, book, make_appointment):
        make_appointment(at(10, day_offset=7))

        result = book(
            at(10),
            allow_override=True,
            recurrence=RecurrenceRule(pattern=RecurrencePattern.WEEKLY, occurrences=2),
        )

        assert result.recurring_skipped == 0
        assert [child.is_override for child in result.recurring_appointments] == [True, False]

    def test_past_occurrences_kept_with_override_are_flagged(
            self, db, owner, professional, service, client, lock_manager
    ):
        request = AppointmentCreateRequest(
            client_id=client.id, professional_id=professional.id, service_id=service.id,
            start_at=at(10), allow_override=True,
            recurrence=RecurrenceRule(pattern=RecurrencePattern.DAILY, occurrences=2),
        )
        result = AppointmentService.create_appointment(
            db, owner, request, now=at(12, day_offset=1), lock_manager=lock_manager
        )

        assert result.appointment.is_override is True
        assert [(child.start_at, child.is_override) for child in result.recurring_appointments] == [
            (at(10, day_offset=1), True),
            (at(10, day_offset=2), False),
        ]

    def test_non_recurring_rule_creates_single_appointment(self, book):
        result = book(at(10), recurrence=RecurrenceRule(is_recurring=False, occurrences=3))
        assert result.appointment.is_recurring is False
        assert result.recurring_appointments == []


class TestStatusChanges:

    def test_confirm_then_complete(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment

        confirmed = AppointmentService.confirm_appointment(db, owner, appointment.id, lock_manager=lock_manager)
        assert confirmed.appointment.status == AppointmentStatus.CONFIRMED

        completed = AppointmentService.change_status(
            db, owner, appointment.id, AppointmentStatus.COMPLETED, lock_manager=lock_manager
        )
        assert completed.appointment.status == AppointmentStatus.COMPLETED
        assert completed.future_changes == 0

    def test_skip_level_transition_is_rejected(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        with pytest.raises(InvalidTransition) as exc_info:
            AppointmentService.change_status(
                db, owner, appointment.id, AppointmentStatus.COMPLETED, lock_manager=lock_manager
            )
        assert exc_info.value.context == {"current": "scheduled", "target": "completed"}

    def test_cancelled_is_final(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        AppointmentService.cancel_appointment(db, owner, appointment.id, lock_manager=lock_manager)

        with pytest.raises(InvalidTransition):
            AppointmentService.confirm_appointment(db, owner, appointment.id, lock_manager=lock_manager)

    def test_cancel_notifies_professional(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        AppointmentService.cancel_appointment(db, owner, appointment.id, lock_manager=lock_manager)

        types = sorted(n.type for n in db.query(Notification).all())
        assert types == ["appointment", "appointment_cancelled"]

    def test_cancelled_slot_can_be_rebooked(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        AppointmentService.cancel_appointment(db, owner, appointment.id, lock_manager=lock_manager)
        assert book(at(10)).appointment.is_override is False

    def test_unknown_appointment(self, db, owner, lock_manager):
        with pytest.raises(EntityNotFound):
            AppointmentService.cancel_appointment(db, owner, uuid.uuid4(), lock_manager=lock_manager)

    def test_other_account_cannot_see_appointment(self, db, book, lock_manager):
        appointment = book(at(10)).appointment
        stranger = AuthContext.owner(uuid.uuid4())
        with pytest.raises(EntityNotFound):
            AppointmentService.cancel_appointment(db, stranger, appointment.id, lock_manager=lock_manager)

    def test_professional_cannot_cancel_colleagues_booking(
            self, db, book, account_id, other_professional, lock_manager
    ):
        appointment = book(at(10)).appointment
        actor = AuthContext.professional(account_id, other_professional.id)
        with pytest.raises(NotPermitted):
            AppointmentService.cancel_appointment(db, actor, appointment.id, lock_manager=lock_manager)

    def test_professional_with_view_all_can_cancel(self, db, book, account_id, other_professional, lock_manager):
        appointment = book(at(10)).appointment
        actor = AuthContext.professional(account_id, other_professional.id, can_view_all=True)
        result = AppointmentService.cancel_appointment(db, actor, appointment.id, lock_manager=lock_manager)
        assert result.appointment.status == AppointmentStatus.CANCELLED


class TestStatusCascade:

    def test_cancel_child_cascades_only_forward(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment
        second_child = weekly_series.recurring_appointments[1]

        result = AppointmentService.cancel_appointment(
            db, owner, second_child.id, apply_to_future=True, lock_manager=lock_manager
        )

        assert result.future_changes == 1
        assert AppointmentStatus(db.get(Appointment, root.id).status) == AppointmentStatus.SCHEDULED
        assert series_starts(db, root) == [
            (at(10, day_offset=7), AppointmentStatus.SCHEDULED),
            (at(10, day_offset=14), AppointmentStatus.CANCELLED),
            (at(10, day_offset=21), AppointmentStatus.CANCELLED),
        ]

    def test_confirm_root_cascades_to_all_children(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment

        result = AppointmentService.confirm_appointment(
            db, owner, root.id, apply_to_future=True, lock_manager=lock_manager
        )

        assert result.future_changes == 3
        assert {status for _, status in series_starts(db, root)} == {AppointmentStatus.CONFIRMED}

    def test_without_flag_only_target_changes(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment
        result = AppointmentService.cancel_appointment(db, owner, root.id, lock_manager=lock_manager)

        assert result.future_changes == 0
        assert {status for _, status in series_starts(db, root)} == {AppointmentStatus.SCHEDULED}

    def test_illegal_sibling_transitions_are_skipped(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment
        last = weekly_series.recurring_appointments[-1]
        last.status = AppointmentStatus.NO_SHOW
        db.commit()

        result = AppointmentService.cancel_appointment(
            db, owner, root.id, apply_to_future=True, lock_manager=lock_manager
        )

        assert result.future_changes == 2
        assert series_starts(db, root)[-1] == (at(10, day_offset=21), AppointmentStatus.NO_SHOW)

    def test_non_recurring_appointment_has_no_cascade(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        result = AppointmentService.confirm_appointment(
            db, owner, appointment.id, apply_to_future=True, lock_manager=lock_manager
        )
        assert result.future_changes == 0


class TestUpdate:

    def test_move_to_free_slot(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment

        result = update(db, owner, appointment, lock_manager, start_at=at(15), notes="Moved")

        assert result.appointment.start_at == at(15)
        assert result.appointment.notes == "Moved"
        assert result.appointment.is_override is False

    def test_move_into_conflict_leaves_appointment_untouched(self, db, owner, book, lock_manager):
        book(at(15))
        appointment = book(at(10)).appointment

        with pytest.raises(SlotConflict):
            update(db, owner, appointment, lock_manager, start_at=at(15, 30))

        db.refresh(appointment)
        assert appointment.start_at == at(10)

    def test_move_with_override_sets_flag(self, db, owner, book, lock_manager):
        book(at(15))
        appointment = book(at(10)).appointment

        result = update(db, owner, appointment, lock_manager, start_at=at(15, 30), allow_override=True)
        assert result.appointment.is_override is True

    def test_longer_duration_is_rechecked(self, db, owner, book, lock_manager):
        book(at(11))
        appointment = book(at(10)).appointment

        with pytest.raises(SlotConflict):
            update(db, owner, appointment, lock_manager, duration_minutes=90)

    def test_small_nudge_does_not_conflict_with_itself(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        assert update(db, owner, appointment, lock_manager, start_at=at(10, 15)).appointment.start_at == at(10, 15)

    def test_move_into_past_is_rejected(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        with pytest.raises(AppointmentInPast):
            update(db, owner, appointment, lock_manager, start_at=datetime(2029, 12, 31, 10))

    def test_move_into_past_with_override_is_flagged(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment

        result = update(
            db, owner, appointment, lock_manager, start_at=datetime(2029, 12, 31, 10), allow_override=True
        )

        assert result.appointment.start_at == datetime(2029, 12, 31, 10)
        assert db.get(Appointment, appointment.id).is_override is True

    def test_service_change_rederives_duration(self, db, owner, account_id, book, lock_manager):
        coloring = Service(account_id=account_id, name="Coloring", duration_minutes=120)
        db.add(coloring)
        db.commit()
        appointment = book(at(10)).appointment

        result = update(db, owner, appointment, lock_manager, service_id=coloring.id)
        assert result.appointment.duration_minutes == 120

    def test_status_through_update_follows_state_machine(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment

        with pytest.raises(InvalidTransition):
            update(db, owner, appointment, lock_manager, status=AppointmentStatus.COMPLETED)

        result = update(db, owner, appointment, lock_manager, status=AppointmentStatus.CONFIRMED)
        assert result.appointment.status == AppointmentStatus.CONFIRMED

    def test_required_fields_cannot_be_cleared(self, db, owner, book, lock_manager):
        appointment = book(at(10), color="green").appointment
        result = update(db, owner, appointment, lock_manager, color=None, notes=None)

        assert result.appointment.color == "green"
        assert result.appointment.notes is None

    def test_reassign_to_unknown_professional(self, db, owner, book, lock_manager):
        appointment = book(at(10)).appointment
        with pytest.raises(EntityNotFound):
            update(db, owner, appointment, lock_manager, professional_id=uuid.uuid4())


class TestUpdateCascade:

    def test_date_shift_preserves_offsets(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment

        result = update(
            db, owner, root, lock_manager, apply_to_future=True,
            start_at=root.start_at + timedelta(days=2), notes="Moved to Wednesdays"
        )

        assert result.appointment.start_at == at(10, day_offset=2)
        assert result.future_updates == 3
        assert result.future_skipped == 0

        children = db.query(Appointment).filter(
            Appointment.parent_appointment_id == root.id
        ).order_by(Appointment.start_at).all()
        assert [child.start_at for child in children] == [
            at(10, day_offset=9), at(10, day_offset=16), at(10, day_offset=23)
        ]
        for child in children:
            assert child.notes == "Moved to Wednesdays"
            assert child.color == "default"
            assert child.duration_minutes == 60

    def test_field_change_from_child_leaves_earlier_members(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment
        first, second, third = weekly_series.recurring_appointments

        result = update(db, owner, second, lock_manager, apply_to_future=True, color="purple")

        assert result.future_updates == 1
        assert db.get(Appointment, root.id).color == "default"
        assert db.get(Appointment, first.id).color == "default"
        assert db.get(Appointment, third.id).color == "purple"

    def test_sibling_that_no_longer_fits_is_skipped(self, db, owner, weekly_series, make_appointment, lock_manager):
        root = weekly_series.appointment
        make_appointment(at(10, day_offset=16))  # where the second child would land

        result = update(
            db, owner, root, lock_manager, apply_to_future=True, start_at=at(10, day_offset=2)
        )

        assert result.future_updates == 2
        assert result.future_skipped == 1
        assert [start for start, _ in series_starts(db, root)] == [
            at(10, day_offset=9), at(10, day_offset=14), at(10, day_offset=23)
        ]

    def test_terminal_siblings_are_not_touched(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment
        last = weekly_series.recurring_appointments[-1]
        last.status = AppointmentStatus.CANCELLED
        db.commit()

        result = update(db, owner, root, lock_manager, apply_to_future=True, notes="Bring coffee")

        assert result.future_updates == 2
        assert db.get(Appointment, last.id).notes is None

    def test_status_in_update_cascades_where_legal(self, db, owner, weekly_series, lock_manager):
        root = weekly_series.appointment

        result = update(
            db, owner, root, lock_manager, apply_to_future=True, status=AppointmentStatus.CONFIRMED
        )

        assert result.future_updates == 3
        assert {status for _, status in series_starts(db, root)} == {AppointmentStatus.CONFIRMED}

    @pytest.fixture()
    def daily_series(self, book):
        """Root on Monday 10:00 and three daily repeats"""
        return book(at(10), recurrence=RecurrenceRule(pattern=RecurrencePattern.DAILY, occurrences=3))

    def test_shift_onto_own_later_occurrences(self, db, owner, daily_series, lock_manager):
        root = daily_series.appointment

        result = update(db, owner, root, lock_manager, apply_to_future=True, start_at=at(10, day_offset=2))

        assert result.appointment.start_at == at(10, day_offset=2)
        assert result.appointment.is_override is False
        assert result.future_updates == 3
        assert result.future_skipped == 0
        assert series_starts(db, root) == [
            (at(10, day_offset=3), AppointmentStatus.SCHEDULED),
            (at(10, day_offset=4), AppointmentStatus.SCHEDULED),
            (at(10, day_offset=5), AppointmentStatus.SCHEDULED),
        ]
        for child in daily_series.recurring_appointments:
            assert db.get(Appointment, child.id).is_override is False

    def test_shift_onto_own_occurrences_with_override_uses_no_override(
            self, db, owner, daily_series, lock_manager
    ):
        root = daily_series.appointment

        result = update(
            db, owner, root, lock_manager, apply_to_future=True,
            start_at=at(10, day_offset=2), allow_override=True
        )

        assert result.appointment.is_override is False
        assert result.future_skipped == 0
        assert [start for start, _ in series_starts(db, root)] == [
            at(10, day_offset=3), at(10, day_offset=4), at(10, day_offset=5)
        ]

    def test_shift_without_cascade_still_conflicts_with_siblings(self, db, owner, daily_series, lock_manager):
        root = daily_series.appointment

        with pytest.raises(SlotConflict):
            update(db, owner, root, lock_manager, start_at=at(10, day_offset=2))

    def test_skipped_sibling_still_blocks_later_ones(self, db, owner, daily_series, lock_manager):
        root = daily_series.appointment
        first, second, third = daily_series.recurring_appointments

        # Two days back: the first child would land on a Sunday and stays put
        result = update(db, owner, root, lock_manager, apply_to_future=True, start_at=at(10, day_offset=-2))

        assert result.appointment.start_at == at(10, day_offset=-2)
        assert result.future_updates == 1
        assert result.future_skipped == 2
        assert db.get(Appointment, first.id).start_at == at(10, day_offset=1)
        assert db.get(Appointment, second.id).start_at == at(10)
        assert db.get(Appointment, third.id).start_at == at(10, day_offset=3)
