from datetime import date, datetime, time, timedelta

import pytest

from medibook.core.errors import NotFound, TooLateToCancel
from medibook.models.booking import STATUS_BOOKED, STATUS_CANCELLED, STATUS_COMPLETED, Booking
from medibook.scheduling.cancellation import (
    cancel_booking,
    hours_until,
    mark_cancelled,
    mark_completed,
    set_booking_status,
)
from medibook.scheduling.store import SqlSchedulingStore

BOOKING_INSTANT = datetime(2025, 6, 2, 14, 0)


@pytest.fixture
def booked(make_user, make_service, make_practitioner, make_booking):
    patient = make_user()
    practitioner = make_practitioner(make_service())
    booking = make_booking(patient, practitioner, BOOKING_INSTANT.date(), BOOKING_INSTANT.time())
    return patient, practitioner, booking


def test_hours_until_is_fractional() -> None:
    assert hours_until(date(2025, 6, 2), time(14, 0), datetime(2025, 6, 2, 12, 30)) == 1.5


def test_cancel_well_ahead_deletes_booking(db, booked) -> None:
    patient, _practitioner, booking = booked
    booking_id = booking.id

    cancel_booking(SqlSchedulingStore(db), booking_id, patient.id, BOOKING_INSTANT - timedelta(days=1))

    assert db.get(Booking, booking_id) is None


def test_cancel_exactly_four_hours_before_is_allowed(db, booked) -> None:
    patient, _practitioner, booking = booked
    booking_id = booking.id

    cancel_booking(SqlSchedulingStore(db), booking_id, patient.id, BOOKING_INSTANT - timedelta(hours=4))

    assert db.get(Booking, booking_id) is None


def test_cancel_three_hours_fifty_nine_before_is_too_late(db, booked) -> None:
    patient, _practitioner, booking = booked
    now = BOOKING_INSTANT - timedelta(hours=3, minutes=59)

    with pytest.raises(TooLateToCancel) as exception_info:
        cancel_booking(SqlSchedulingStore(db), booking.id, patient.id, now)

    assert '4 hours' in exception_info.value.detail
    assert db.get(Booking, booking.id) is not None


def test_cancel_after_start_is_too_late(db, booked) -> None:
    patient, _practitioner, booking = booked

    with pytest.raises(TooLateToCancel):
        cancel_booking(SqlSchedulingStore(db), booking.id, patient.id, BOOKING_INSTANT + timedelta(minutes=5))


def test_cancel_someone_elses_booking_is_not_found(db, booked, make_user) -> None:
    _patient, _practitioner, booking = booked
    stranger = make_user(full_name='Stranger')

    with pytest.raises(NotFound):
        cancel_booking(SqlSchedulingStore(db), booking.id, stranger.id, BOOKING_INSTANT - timedelta(days=1))

    assert db.get(Booking, booking.id) is not None


def test_cancelled_slot_reopens_for_other_patients(db, booked, make_booking, make_user) -> None:
    patient, practitioner, booking = booked
    store = SqlSchedulingStore(db)

    cancel_booking(store, booking.id, patient.id, BOOKING_INSTANT - timedelta(days=1))

    assert not store.exists_booked_slot(practitioner.id, BOOKING_INSTANT.date(), BOOKING_INSTANT.time())
    make_booking(make_user(), practitioner, BOOKING_INSTANT.date(), BOOKING_INSTANT.time())


def test_mark_completed_keeps_row(db, booked) -> None:
    _patient, practitioner, booking = booked

    assert mark_completed(SqlSchedulingStore(db), booking.id, practitioner.id) == 1

    db.refresh(booking)
    assert booking.status == STATUS_COMPLETED


def test_mark_cancelled_keeps_row(db, booked) -> None:
    _patient, practitioner, booking = booked

    assert mark_cancelled(SqlSchedulingStore(db), booking.id, practitioner.id) == 1

    db.refresh(booking)
    assert booking.status == STATUS_CANCELLED


def test_status_change_by_other_practitioner_is_silent_no_op(db, booked, make_practitioner, make_service) -> None:
    _patient, _practitioner, booking = booked
    other = make_practitioner(make_service(name='Other'), full_name='Dr Other')

    assert mark_completed(SqlSchedulingStore(db), booking.id, other.id) == 0

    db.refresh(booking)
    assert booking.status == STATUS_BOOKED


def test_status_transitions_are_one_way(db, booked) -> None:
    _patient, practitioner, booking = booked
    store = SqlSchedulingStore(db)

    mark_cancelled(store, booking.id, practitioner.id)
    assert mark_completed(store, booking.id, practitioner.id) == 0

    db.refresh(booking)
    assert booking.status == STATUS_CANCELLED


def test_set_booking_status_rejects_unknown_status(db, booked) -> None:
    _patient, practitioner, booking = booked

    with pytest.raises(ValueError):
        set_booking_status(SqlSchedulingStore(db), booking.id, practitioner.id, STATUS_BOOKED)
