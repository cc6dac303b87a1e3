from datetime import date, datetime, time

import pytest
from fastapi import HTTPException

from medibook.models.booking import STATUS_CANCELLED, STATUS_COMPLETED, Booking
from medibook.routes.practitioner_routes import (
    UpdateNotesRequest,
    booking_filter_conditions,
    cancel_booking_as_practitioner,
    complete_booking,
    dashboard,
    list_bookings,
    list_practitioner_availability,
    save_notes,
)
from medibook.scheduling import slots

NOW = datetime(2025, 6, 2, 12, 0)
TODAY = date(2025, 6, 2)


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(slots, 'local_now', lambda: NOW)


@pytest.fixture
def schedule(make_user, make_service, make_practitioner, make_booking):
    service = make_service()
    practitioner = make_practitioner(service, full_name='Dr Brown')
    other = make_practitioner(service, full_name='Dr Green')
    patients = [make_user(full_name=f'Patient {index}') for index in range(5)]

    bookings = {
        'missed': make_booking(patients[0], practitioner, TODAY, time(9, 0)),
        'later_today': make_booking(patients[1], practitioner, TODAY, time(15, 0)),
        'next_week': make_booking(patients[2], practitioner, date(2025, 6, 9), time(10, 0)),
        'completed': make_booking(patients[3], practitioner, date(2025, 5, 26), time(9, 0), STATUS_COMPLETED),
        'cancelled': make_booking(patients[4], practitioner, date(2025, 6, 3), time(9, 0), STATUS_CANCELLED),
        'other': make_booking(patients[0], other, date(2025, 6, 4), time(9, 0)),
    }
    return {'practitioner': practitioner, 'other': other, 'bookings': bookings}


def ids(rows) -> list[int]:
    return [row.id for row in rows]


def test_upcoming_filter_is_default(db, schedule) -> None:
    bookings = schedule['bookings']

    rows = list_bookings(booking_filter='upcoming', practitioner=schedule['practitioner'], db=db)

    assert ids(rows) == [bookings['later_today'].id, bookings['next_week'].id]
    assert rows[0].patient == 'Patient 1'


@pytest.mark.parametrize(
    ('booking_filter', 'expected'),
    [
        ('missed', ['missed']),
        ('completed', ['completed']),
        ('cancelled', ['cancelled']),
        (' ALL ', ['completed', 'missed', 'later_today', 'cancelled', 'next_week']),
    ],
)
def test_booking_filters(db, schedule, booking_filter: str, expected: list[str]) -> None:
    rows = list_bookings(booking_filter=booking_filter, practitioner=schedule['practitioner'], db=db)

    assert ids(rows) == [schedule['bookings'][name].id for name in expected]


def test_unknown_filter_is_bad_request() -> None:
    with pytest.raises(HTTPException) as exception_info:
        booking_filter_conditions('someday', NOW)

    assert exception_info.value.status_code == 400


def test_dashboard_counts(db, schedule) -> None:
    response = dashboard(practitioner=schedule['practitioner'], db=db)

    assert response.today == 2
    assert response.upcoming == 2
    assert response.completed == 1


def test_complete_booking_changes_status(db, schedule) -> None:
    booking = schedule['bookings']['missed']

    complete_booking(booking.id, practitioner=schedule['practitioner'], db=db)

    db.refresh(booking)
    assert booking.status == STATUS_COMPLETED


def test_cancelled_booking_stays_cancelled(db, schedule) -> None:
    booking = schedule['bookings']['cancelled']

    complete_booking(booking.id, practitioner=schedule['practitioner'], db=db)

    db.refresh(booking)
    assert booking.status == STATUS_CANCELLED


def test_cancel_keeps_history_row(db, schedule) -> None:
    booking = schedule['bookings']['next_week']

    cancel_booking_as_practitioner(booking.id, practitioner=schedule['practitioner'], db=db)

    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored is not None
    assert stored.status == STATUS_CANCELLED


def test_cannot_change_another_practitioners_booking(db, schedule) -> None:
    booking = schedule['bookings']['other']

    cancel_booking_as_practitioner(booking.id, practitioner=schedule['practitioner'], db=db)

    db.refresh(booking)
    assert booking.status == 'booked'


def test_save_notes_strips_and_clears(db, schedule) -> None:
    booking = schedule['bookings']['next_week']

    save_notes(booking.id, UpdateNotesRequest(notes='  Bring x-rays  '), practitioner=schedule['practitioner'], db=db)
    db.refresh(booking)
    assert booking.notes == 'Bring x-rays'

    save_notes(booking.id, UpdateNotesRequest(notes='   '), practitioner=schedule['practitioner'], db=db)
    db.refresh(booking)
    assert booking.notes is None


def test_list_own_availability_in_weekday_order(db, schedule, make_window) -> None:
    practitioner = schedule['practitioner']
    make_window(practitioner, 'Fri', time(13, 0), time(17, 0))
    make_window(practitioner, 'Mon', time(9, 0), time(12, 0))
    make_window(schedule['other'], 'Tue', time(9, 0), time(12, 0))

    windows = list_practitioner_availability(practitioner=practitioner, db=db)

    assert [(window.day_of_week, window.start_time) for window in windows] == [
        ('Mon', time(9, 0)),
        ('Fri', time(13, 0)),
    ]
